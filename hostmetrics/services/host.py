"""Process-wide host helpers: boot-time cache, host mounts and host resource."""

import logging
import platform
import socket
import threading
from typing import Dict, Optional

import psutil

from ..utils.metrics import Resource


_lock = threading.RLock()
_boot_time_cache_enabled = False
_cached_boot_time: Optional[float] = None
_shared_optimizations_enabled = False


def enable_boot_time_cache(enabled: bool = True) -> None:
    """
    Toggle caching of the host boot time.

    Boot time never changes while the host is up, so once cached every
    scraper and the entity emitter reuse one value instead of re-reading it
    from the OS on each pass.
    """
    global _boot_time_cache_enabled, _cached_boot_time
    with _lock:
        _boot_time_cache_enabled = enabled
        if not enabled:
            _cached_boot_time = None


def boot_time() -> float:
    """Host boot time in seconds since the epoch."""
    global _cached_boot_time
    if not _boot_time_cache_enabled:
        return psutil.boot_time()

    with _lock:
        if _cached_boot_time is None:
            _cached_boot_time = psutil.boot_time()
        return _cached_boot_time


def boot_time_ns() -> int:
    return int(boot_time() * 1_000_000_000)


def apply_host_paths(host_paths: Dict[str, str]) -> None:
    """Point psutil at a relocated procfs (container with the host mounted)."""
    proc_path = host_paths.get("HOST_PROC")
    if proc_path and psutil.LINUX:
        psutil.PROCFS_PATH = proc_path


def enable_shared_optimizations(
    host_paths: Optional[Dict[str, str]] = None,
    logger: Optional[logging.Logger] = None
) -> bool:
    """
    Enable the one-time optimizations shared by several scrapers.

    Idempotent: only the first call has an effect.

    Args:
        host_paths: Resolved host mount locations
        logger: Optional logger instance

    Returns:
        bool: True if this call enabled them, False if already enabled
    """
    global _shared_optimizations_enabled
    logger = logger or logging.getLogger(__name__)

    with _lock:
        if _shared_optimizations_enabled:
            return False

        enable_boot_time_cache(True)
        if host_paths:
            apply_host_paths(host_paths)
        _shared_optimizations_enabled = True

    logger.debug("Shared host optimizations enabled (boot time cache)")
    return True


def reset_shared_optimizations() -> None:
    """Forget the shared optimizations (used when a process hosts many receivers in tests)."""
    global _shared_optimizations_enabled
    with _lock:
        _shared_optimizations_enabled = False
        enable_boot_time_cache(False)


def host_resource() -> Resource:
    """Resource describing the local host."""
    return Resource(attributes={
        "host.name": socket.gethostname(),
        "os.type": platform.system().lower(),
    })
