"""Environment lookup and host path resolution."""

import os
import posixpath
from typing import Dict, Mapping, Optional, Protocol


# Environment variables that relocate host mounts when the agent runs in a
# container, with their default location on the host.
HOST_PATH_DEFAULTS: Dict[str, str] = {
    "HOST_PROC": "/proc",
    "HOST_SYS": "/sys",
    "HOST_ETC": "/etc",
    "HOST_VAR": "/var",
    "HOST_RUN": "/run",
    "HOST_DEV": "/dev",
    "HOST_PROC_MOUNTINFO": "",
}


class Environment(Protocol):
    """Key-value lookup for runtime overrides."""

    def lookup(self, key: str) -> Optional[str]:
        ...


class OsEnvironment:
    """Environment backed by the process environment variables."""

    def lookup(self, key: str) -> Optional[str]:
        return os.environ.get(key)


class MappingEnvironment:
    """Environment backed by a fixed mapping."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self.values = dict(values or {})

    def lookup(self, key: str) -> Optional[str]:
        return self.values.get(key)


def resolve_host_paths(root_path: str, env: Environment) -> Dict[str, str]:
    """
    Resolve where host mounts live.

    Explicit environment variables always win. Otherwise, when a root path
    other than "/" is configured, every default is re-rooted under it.

    Args:
        root_path: Configured host root ("" or "/" for the local host)
        env: Environment to read overrides from

    Returns:
        Dict[str, str]: Variable name mapped to the resolved path
    """
    paths: Dict[str, str] = {}

    for key, default in HOST_PATH_DEFAULTS.items():
        override = env.lookup(key)
        if override:
            paths[key] = override
        elif default and root_path not in ("", "/"):
            paths[key] = posixpath.join(root_path, default.lstrip("/"))
        elif default:
            paths[key] = default

    return paths
