"""Per-process handle counts, refreshed once per process-scraper pass."""

from typing import Callable, Dict, Optional

import psutil

from ..utils.errors import (
    HandleCountAccessDeniedError,
    HandleCountNotFoundError,
    HandleCountUnsupportedError
)


# pid -> handle count, or None when the OS denied the read
HandleQuery = Callable[[], Dict[int, Optional[int]]]


def _query_attribute(attribute: str) -> HandleQuery:
    def query() -> Dict[int, Optional[int]]:
        return {proc.pid: proc.info.get(attribute) for proc in psutil.process_iter([attribute])}
    return query


class HandleCountManager:
    """
    Snapshot of open-handle counts for every process.

    ``refresh`` reads the whole table in one pass so per-process lookups
    during the same scrape are cheap and consistent with each other.
    """

    def __init__(self, query: HandleQuery):
        """
        Initialize manager.

        Args:
            query: Returns pid -> handle count for all visible processes,
                with None for processes whose count could not be read
        """
        self._query = query
        self._counts: Dict[int, int] = {}
        self._denied = frozenset()

    def refresh(self) -> None:
        """Replace the snapshot with the current process table."""
        table = self._query()
        self._counts = {pid: count for pid, count in table.items() if count is not None}
        self._denied = frozenset(pid for pid, count in table.items() if count is None)

    def get_process_handle_count(self, pid: int) -> int:
        """
        Handle count of ``pid`` as of the last refresh.

        Raises:
            HandleCountAccessDeniedError: If the process was seen but its count was not readable
            HandleCountNotFoundError: If the process was not in the last refresh
        """
        if pid in self._denied:
            raise HandleCountAccessDeniedError(pid)
        try:
            return self._counts[pid]
        except KeyError:
            raise HandleCountNotFoundError(pid) from None


class UnsupportedHandleCountManager:
    """Manager for platforms without a handle count source."""

    def refresh(self) -> None:
        raise HandleCountUnsupportedError("handle counts are not supported on this platform")

    def get_process_handle_count(self, pid: int) -> int:
        raise HandleCountUnsupportedError("handle counts are not supported on this platform")


def new_manager(query: Optional[HandleQuery] = None):
    """
    Build the handle-count manager for this platform.

    Windows reports kernel handles, POSIX systems report open file
    descriptors.
    """
    if query is not None:
        return HandleCountManager(query)
    if psutil.WINDOWS:
        return HandleCountManager(_query_attribute("num_handles"))
    if psutil.POSIX:
        return HandleCountManager(_query_attribute("num_fds"))
    return UnsupportedHandleCountManager()
