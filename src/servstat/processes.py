"""Process enumeration and ranking for servstat."""

import logging
import time
from collections.abc import Callable

import psutil

from servstat.models import ProcessEntry

logger = logging.getLogger(__name__)


def list_processes() -> list[ProcessEntry]:
    """
    Collect all visible processes in enumeration order.

    CPU percentage follows ``ps``: CPU time consumed over the process
    lifetime, so no second sampling pass is needed. Processes that exit or
    deny access mid-enumeration are skipped.
    """
    entries: list[ProcessEntry] = []
    now = time.time()

    attrs = ["pid", "name", "username", "cpu_times", "create_time", "memory_percent"]

    for proc in psutil.process_iter(attrs=attrs):
        try:
            info = proc.info

            cpu_times = info.get("cpu_times")
            create_time = info.get("create_time")
            cpu_percent = 0.0
            if cpu_times is not None and create_time is not None and now > create_time:
                cpu_percent = (cpu_times.user + cpu_times.system) / (now - create_time) * 100

            entries.append(
                ProcessEntry(
                    pid=info.get("pid", proc.pid),
                    cpu_percent=cpu_percent,
                    mem_percent=info.get("memory_percent") or 0.0,
                    user=info.get("username") or "?",
                    command=info.get("name") or "",
                )
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue

    return entries


class ProcessRanker:
    """Ranks processes by CPU or memory usage."""

    def __init__(self, lister: Callable[[], list[ProcessEntry]] = list_processes) -> None:
        self._lister = lister

    def top_by_cpu(self, n: int = 5) -> tuple[ProcessEntry, ...]:
        """The ``n`` processes using the most CPU, highest first."""
        return self._top(lambda p: p.cpu_percent, n)

    def top_by_memory(self, n: int = 5) -> tuple[ProcessEntry, ...]:
        """The ``n`` processes using the most memory, highest first."""
        return self._top(lambda p: p.mem_percent, n)

    def _top(self, key: Callable[[ProcessEntry], float], n: int) -> tuple[ProcessEntry, ...]:
        try:
            entries = self._lister()
        except (OSError, psutil.Error) as exc:
            logger.warning("Process list unavailable: %s", exc)
            return ()
        # sorted() stays stable with reverse=True, ties keep enumeration order
        return tuple(sorted(entries, key=key, reverse=True)[:n])
