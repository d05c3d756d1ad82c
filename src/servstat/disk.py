"""Filesystem usage sampling for servstat."""

import logging
from collections.abc import Callable
from typing import Any

import psutil

from servstat.models import DiskSnapshot

logger = logging.getLogger(__name__)

# In-memory and pseudo filesystems that carry no physical capacity.
VIRTUAL_FSTYPES = frozenset(
    {
        "autofs",
        "binfmt_misc",
        "bpf",
        "cgroup",
        "cgroup2",
        "configfs",
        "debugfs",
        "devfs",
        "devpts",
        "devtmpfs",
        "efivarfs",
        "fusectl",
        "hugetlbfs",
        "mqueue",
        "nsfs",
        "overlay",
        "proc",
        "pstore",
        "ramfs",
        "securityfs",
        "squashfs",
        "sysfs",
        "tmpfs",
        "tracefs",
    }
)


def used_percent(used: int, free: int) -> float:
    """Used share of the space visible to unprivileged users."""
    capacity = used + free
    return used * 100 / capacity if capacity > 0 else 0.0


def percent_label(used: int, free: int) -> str:
    """Used percentage rounded up to a whole number, the way ``df`` prints it."""
    capacity = used + free
    if capacity <= 0:
        return "0%"
    return f"{-(-used * 100 // capacity)}%"


def _snapshot(total: int, used: int, free: int, scope: str) -> DiskSnapshot:
    return DiskSnapshot(
        total_bytes=total,
        used_bytes=used,
        free_bytes=free,
        used_percent=used_percent(used, free),
        percent_label=percent_label(used, free),
        scope=scope,
    )


class DiskSampler:
    """
    Aggregates usage over real mounted filesystems.

    Falls back to the root filesystem when no real filesystem is found or
    partitions cannot be listed, and to an N/A snapshot when even that fails.
    """

    def __init__(
        self,
        partitions: Callable[[], list[Any]] = psutil.disk_partitions,
        usage: Callable[[str], Any] = psutil.disk_usage,
        root: str = "/",
    ) -> None:
        self._partitions = partitions
        self._usage = usage
        self._root = root

    def sample(self) -> DiskSnapshot:
        """Measure disk usage."""
        try:
            snapshot = self._aggregate()
        except (OSError, psutil.Error, NotImplementedError) as exc:
            logger.debug("Partition listing failed (%s), using root filesystem", exc)
            snapshot = None

        if snapshot is not None:
            return snapshot

        try:
            usage = self._usage(self._root)
        except (OSError, psutil.Error) as exc:
            logger.warning("Disk usage unavailable for %s: %s", self._root, exc)
            return DiskSnapshot.unavailable()
        return _snapshot(usage.total, usage.used, usage.free, scope="root")

    def _aggregate(self) -> DiskSnapshot | None:
        total = used = free = 0
        counted = 0
        seen_devices: set[str] = set()

        for part in self._partitions():
            if not part.fstype or part.fstype in VIRTUAL_FSTYPES:
                continue
            if part.device in seen_devices:
                continue
            try:
                usage = self._usage(part.mountpoint)
            except (OSError, psutil.Error) as exc:
                # Stale network mounts and unreadable mount points
                logger.debug("Skipping %s: %s", part.mountpoint, exc)
                continue
            seen_devices.add(part.device)
            total += usage.total
            used += usage.used
            free += usage.free
            counted += 1

        if counted == 0:
            logger.debug("No real filesystem mounted, using root filesystem")
            return None
        return _snapshot(total, used, free, scope="aggregate")
