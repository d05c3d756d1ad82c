"""Data models for servstat."""

from dataclasses import dataclass
from datetime import datetime

from servstat.units import format_bytes

UNAVAILABLE = "N/A"


def _human(value: int | None) -> str:
    return UNAVAILABLE if value is None else format_bytes(value)


@dataclass(slots=True, frozen=True)
class CpuSample:
    """Total CPU utilization over a measurement interval."""

    usage_percent: float  # 0.0 - 100.0
    measured_over_seconds: float  # 0.0 when taken by the single-shot fallback


@dataclass(slots=True, frozen=True)
class MemorySnapshot:
    """Immutable snapshot of physical memory usage."""

    total_bytes: int | None
    used_bytes: int | None
    free_bytes: int | None  # available memory, not raw free pages
    used_percent: float

    @classmethod
    def from_available(cls, total: int, available: int) -> "MemorySnapshot":
        """Build a snapshot from a total and an available figure, both in bytes."""
        used = total - available
        percent = used / total * 100 if total > 0 else 0.0
        return cls(
            total_bytes=total,
            used_bytes=used,
            free_bytes=available,
            used_percent=percent,
        )

    @classmethod
    def unavailable(cls) -> "MemorySnapshot":
        """Degraded snapshot used when no memory source could be read."""
        return cls(total_bytes=None, used_bytes=None, free_bytes=None, used_percent=0.0)

    @property
    def is_degraded(self) -> bool:
        return self.total_bytes is None

    @property
    def total_human(self) -> str:
        return _human(self.total_bytes)

    @property
    def used_human(self) -> str:
        return _human(self.used_bytes)

    @property
    def free_human(self) -> str:
        return _human(self.free_bytes)


@dataclass(slots=True, frozen=True)
class DiskSnapshot:
    """Immutable snapshot of filesystem usage."""

    total_bytes: int | None
    used_bytes: int | None
    free_bytes: int | None
    used_percent: float
    percent_label: str  # e.g. "42%", printed verbatim
    scope: str  # "aggregate", "root" or "unavailable"

    @classmethod
    def unavailable(cls) -> "DiskSnapshot":
        """Degraded snapshot used when no filesystem could be queried."""
        return cls(
            total_bytes=None,
            used_bytes=None,
            free_bytes=None,
            used_percent=0.0,
            percent_label="0%",
            scope="unavailable",
        )

    @property
    def is_degraded(self) -> bool:
        return self.total_bytes is None

    @property
    def total_human(self) -> str:
        return _human(self.total_bytes)

    @property
    def used_human(self) -> str:
        return _human(self.used_bytes)

    @property
    def free_human(self) -> str:
        return _human(self.free_bytes)


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """One row of a ranked process list."""

    pid: int
    cpu_percent: float  # may exceed 100.0 for multi-threaded processes
    mem_percent: float
    user: str
    command: str


@dataclass(slots=True, frozen=True)
class Report:
    """Everything printed by one invocation."""

    os_name: str
    cpu: CpuSample
    memory: MemorySnapshot
    disk: DiskSnapshot
    top_cpu: tuple[ProcessEntry, ...]
    top_memory: tuple[ProcessEntry, ...]
    generated_at: datetime  # UTC, timezone-aware
    local_time: datetime  # generated_at converted to the local zone
    top_n: int = 5

    @property
    def utc_stamp(self) -> str:
        return self.generated_at.strftime("%Y-%m-%dT%H:%M:%SZ")

    @property
    def local_stamp(self) -> str:
        return self.local_time.strftime("%Y-%m-%dT%H:%M:%S %z (%Z)")
