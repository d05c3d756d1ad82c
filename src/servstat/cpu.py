"""CPU utilization sampling for servstat."""

import logging
import os
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import psutil

from servstat.host import Host
from servstat.models import CpuSample

logger = logging.getLogger(__name__)

# Order of the cumulative counters on the aggregate "cpu" line of /proc/stat.
CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """One read of the cumulative CPU counters."""

    total: float
    idle: float


class CounterSource(Protocol):
    """A readable source of cumulative CPU time counters."""

    name: str

    def available(self) -> bool: ...

    def read(self) -> CpuTimes: ...


def parse_proc_stat(text: str) -> CpuTimes:
    """
    Parse the aggregate ``cpu`` line of ``/proc/stat``.

    Grammar: ``cpu`` followed by at least four integer fields in
    ``CPU_FIELDS`` order. Missing trailing fields count as zero, guest
    fields after ``steal`` are ignored.

    Raises:
        ValueError: If no well-formed aggregate line is present.
    """
    for line in text.splitlines():
        parts = line.split()
        if not parts or parts[0] != "cpu":
            continue
        values = [int(part) for part in parts[1 : len(CPU_FIELDS) + 1]]
        if len(values) < 4:
            raise ValueError(f"Too few CPU counters: {line!r}")
        values += [0] * (len(CPU_FIELDS) - len(values))
        return CpuTimes(total=sum(values), idle=values[CPU_FIELDS.index("idle")])
    raise ValueError("No aggregate cpu line found")


class ProcStatSource:
    """Linux ``/proc/stat`` counters in clock ticks."""

    name = "proc-stat"

    def __init__(self, path: Path = Path("/proc/stat")) -> None:
        self._path = path

    def available(self) -> bool:
        return os.access(self._path, os.R_OK)

    def read(self) -> CpuTimes:
        return parse_proc_stat(self._path.read_text(encoding="utf-8"))


class PsutilTimesSource:
    """Structured counters from ``psutil.cpu_times()``, in seconds."""

    name = "psutil-cpu-times"

    def available(self) -> bool:
        try:
            psutil.cpu_times()
        except (OSError, psutil.Error, NotImplementedError):
            return False
        return True

    def read(self) -> CpuTimes:
        times = psutil.cpu_times()
        # BSD and macOS only report user, nice, system and idle
        total = sum(getattr(times, name, 0.0) for name in CPU_FIELDS)
        return CpuTimes(total=total, idle=times.idle)


def select_counter_source(
    host: Host,
    candidates: Sequence[CounterSource] | None = None,
) -> CounterSource:
    """
    Pick the first counter source that can be read on this host.

    When nothing reports available, the primary ``/proc/stat`` source is
    returned anyway so an unknown platform still gets the primary format.
    """
    if candidates is None:
        candidates = [ProcStatSource(host.proc_root / "stat"), PsutilTimesSource()]
    for source in candidates:
        if source.available():
            logger.debug("Using CPU counter source %s", source.name)
            return source
    logger.debug("No CPU counter source reported available, using %s", candidates[0].name)
    return candidates[0]


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 100.0)


def compute_usage(first: CpuTimes, second: CpuTimes) -> float:
    """Utilization percentage between two counter reads."""
    total_delta = second.total - first.total
    idle_delta = second.idle - first.idle
    if total_delta <= 0:
        return 0.0
    # A counter rollback can push idle_delta past total_delta
    return _clamp((1 - idle_delta / total_delta) * 100)


def single_shot_usage() -> float:
    """Lower-precision usage from the idle share since boot, no interval needed."""
    return compute_usage(CpuTimes(total=0.0, idle=0.0), PsutilTimesSource().read())


class CpuSampler:
    """
    Two-point CPU utilization sampler.

    Reads the counters, sleeps for ``interval`` seconds and reads them again.
    The sleep is the only blocking call in a report pass; tests pass a no-op
    ``sleep``.
    """

    def __init__(
        self,
        source: CounterSource,
        interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        fallback: Callable[[], float] = single_shot_usage,
    ) -> None:
        self._source = source
        self._interval = interval
        self._sleep = sleep
        self._fallback = fallback

    @classmethod
    def for_host(cls, host: Host) -> "CpuSampler":
        return cls(select_counter_source(host))

    @property
    def interval(self) -> float:
        return self._interval

    def sample(self) -> CpuSample:
        """Measure total CPU utilization."""
        try:
            first = self._source.read()
            self._sleep(self._interval)
            second = self._source.read()
        except (OSError, ValueError, psutil.Error) as exc:
            logger.debug("CPU source %s unreadable (%s), using single-shot fallback", self._source.name, exc)
            return CpuSample(usage_percent=self._single_shot(), measured_over_seconds=0.0)

        return CpuSample(usage_percent=compute_usage(first, second), measured_over_seconds=self._interval)

    def _single_shot(self) -> float:
        try:
            return self._fallback()
        except (OSError, psutil.Error) as exc:
            logger.warning("CPU usage unavailable: %s", exc)
            return 0.0
