"""Report assembly and rendering for servstat."""

from collections.abc import Callable
from datetime import datetime, timezone, tzinfo

from servstat.cpu import CpuSampler
from servstat.disk import DiskSampler
from servstat.host import Host
from servstat.memory import MemorySampler
from servstat.models import ProcessEntry, Report
from servstat.processes import ProcessRanker

SEPARATOR_WIDTH = 80


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportAssembler:
    """
    Runs every sampler once and composes a Report.

    Each sampler degrades on its own, so no error handling happens here.
    Both timestamps come from a single ``clock()`` call.
    """

    def __init__(
        self,
        host: Host,
        cpu: CpuSampler,
        memory: MemorySampler,
        disk: DiskSampler,
        ranker: ProcessRanker,
        clock: Callable[[], datetime] = utc_now,
        local_zone: tzinfo | None = None,
        top_n: int = 5,
    ) -> None:
        self._host = host
        self._cpu = cpu
        self._memory = memory
        self._disk = disk
        self._ranker = ranker
        self._clock = clock
        self._local_zone = local_zone
        self._top_n = top_n

    @classmethod
    def for_host(cls, host: Host) -> "ReportAssembler":
        """Wire the default samplers for ``host``."""
        return cls(
            host=host,
            cpu=CpuSampler.for_host(host),
            memory=MemorySampler.for_host(host),
            disk=DiskSampler(),
            ranker=ProcessRanker(),
        )

    def generate(self) -> Report:
        """Take one sample of everything."""
        cpu = self._cpu.sample()
        memory = self._memory.sample()
        disk = self._disk.sample()
        top_cpu = self._ranker.top_by_cpu(self._top_n)
        top_memory = self._ranker.top_by_memory(self._top_n)

        instant = self._clock().astimezone(timezone.utc)

        return Report(
            os_name=self._host.name,
            cpu=cpu,
            memory=memory,
            disk=disk,
            top_cpu=top_cpu,
            top_memory=top_memory,
            generated_at=instant,
            local_time=instant.astimezone(self._local_zone),
            top_n=self._top_n,
        )


def _header(title: str) -> list[str]:
    return ["", f"========== {title} =========="]


def _process_rows(entries: tuple[ProcessEntry, ...]) -> list[str]:
    rows = [f"{'PID':>7} {'%CPU':>5} {'%MEM':>5} {'USER':<10} COMMAND"]
    for proc in entries:
        rows.append(
            f"{proc.pid:>7} {proc.cpu_percent:5.1f} {proc.mem_percent:5.1f} {proc.user[:10]:<10} {proc.command[:50]}"
        )
    return rows


def render_report(report: Report) -> str:
    """Render the report as the text printed to stdout."""
    separator = "-" * SEPARATOR_WIDTH
    memory = report.memory
    disk = report.disk

    lines = _header(f"Server Performance Summary (OS: {report.os_name})")
    lines.append(f"Total CPU usage: {report.cpu.usage_percent:.1f}%")
    lines.append(separator)

    lines += _header("Memory")
    lines += [
        f"Total: {memory.total_human}",
        f"Used:  {memory.used_human} ({memory.used_percent:.1f}%)",
        f"Free:  {memory.free_human}",
        separator,
    ]

    lines += _header("Disk (aggregated/primary)")
    lines += [
        f"Total: {disk.total_human}",
        f"Used:  {disk.used_human} ({disk.percent_label})",
        f"Free:  {disk.free_human}",
        separator,
    ]

    lines += _header(f"Top {report.top_n} processes by CPU")
    lines += _process_rows(report.top_cpu)
    lines.append(separator)

    lines += _header(f"Top {report.top_n} processes by Memory")
    lines += _process_rows(report.top_memory)

    lines += [
        "",
        "Report generated at (same instant):",
        f"  UTC:   {report.utc_stamp}",
        f"  local: {report.local_stamp}",
        "",
    ]
    return "\n".join(lines)
