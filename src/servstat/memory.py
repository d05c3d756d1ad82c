"""Memory usage sampling for servstat."""

import logging
import os
import re
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

import psutil

from servstat.host import Host
from servstat.models import MemorySnapshot

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 4096

_PAGE_SIZE_RE = re.compile(r"page size of (\d+) bytes")
_PAGES_RE = re.compile(r"^Pages ([^:]+):\s+(\d+)\.?\s*$")


class MemorySource(Protocol):
    """A readable source of physical memory counters."""

    name: str

    def available(self) -> bool: ...

    def read(self) -> MemorySnapshot: ...


def parse_meminfo(text: str) -> MemorySnapshot:
    """
    Build a snapshot from ``/proc/meminfo`` text (values in kB).

    Uses ``MemAvailable`` when the kernel exposes it, otherwise
    ``MemFree + Buffers + Cached``.

    Raises:
        ValueError: If ``MemTotal`` is missing or zero.
    """
    fields: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        values = rest.split()
        if not sep or not values:
            continue
        fields[key.strip()] = int(values[0])

    total_kb = fields.get("MemTotal", 0)
    if total_kb <= 0:
        raise ValueError("MemTotal missing from meminfo")

    if "MemAvailable" in fields:
        available_kb = fields["MemAvailable"]
    else:
        available_kb = fields.get("MemFree", 0) + fields.get("Buffers", 0) + fields.get("Cached", 0)

    return MemorySnapshot.from_available(total_kb * 1024, available_kb * 1024)


def parse_vm_stat(text: str) -> tuple[int, dict[str, int]]:
    """
    Parse ``vm_stat`` output into its page size and page counts.

    Counts are keyed by the lower-cased name after ``Pages``, e.g. ``"free"``.
    """
    page_size = DEFAULT_PAGE_SIZE
    pages: dict[str, int] = {}
    for line in text.splitlines():
        header = _PAGE_SIZE_RE.search(line)
        if header:
            page_size = int(header.group(1))
            continue
        match = _PAGES_RE.match(line.strip())
        if match:
            pages[match.group(1).strip().lower()] = int(match.group(2))
    return page_size, pages


def _run(args: list[str]) -> str:
    return subprocess.run(args, capture_output=True, text=True, check=True).stdout


class MeminfoSource:
    """Linux ``/proc/meminfo``."""

    name = "meminfo"

    def __init__(self, path: Path = Path("/proc/meminfo")) -> None:
        self._path = path

    def available(self) -> bool:
        return os.access(self._path, os.R_OK)

    def read(self) -> MemorySnapshot:
        return parse_meminfo(self._path.read_text(encoding="utf-8"))


class VmStatSource:
    """
    Page-unit counters from ``vm_stat`` plus ``sysctl hw.memsize`` (macOS).

    Free memory is ``(free + speculative) * page_size``.
    """

    name = "vm_stat"

    def __init__(self, run: Callable[[list[str]], str] = _run) -> None:
        self._run = run

    def available(self) -> bool:
        return shutil.which("vm_stat") is not None and shutil.which("sysctl") is not None

    def read(self) -> MemorySnapshot:
        total = int(self._run(["sysctl", "-n", "hw.memsize"]).strip())
        if total <= 0:
            raise ValueError("hw.memsize reported no memory")
        page_size, pages = parse_vm_stat(self._run(["vm_stat"]))
        free = (pages.get("free", 0) + pages.get("speculative", 0)) * page_size
        return MemorySnapshot.from_available(total, free)


class PsutilMemorySource:
    """Structured ``psutil.virtual_memory()`` figures."""

    name = "psutil-virtual-memory"

    def available(self) -> bool:
        return True

    def read(self) -> MemorySnapshot:
        mem = psutil.virtual_memory()
        if mem.total <= 0:
            raise ValueError("virtual_memory reported no memory")
        return MemorySnapshot.from_available(mem.total, mem.available)


class MemorySampler:
    """Tries each memory source in order, degrading to an N/A snapshot."""

    def __init__(self, sources: Sequence[MemorySource]) -> None:
        self._sources = list(sources)

    @classmethod
    def for_host(cls, host: Host) -> "MemorySampler":
        return cls([MeminfoSource(host.proc_root / "meminfo"), VmStatSource(), PsutilMemorySource()])

    def sample(self) -> MemorySnapshot:
        """Read memory usage from the first source that works."""
        for source in self._sources:
            if not source.available():
                continue
            try:
                return source.read()
            except (OSError, ValueError, subprocess.SubprocessError, psutil.Error) as exc:
                logger.debug("Memory source %s failed: %s", source.name, exc)

        logger.warning("Memory usage unavailable, reporting N/A")
        return MemorySnapshot.unavailable()
