"""Platform value resolved once per invocation."""

import platform
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True, frozen=True)
class Host:
    """
    Description of the host being sampled.

    Passed explicitly to every sampler factory. The name only labels the
    report; sources are chosen by probing what actually exists.
    """

    name: str
    proc_root: Path = field(default_factory=lambda: Path("/proc"))

    @classmethod
    def detect(cls) -> "Host":
        """Resolve the current host."""
        return cls(name=platform.system() or "Unknown")
