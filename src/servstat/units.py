"""Human-readable binary-unit formatting."""

UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def format_bytes(value: float) -> str:
    """Format a byte count as a binary-unit string, e.g. ``"16.00 GiB"``."""
    size = float(value)
    index = 0
    while round(size, 2) >= 1024 and index < len(UNITS) - 1:
        size /= 1024
        index += 1
    return f"{size:.2f} {UNITS[index]}"
