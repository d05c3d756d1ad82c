"""servstat - print a one-shot server performance summary."""

import logging

from servstat.host import Host
from servstat.logger import configure_logging
from servstat.report import ReportAssembler, render_report

logger = logging.getLogger(__name__)


def main() -> int:
    """Entry point for the servstat command."""
    configure_logging()
    try:
        report = ReportAssembler.for_host(Host.detect()).generate()
    except Exception:
        # Nothing has been printed yet; samplers degrade on their own otherwise
        logger.exception("Could not generate report")
        return 1

    print(render_report(report))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
