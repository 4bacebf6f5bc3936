"""Run connectivity checks against the image model provider."""

from __future__ import annotations

import asyncio
import logging

from studio.integrations import IntegrationCheckResult, run_all_checks
from studio.monitoring.logging import configure_logging

logger = logging.getLogger("studio.scripts.check_integrations")


def report(results: list[IntegrationCheckResult]) -> bool:
    """Log each check outcome and return whether all of them passed."""

    for result in results:
        if result.success:
            logger.info("%s: %s", result.name, result.message)
        else:
            logger.error("%s: %s", result.name, result.message)
    return all(result.success for result in results)


def main() -> int:
    configure_logging()
    results = asyncio.run(run_all_checks())
    return 0 if report(results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
