#!/usr/bin/env python3
"""Recompute totalDeviceChecks and lastCheckDate for every employee.

Aggregates are refreshed after each device check write, but a refresh that
failed leaves them stale until the next write. Run from the backend/ directory:

    python3 scripts/repair_stats.py [--dry-run] [--verbose]

With --dry-run, drifted employees are reported and nothing is written.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from devicecheck.core.config import Settings  # noqa: E402
from devicecheck.core.store import CosmosDatabase  # noqa: E402
from devicecheck.models.device_check import RepairReport  # noqa: E402
from devicecheck.services.container import build_services  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recompute employee device check aggregates from the device-checks container",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drifted employees without writing",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


async def repair(args: argparse.Namespace, settings: Settings | None = None) -> RepairReport:
    settings = settings or Settings()
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")

    logger.info("Connecting to Cosmos DB...")
    database = CosmosDatabase(settings)
    await database.open()
    try:
        services = build_services(database, settings)
        report = await services.device_checks.repair_all_stats(dry_run=args.dry_run)
    finally:
        await database.close()

    logger.info("=" * 50)
    logger.info("Stats repair complete!")
    logger.info("Employees scanned: %d", report.employees)
    logger.info("Drifted: %d", report.drifted)
    logger.info("Repaired: %d", report.repaired)
    logger.info("Failed: %d", report.failed)
    if args.dry_run:
        logger.info("[DRY RUN] No employees were written.")
    return report


def main() -> None:
    args = parse_args()
    report = asyncio.run(repair(args))
    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
