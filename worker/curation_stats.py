"""Worker: print rolling curation reward statistics for an account.

Usage:
    python -m worker.curation_stats --account aliento
    python -m worker.curation_stats --account aliento --period 90d
"""

import argparse
import asyncio
import sys

import structlog

from app.dependencies import build_services
from hivepay.services.calculation import stats_to_dict
from hivepay.services.errors import DataSourceError, PaymentValidationError
from hivepay.services.hive_client import HiveClient

logger = structlog.get_logger(__name__)


async def run(account: str, period: str | None) -> dict[str, str | int]:
    async with HiveClient() as hive:
        services = build_services(hive)
        stats: dict[str, str | int] = dict(stats_to_dict(await services.rewards.curation_stats(account)))
        if period:
            stats[period] = str(await services.rewards.aggregate_rewards(account, period))
    return stats


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Show curation reward statistics")
    parser.add_argument("--account", "-a", required=True, help="Curator account")
    parser.add_argument("--period", "-p", default=None, help="Extra window, e.g. 90d or 12h")
    args = parser.parse_args(argv)

    try:
        stats = asyncio.run(run(args.account, args.period))
    except (PaymentValidationError, DataSourceError) as e:
        logger.error("Stats failed", account=args.account, error=str(e))
        sys.exit(1)

    logger.info("Curation stats", **stats)


if __name__ == "__main__":
    main()
