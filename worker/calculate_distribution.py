"""Worker: calculate a curation reward distribution for an account.

Usage:
    python -m worker.calculate_distribution --account aliento
    python -m worker.calculate_distribution --account aliento --minimum-hp 100 --exclude bob,carol
    python -m worker.calculate_distribution --account aliento --pool 250 --batches --json
"""

import argparse
import asyncio
import json
import sys
from decimal import Decimal, InvalidOperation

import structlog

from app.dependencies import build_services
from hivepay.services.batching import build_transfer_operations, payable, to_batches
from hivepay.services.calculation import calculation_to_dict
from hivepay.services.distribution import DistributionFilters
from hivepay.services.errors import CalculationError, DataSourceError, PaymentValidationError
from hivepay.services.hive_client import HiveClient

logger = structlog.get_logger(__name__)


def parse_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Invalid number '{raw}'") from None


def parse_names(raw: str) -> list[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


async def run(args: argparse.Namespace) -> dict[str, object]:
    filters = DistributionFilters.build(
        lookback_days=args.lookback_days,
        minimum_hp=args.minimum_hp,
        excluded_delegators=args.exclude,
        period=args.period,
        explicit_pool_value=args.pool,
    )
    async with HiveClient() as hive:
        services = build_services(hive)
        output = await services.calculator.calculate(args.account, filters)

    report: dict[str, object] = dict(calculation_to_dict(output))
    if args.batches and output.distribution and output.distribution.payments:
        rows = payable(output.distribution.payments)
        batches = to_batches(rows, sender=args.account) if rows else []
        report["batches"] = [
            {"id": b.id, "operations": build_transfer_operations(b)} for b in batches
        ]
    return report


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Calculate a delegator reward distribution")
    parser.add_argument("--account", "-a", required=True, help="Distributor account")
    parser.add_argument("--lookback-days", "-d", type=int, default=30)
    parser.add_argument("--minimum-hp", "-m", type=parse_decimal, default=Decimal(50))
    parser.add_argument(
        "--exclude", "-x", type=parse_names, default=[],
        help="Comma-separated delegators to leave out",
    )
    parser.add_argument("--period", "-p", default="30d", help="24h | 7d | 30d | <n>d | <n>h")
    parser.add_argument(
        "--pool", type=parse_decimal, default=None,
        help="Explicit pool in HIVE; otherwise sized from realized curation reward",
    )
    parser.add_argument(
        "--batches", action="store_true", default=False,
        help="Also print the transfer operations per batch",
    )
    parser.add_argument("--json", action="store_true", default=False, help="Print JSON")
    args = parser.parse_args(argv)

    logger.info(
        "Starting calculation",
        account=args.account,
        lookback_days=args.lookback_days,
        minimum_hp=str(args.minimum_hp),
        period=args.period,
    )

    try:
        report = asyncio.run(run(args))
    except (PaymentValidationError, CalculationError, DataSourceError) as e:
        logger.error("Calculation failed", error=str(e), type=type(e).__name__)
        sys.exit(1)

    if args.json:
        print(json.dumps(report, indent=2, default=str))
        return

    for row in report["delegators"]:  # type: ignore[union-attr]
        print(f"{row['delegator']:<18} {row['hp']:>14} HP {row['percentage']:>7}% {row['amount']:>12}")
    logger.info(
        "Calculation complete",
        recipients=len(report["delegators"]),  # type: ignore[arg-type]
        total_hp=report["totalHP"],
        total_distributed=report["totalDistributed"],
        cutoff=report["cutoffDate"],
    )


if __name__ == "__main__":
    main()
