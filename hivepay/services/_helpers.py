"""Shared utilities for the service layer."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import uuid4

JsonDict = dict[str, object]
Serializable = Mapping[str, object] | list[Mapping[str, object]]

# Hive assets carry three decimals.
AMOUNT_QUANTUM: Decimal = Decimal("0.001")


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid4().hex[:24]}" if prefix else str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def now_iso() -> str:
    return utc_now().isoformat()


def parse_iso(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC (Hive API style)."""
    value: datetime = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def round_amount(value: Decimal) -> Decimal:
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def load_json(raw: str | None) -> JsonDict | None:
    if not raw:
        return None
    result: object = json.loads(raw)
    if isinstance(result, dict):
        return dict(result)
    return None


def dump_json(obj: Serializable) -> str:
    return json.dumps(obj, default=str)
