"""Tests for hivepay.services._helpers."""

from datetime import UTC, datetime
from decimal import Decimal

from hivepay.services._helpers import (
    dump_json,
    load_json,
    new_id,
    parse_iso,
    round_amount,
)


class TestNewId:
    def test_prefixed_ids_are_unique(self) -> None:
        ids: set[str] = {new_id("pay_") for _ in range(100)}
        assert len(ids) == 100
        assert all(i.startswith("pay_") and len(i) == 28 for i in ids)

    def test_unprefixed_is_uuid(self) -> None:
        assert len(new_id()) == 36


class TestParseIso:
    def test_naive_timestamp_is_utc(self) -> None:
        assert parse_iso("2026-01-15T10:00:00") == datetime(2026, 1, 15, 10, tzinfo=UTC)

    def test_zulu_suffix(self) -> None:
        assert parse_iso("2026-01-15T10:00:00Z").tzinfo is not None


class TestRoundAmount:
    def test_half_up(self) -> None:
        assert round_amount(Decimal("1.0005")) == Decimal("1.001")
        assert round_amount(Decimal("1.0004")) == Decimal("1.000")

    def test_three_places(self) -> None:
        assert str(round_amount(Decimal(2))) == "2.000"


class TestJson:
    def test_roundtrip_with_decimal(self) -> None:
        raw: str = dump_json({"amount": Decimal("1.5")})
        assert load_json(raw) == {"amount": "1.5"}

    def test_load_empty_and_non_dict(self) -> None:
        assert load_json(None) is None
        assert load_json("") is None
        assert load_json("[1, 2]") is None
