"""Raw ledger amounts and asset formatting.

The ledger reports staked units in three shapes:

    "1234.567890 VESTS"                                   -> SuffixedAmount
    1234.56789 / Decimal("1234.56789")                    -> PlainAmount
    {"amount": "1234567890", "precision": 6, "nai": ...}  -> NaiAmount

Everything is normalized through ``normalize_raw_amount`` into a Decimal.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from db.enums import Currency
from hivepay.services._helpers import round_amount
from hivepay.services.errors import InvalidAmountError


@dataclass(frozen=True)
class SuffixedAmount:
    text: str


@dataclass(frozen=True)
class PlainAmount:
    value: Decimal


@dataclass(frozen=True)
class NaiAmount:
    amount: str
    precision: int
    nai: str | None = None


RawAmount = SuffixedAmount | PlainAmount | NaiAmount


def as_raw_amount(raw: object) -> RawAmount:
    """Tag an untyped ledger value with its variant."""
    if isinstance(raw, SuffixedAmount | PlainAmount | NaiAmount):
        return raw
    if isinstance(raw, bool):
        raise InvalidAmountError(f"Unsupported amount: {raw!r}")
    if isinstance(raw, str):
        return SuffixedAmount(raw)
    if isinstance(raw, int | float | Decimal):
        return PlainAmount(Decimal(str(raw)))
    if isinstance(raw, Mapping) and "amount" in raw and "precision" in raw:
        nai = raw.get("nai")
        return NaiAmount(str(raw["amount"]), int(raw["precision"]), str(nai) if nai else None)
    raise InvalidAmountError(f"Unsupported amount: {raw!r}")


def normalize_raw_amount(raw: object) -> Decimal:
    tagged: RawAmount = as_raw_amount(raw)
    try:
        match tagged:
            case SuffixedAmount(text=text):
                number: str = text.strip().split()[0] if text.strip() else ""
                value = Decimal(number)
            case PlainAmount(value=plain):
                value = Decimal(plain)
            case NaiAmount(amount=amount, precision=precision):
                if precision < 0:
                    raise InvalidAmountError(f"Negative precision: {precision}")
                value = Decimal(int(amount)).scaleb(-precision)
    except (InvalidOperation, ValueError, IndexError) as e:
        raise InvalidAmountError(f"Unparseable amount: {raw!r}") from e

    if not value.is_finite():
        raise InvalidAmountError(f"Non-finite amount: {raw!r}")
    return value


def format_asset(amount: Decimal, currency: Currency | str) -> str:
    """Render a transfer amount the way the chain expects it, e.g. ``1.500 HIVE``."""
    code: str = currency.value if isinstance(currency, Currency) else str(currency)
    return f"{round_amount(Decimal(amount)):.3f} {code}"
