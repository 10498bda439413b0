"""Port protocols: the boundaries the engine talks through.

Tests inject fakes that conform to these Protocols; ``HiveClient`` and
``SqlPaymentRepository`` are the production implementations.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from db.enums import Currency, PaymentStatus, PaymentType
from hivepay.services.schemas.chain import (
    AccountBalance,
    DelegationEvent,
    GlobalRatio,
    RewardEvent,
)
from hivepay.services.schemas.results import BatchResult

if TYPE_CHECKING:
    from hivepay.services.entities import Payment, PaymentBatch


class RatioSource(Protocol):
    async def fetch_global_ratio(self) -> GlobalRatio: ...


class HistorySource(Protocol):
    async def fetch_delegation_events(
        self, account: str, until: datetime | None = None
    ) -> list[DelegationEvent]: ...

    async def fetch_reward_events(
        self, account: str, since: datetime, until: datetime | None = None
    ) -> list[RewardEvent]: ...


class PaymentGateway(Protocol):
    async def is_available(self) -> bool: ...

    async def process_payment(self, payment: "Payment") -> BatchResult: ...

    async def process_batch(self, batch: "PaymentBatch") -> BatchResult: ...

    async def estimate_fees(self, payment: "Payment") -> Decimal: ...

    async def get_balance(self, account: str) -> AccountBalance: ...


class PaymentRepository(Protocol):
    def save(self, item: "Payment | PaymentBatch") -> None: ...

    def find_by_id(self, payment_id: str) -> "Payment | None": ...

    def find_by_transaction_id(self, transaction_id: str) -> "list[Payment]": ...

    def find_batch_by_id(self, batch_id: str) -> "PaymentBatch | None": ...

    def find_batches_by_user(self, username: str, limit: int = 50) -> "list[PaymentBatch]": ...

    def find_by_user(
        self,
        username: str,
        status: PaymentStatus | None = None,
        payment_type: PaymentType | None = None,
        currency: Currency | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> "list[Payment]": ...

    def count_by_user(
        self,
        username: str,
        status: PaymentStatus | None = None,
        payment_type: PaymentType | None = None,
        currency: Currency | None = None,
    ) -> int: ...


class LedgerSource(RatioSource, HistorySource, Protocol):
    """Everything the engine reads from the chain; HiveClient implements it."""

    async def get_balance(self, account: str) -> AccountBalance: ...
