"""FastAPI dependencies: DB sessions, auth, and engine services."""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from config import get_settings
from db.connection import get_db as get_db  # noqa: F401  re-exported for routes
from hivepay.services.calculation import DistributionCalculator
from hivepay.services.converter import UnitConverter
from hivepay.services.execution import PaymentQueryService, PayoutExecutor
from hivepay.services.ports import LedgerSource
from hivepay.services.ratio_cache import GlobalRatioCache
from hivepay.services.repository import SqlPaymentRepository
from hivepay.services.rewards import RewardAggregator


def get_api_key(x_api_key: str = Header(default="")) -> str:
    """Validate API key on mutation endpoints."""
    expected: str | None = get_settings().api_key
    if not expected:
        return ""  # auth disabled when no key configured
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key


@dataclass
class EngineServices:
    """Long-lived collaborators built once per process and shared by requests."""

    ledger: LedgerSource
    ratio_cache: GlobalRatioCache
    converter: UnitConverter
    rewards: RewardAggregator
    calculator: DistributionCalculator


def build_services(ledger: LedgerSource) -> EngineServices:
    ratio_cache = GlobalRatioCache(ledger)
    converter = UnitConverter(ratio_cache)
    rewards = RewardAggregator(ledger, converter)
    calculator = DistributionCalculator(ledger, converter, rewards)
    return EngineServices(ledger, ratio_cache, converter, rewards, calculator)


def get_services(request: Request) -> EngineServices:
    services: EngineServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Engine services not initialized")
    return services


def get_executor(db: Session = Depends(get_db)) -> PayoutExecutor:
    return PayoutExecutor(SqlPaymentRepository(db))


def get_query_service(db: Session = Depends(get_db)) -> PaymentQueryService:
    return PaymentQueryService(SqlPaymentRepository(db))
