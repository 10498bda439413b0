"""Distribution calculation endpoints. Thin routes, logic in services."""

from fastapi import APIRouter, Depends

from app.dependencies import EngineServices, get_services
from app.schemas.calculate import CalculateRequest, RecalculateRequest
from db.enums import EmptyPolicy
from hivepay.services._types import CalculationDict, CurationStatsDict
from hivepay.services.calculation import calculation_to_dict, stats_to_dict
from hivepay.services.schemas.results import CalculationOutput

router: APIRouter = APIRouter(prefix="/api", tags=["calculate"])


@router.post("/calculate")
async def calculate(
    body: CalculateRequest,
    services: EngineServices = Depends(get_services),
) -> CalculationDict:
    output: CalculationOutput = await services.calculator.calculate(
        body.account, body.to_filters(), on_empty=EmptyPolicy.RETURN_EMPTY
    )
    return calculation_to_dict(output)


@router.post("/calculate/recalculate")
def recalculate(
    body: RecalculateRequest,
    services: EngineServices = Depends(get_services),
) -> CalculationDict:
    previous = CalculationOutput(
        account=body.account.lower(),
        cutoff_date=body.cutoff_date,
        events_processed=body.events_processed,
        realized_reward=body.realized_reward,
        percentage=body.percentage,
        period=body.period,
        states={s.delegator.lower(): s.to_state() for s in body.states},
    )
    output: CalculationOutput = services.calculator.recalculate(previous, body.filters.to_filters())
    return calculation_to_dict(output)


@router.get("/curation-stats/{account}")
async def curation_stats(
    account: str,
    services: EngineServices = Depends(get_services),
) -> CurationStatsDict:
    return stats_to_dict(await services.rewards.curation_stats(account))


@router.get("/accounts/{account}/balance")
async def account_balance(
    account: str,
    services: EngineServices = Depends(get_services),
) -> dict[str, str]:
    balance = await services.ledger.get_balance(account)
    return {"account": balance.account, "hive": f"{balance.hive:.3f}", "hbd": f"{balance.hbd:.3f}"}
