"""Hive ledger client: global properties, account history and balances.

Talks JSON-RPC to a Hive node (``database_api`` / ``condenser_api``) and REST
to HAfAH for paged account operations. Transient transport errors are retried
with exponential backoff; a history page that still fails is logged and
skipped, except the first page, without which paging cannot proceed.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import get_settings
from hivepay.services._helpers import parse_iso
from hivepay.services.amounts import as_raw_amount, normalize_raw_amount
from hivepay.services.errors import (
    DataSourceError,
    HistorySourceError,
    InvalidAmountError,
    RatioSourceError,
)
from hivepay.services.schemas.chain import (
    AccountBalance,
    DelegationEvent,
    GlobalRatio,
    RewardEvent,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DELEGATION_OP_TYPE: int = 40  # delegate_vesting_shares_operation
CURATION_REWARD_OP_TYPE: int = 52  # curation_reward_operation


def _block_date(value: datetime) -> str:
    """HAfAH accepts timestamps for from-block / to-block."""
    return value.strftime("%Y-%m-%d %H:%M:%S")


class HiveClient:
    """Async client for the Hive node and HAfAH REST API."""

    def __init__(
        self,
        rpc_url: str | None = None,
        hafah_url: str | None = None,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        page_size: int | None = None,
        reward_page_size: int | None = None,
        page_delay: float | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        hive = get_settings().hive
        self.rpc_url: str = rpc_url or hive.rpc_url
        self.hafah_url: str = (hafah_url or hive.hafah_url).rstrip("/")
        self.timeout: float = timeout if timeout is not None else hive.rpc_timeout
        self.retry_attempts: int = retry_attempts if retry_attempts is not None else hive.retry_attempts
        self.retry_delay: float = retry_delay if retry_delay is not None else hive.retry_delay
        self.page_size: int = page_size or hive.page_size
        self.reward_page_size: int = reward_page_size or hive.reward_page_size
        self.page_delay: float = page_delay if page_delay is not None else hive.page_delay
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=self.timeout)
        self._owns_client: bool = client is None
        self._sleep = sleep
        self.skipped_pages: int = 0

    async def __aenter__(self) -> "HiveClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_delay, max=10),
            retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
            reraise=True,
        )

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        async for attempt in self._retrying():
            with attempt:
                response = await self._client.get(url, params=params)
                response.raise_for_status()
                return response.json()

    async def _rpc(self, method: str, params: Any) -> Any:
        payload: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}
        async for attempt in self._retrying():
            with attempt:
                response = await self._client.post(self.rpc_url, json=payload)
                response.raise_for_status()
                body: dict[str, Any] = response.json()
        if "error" in body:
            raise DataSourceError(f"{method} failed: {body['error']}")
        return body["result"]

    # -- Global properties ------------------------------------------------

    async def fetch_global_ratio(self) -> GlobalRatio:
        try:
            props: dict[str, Any] = await self._rpc("database_api.get_dynamic_global_properties", {})
            fund: Decimal = normalize_raw_amount(props["total_vesting_fund_hive"])
            shares: Decimal = normalize_raw_amount(props["total_vesting_shares"])
        except (httpx.HTTPError, KeyError, ValueError, InvalidAmountError, DataSourceError) as e:
            raise RatioSourceError(f"Cannot read global properties: {e}") from e
        if shares <= 0:
            raise RatioSourceError("total_vesting_shares is zero")
        logger.debug("Fetched global properties", fund=str(fund), shares=str(shares))
        return GlobalRatio(
            numerator_total=fund,
            denominator_total=shares,
            ratio=fund / shares,
            cached_at=0.0,
        )

    async def get_balance(self, account: str) -> AccountBalance:
        try:
            result: list[dict[str, Any]] = await self._rpc("condenser_api.get_accounts", [[account]])
        except (httpx.HTTPError, DataSourceError) as e:
            raise DataSourceError(f"Cannot read balance for {account}: {e}") from e
        if not result:
            raise DataSourceError(f"Account not found: {account}")
        return AccountBalance(
            account=account,
            hive=normalize_raw_amount(result[0]["balance"]),
            hbd=normalize_raw_amount(result[0]["hbd_balance"]),
        )

    # -- Account history --------------------------------------------------

    async def _fetch_page(
        self, account: str, query: dict[str, Any], page: int | None
    ) -> dict[str, Any]:
        params: dict[str, Any] = dict(query)
        if page is not None:
            params["page"] = page
        return await self._get_json(f"{self.hafah_url}/accounts/{account}/operations", params)

    async def _fetch_operations(self, account: str, query: dict[str, Any]) -> list[dict[str, Any]]:
        """All pages for ``query``. Later pages that keep failing are skipped."""
        try:
            first: dict[str, Any] = await self._fetch_page(account, query, None)
        except (httpx.HTTPError, ValueError) as e:
            raise HistorySourceError(f"Cannot read history for {account}: {e}") from e

        operations: list[dict[str, Any]] = list(first.get("operations_result") or [])
        total_pages: int = int(first.get("total_pages") or 1)

        for page in range(2, total_pages + 1):
            await self._sleep(self.page_delay)
            try:
                data: dict[str, Any] = await self._fetch_page(account, query, page)
            except (httpx.HTTPError, ValueError) as e:
                self.skipped_pages += 1
                logger.warning(
                    "Skipping history page",
                    account=account,
                    page=page,
                    total_pages=total_pages,
                    error=str(e),
                )
                continue
            operations.extend(data.get("operations_result") or [])

        seen: set[str] = set()
        unique: list[dict[str, Any]] = []
        for op in operations:
            op_id: str = str(op.get("operation_id", ""))
            if op_id and op_id in seen:
                continue
            seen.add(op_id)
            unique.append(op)
        logger.info(
            "Fetched account operations",
            account=account,
            operation_types=query.get("operation-types"),
            pages=total_pages,
            operations=len(unique),
        )
        return unique

    async def fetch_delegation_events(
        self, account: str, until: datetime | None = None
    ) -> list[DelegationEvent]:
        query: dict[str, Any] = {
            "operation-types": str(DELEGATION_OP_TYPE),
            "page-size": self.page_size,
        }
        if until is not None:
            query["to-block"] = _block_date(until)

        events: list[DelegationEvent] = []
        for op in await self._fetch_operations(account, query):
            try:
                value: dict[str, Any] = op["op"]["value"]
                events.append(
                    DelegationEvent(
                        delegator=value["delegator"],
                        delegatee=value["delegatee"],
                        staked_amount=as_raw_amount(value["vesting_shares"]),
                        block_number=int(op["block"]),
                        timestamp=parse_iso(op["timestamp"]),
                        tx_id=op.get("trx_id") or "",
                        operation_id=str(op.get("operation_id") or "") or None,
                    )
                )
            except (KeyError, TypeError, ValueError, InvalidAmountError) as e:
                logger.warning("Skipping malformed delegation op", account=account, error=str(e))
        return events

    async def fetch_reward_events(
        self, account: str, since: datetime, until: datetime | None = None
    ) -> list[RewardEvent]:
        query: dict[str, Any] = {
            "operation-types": str(CURATION_REWARD_OP_TYPE),
            "page-size": self.reward_page_size,
            "from-block": _block_date(since),
        }
        if until is not None:
            query["to-block"] = _block_date(until)

        events: list[RewardEvent] = []
        for op in await self._fetch_operations(account, query):
            try:
                value: dict[str, Any] = op["op"]["value"]
                events.append(
                    RewardEvent(
                        operation_id=str(op["operation_id"]),
                        curator=value.get("curator", account),
                        reward=as_raw_amount(value["reward"]),
                        block_number=int(op["block"]),
                        timestamp=parse_iso(op["timestamp"]),
                        author=value.get("comment_author"),
                        permlink=value.get("comment_permlink"),
                    )
                )
            except (KeyError, TypeError, ValueError, InvalidAmountError) as e:
                logger.warning("Skipping malformed curation reward op", account=account, error=str(e))
        return events
