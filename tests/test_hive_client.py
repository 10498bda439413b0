"""Tests for HiveClient against a mocked HTTP transport."""

from collections.abc import Callable
from datetime import timedelta
from decimal import Decimal
from typing import Any

import httpx
import pytest

from hivepay.services.errors import HistorySourceError, RatioSourceError
from hivepay.services.hive_client import HiveClient
from tests.fakes import NOW

Handler = Callable[[httpx.Request], httpx.Response]


async def _no_sleep(_: float) -> None:
    return None


def _client(handler: Handler) -> HiveClient:
    return HiveClient(
        rpc_url="https://node.test",
        hafah_url="https://node.test/hafah-api/",
        retry_attempts=2,
        retry_delay=0,
        page_size=2,
        page_delay=0,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=_no_sleep,
    )


def _delegation_op(op_id: int, delegator: str, vests: str, block: int) -> dict[str, Any]:
    return {
        "op": {
            "type": "delegate_vesting_shares_operation",
            "value": {
                "delegator": delegator,
                "delegatee": "aliento",
                "vesting_shares": {"amount": vests, "precision": 6, "nai": "@@000000037"},
            },
        },
        "block": block,
        "trx_id": f"trx{op_id}",
        "timestamp": "2026-01-10T08:00:00",
        "operation_id": str(op_id),
    }


def _rpc_response(result: Any) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


class TestGlobalRatio:
    async def test_ratio_from_properties(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return _rpc_response(
                {
                    "total_vesting_fund_hive": {"amount": "1000000", "precision": 3, "nai": "@@000000021"},
                    "total_vesting_shares": {"amount": "2000000000000", "precision": 6, "nai": "@@000000037"},
                }
            )

        async with _client(handler) as client:
            ratio = await client.fetch_global_ratio()

        assert ratio.ratio == Decimal("0.0005")
        assert ratio.denominator_total == Decimal(2_000_000)

    async def test_zero_shares(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return _rpc_response(
                {"total_vesting_fund_hive": "1.000 HIVE", "total_vesting_shares": "0.000000 VESTS"}
            )

        with pytest.raises(RatioSourceError):
            await _client(handler).fetch_global_ratio()

    async def test_rpc_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "boom"}})

        with pytest.raises(RatioSourceError):
            await _client(handler).fetch_global_ratio()

    async def test_transient_error_retried(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ConnectError("refused", request=request)
            return _rpc_response(
                {"total_vesting_fund_hive": "500.000 HIVE", "total_vesting_shares": "1000000.000000 VESTS"}
            )

        ratio = await _client(handler).fetch_global_ratio()

        assert ratio.ratio == Decimal("0.0005")
        assert len(calls) == 2


class TestHistoryPaging:
    async def test_pages_and_skips_failed_page(self) -> None:
        pages: dict[str | None, list[dict[str, Any]]] = {
            None: [_delegation_op(1, "alice", "200000000000", 10), _delegation_op(2, "bob", "0", 11)],
            "3": [_delegation_op(5, "carol", "400000000000", 20)],
        }
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/hafah-api/accounts/aliento/operations"
            assert request.url.params["operation-types"] == "40"
            page: str | None = request.url.params.get("page")
            seen.append(page)
            if page == "2":
                return httpx.Response(500)
            return httpx.Response(200, json={"total_pages": 3, "operations_result": pages[page]})

        client = _client(handler)
        events = await client.fetch_delegation_events("aliento")

        assert [e.delegator for e in events] == ["alice", "bob", "carol"]
        assert events[0].block_number == 10
        assert events[0].timestamp.tzinfo is not None
        assert client.skipped_pages == 1
        assert seen == [None, "2", "2", "3"]

    async def test_first_page_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        with pytest.raises(HistorySourceError):
            await _client(handler).fetch_delegation_events("aliento")

    async def test_duplicates_and_malformed_dropped(self) -> None:
        broken: dict[str, Any] = {"op": {"value": {}}, "block": 1, "timestamp": "x", "operation_id": "9"}

        def handler(request: httpx.Request) -> httpx.Response:
            ops = [_delegation_op(1, "alice", "1", 10), _delegation_op(1, "alice", "1", 10), broken]
            return httpx.Response(200, json={"total_pages": 1, "operations_result": ops})

        assert len(await _client(handler).fetch_delegation_events("aliento")) == 1

    async def test_reward_query_window(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            op: dict[str, Any] = {
                "op": {
                    "type": "curation_reward_operation",
                    "value": {
                        "curator": "aliento",
                        "reward": {"amount": "2000000", "precision": 6, "nai": "@@000000037"},
                        "comment_author": "writer",
                        "comment_permlink": "post",
                    },
                },
                "block": 5,
                "timestamp": "2026-02-28T00:00:00",
                "operation_id": "77",
            }
            return httpx.Response(200, json={"total_pages": 1, "operations_result": [op]})

        events = await _client(handler).fetch_reward_events("aliento", since=NOW - timedelta(days=30))

        params = captured[0].url.params
        assert params["operation-types"] == "52"
        assert params["from-block"] == "2026-01-30 12:00:00"
        assert events[0].operation_id == "77"
        assert events[0].author == "writer"


class TestBalance:
    async def test_balance(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return _rpc_response([{"balance": "12.345 HIVE", "hbd_balance": "1.000 HBD"}])

        balance = await _client(handler).get_balance("aliento")

        assert balance.hive == Decimal("12.345")
        assert balance.hbd == Decimal("1.000")
