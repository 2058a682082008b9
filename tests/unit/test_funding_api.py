"""HTTP tests for the funding and admin routers (in-process engine, no DB/Redis)."""

from collections.abc import Iterator

import pytest
from httpx import AsyncClient

from src.fm_funding.application.service import (
    FundingApplicationService,
    set_funding_service,
)
from src.fm_funding.engine.engine import FundingManagerEngine
from src.fm_gateway.auth.jwt_handler import create_access_token
from src.fm_ledger.infrastructure.memory_token import InMemoryToken
from src.fm_pricing.domain.manual_price_source import ManualPriceSource

ALICE = "0xalice"
MALLORY = "0xmallory"
GOV = "0xgov"
EXECUTOR = "0xexecutor"
MANAGER = "0xmanager"
PRICER = "0xpricer"


def _auth(address: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(address)}"}


@pytest.fixture(autouse=True)
def service(
    engine: FundingManagerEngine, prices: ManualPriceSource
) -> Iterator[FundingApplicationService]:
    svc = FundingApplicationService(engine, price_source=prices)
    set_funding_service(svc)
    yield svc
    set_funding_service(None)


class TestPublicEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_state(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/state")
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["buy_fee_bps"] == 100
        assert data["collateral_decimals"] == 6
        assert data["issuance_decimals"] == 18
        assert data["next_order_id"] == 1

    @pytest.mark.asyncio
    async def test_quote_buy(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/quote/buy", params={"amount": 1_000_000})
        data = resp.json()["data"]
        assert data["amount_out"] == 1_980_000 * 10**12
        assert data["amount_out_display"] == "1.980000000000000000"

    @pytest.mark.asyncio
    async def test_quote_rejects_zero(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/quote/sell", params={"amount": 0})
        assert resp.status_code == 422
        assert resp.json()["code"] == 3001

    @pytest.mark.asyncio
    async def test_unknown_order(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/orders/99")
        assert resp.status_code == 404
        assert resp.json()["code"] == 5002

    @pytest.mark.asyncio
    async def test_request_id_header(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/state")
        request_id = resp.headers["X-Request-ID"]
        assert request_id.startswith("req_")
        assert resp.json()["request_id"] == request_id

    @pytest.mark.asyncio
    async def test_request_id_header_is_propagated(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/orders/99", headers={"X-Request-ID": "trace-42"})
        assert resp.headers["X-Request-ID"] == "trace-42"
        assert resp.json()["request_id"] == "trace-42"

    @pytest.mark.asyncio
    async def test_malformed_request_id_replaced(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "bad id/with spaces"})
        assert resp.headers["X-Request-ID"].startswith("req_")

    @pytest.mark.asyncio
    async def test_history_without_journal(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/funding/orders/history")
        assert resp.status_code == 500
        assert resp.json()["code"] == 9002


class TestTrading:
    @pytest.mark.asyncio
    async def test_buy_requires_token(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/funding/buy", json={"amount": 1_000_000, "min_amount_out": 1}
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_buy(self, client: AsyncClient, issuance: InMemoryToken) -> None:
        resp = await client.post(
            "/api/v1/funding/buy",
            json={"amount": 1_000_000, "min_amount_out": 1},
            headers=_auth(ALICE),
        )
        body = resp.json()
        assert resp.status_code == 200
        assert body["code"] == 0
        assert body["data"]["issued_amount"] == 1_980_000 * 10**12
        assert body["data"]["deposit_display"] == "1.000000"
        assert await issuance.balance_of(ALICE) == 1_980_000 * 10**12

    @pytest.mark.asyncio
    async def test_buy_not_whitelisted(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/funding/buy",
            json={"amount": 1_000_000, "min_amount_out": 1},
            headers=_auth(MALLORY),
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == 1001

    @pytest.mark.asyncio
    async def test_sell_and_list(self, client: AsyncClient, issuance: InMemoryToken) -> None:
        await issuance.mint(ALICE, 10**18)
        resp = await client.post(
            "/api/v1/funding/sell",
            json={"amount": 10**18, "min_amount_out": 1, "receiver": "0xbob"},
            headers=_auth(ALICE),
        )
        order = resp.json()["data"]
        assert resp.status_code == 200
        assert order["order_id"] == 1
        assert order["receiver"] == "0xbob"
        assert order["final_redemption_amount"] == 990_000
        assert order["state"] == "PENDING"

        listed = await client.get("/api/v1/funding/orders", params={"state": "PENDING"})
        assert [o["order_id"] for o in listed.json()["data"]["items"]] == [1]
        single = await client.get("/api/v1/funding/orders/1")
        assert single.json()["data"]["final_redemption_display"] == "0.990000"


class TestAdmin:
    @pytest.mark.asyncio
    async def test_set_fee(self, client: AsyncClient) -> None:
        resp = await client.put(
            "/api/v1/admin/fees/SELL", json={"fee_bps": 50}, headers=_auth(GOV)
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["sell_fee_bps"] == 50

    @pytest.mark.asyncio
    async def test_max_fee_below_current(self, client: AsyncClient) -> None:
        resp = await client.put(
            "/api/v1/admin/fees/BUY/max", json={"fee_bps": 50}, headers=_auth(GOV)
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 2003

    @pytest.mark.asyncio
    async def test_admin_requires_governance(self, client: AsyncClient) -> None:
        resp = await client.put(
            "/api/v1/admin/treasury", json={"treasury": "0xnew"}, headers=_auth(ALICE)
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_close_buy(self, client: AsyncClient) -> None:
        resp = await client.put(
            "/api/v1/admin/BUY/status", json={"is_open": False}, headers=_auth(GOV)
        )
        assert resp.json()["data"]["buy_is_open"] is False
        buy = await client.post(
            "/api/v1/funding/buy",
            json={"amount": 1_000_000, "min_amount_out": 1},
            headers=_auth(ALICE),
        )
        assert buy.json()["code"] == 3005

    @pytest.mark.asyncio
    async def test_publish_prices(self, client: AsyncClient) -> None:
        resp = await client.put(
            "/api/v1/admin/prices", json={"issuance_price": 3_000_000}, headers=_auth(PRICER)
        )
        assert resp.json()["data"] == {"issuance_price": 3_000_000, "redemption_price": 1_000_000}

    @pytest.mark.asyncio
    async def test_queue_lifecycle(self, client: AsyncClient, issuance: InMemoryToken) -> None:
        await issuance.mint(ALICE, 2 * 10**18)
        for _ in range(2):
            await client.post(
                "/api/v1/funding/sell",
                json={"amount": 10**18, "min_amount_out": 1},
                headers=_auth(ALICE),
            )

        executed = await client.post("/api/v1/admin/queue/execute", headers=_auth(EXECUTOR))
        assert executed.json()["data"] == {"order_ids": [1, 2], "total_amount": 1_980_000}

        done = await client.post("/api/v1/admin/orders/1/complete", headers=_auth(MANAGER))
        assert done.json()["data"]["state"] == "COMPLETED"

        settled = await client.post(
            "/api/v1/admin/queue/settle", json={"amount": 990_000}, headers=_auth(MANAGER)
        )
        assert settled.json()["data"] == {"order_ids": [2], "open_redemption_amount": 0}

        over = await client.post(
            "/api/v1/admin/queue/settle", json={"amount": 1}, headers=_auth(MANAGER)
        )
        assert over.status_code == 500
        assert over.json()["code"] == 9003

        state = await client.get("/api/v1/funding/state")
        assert state.json()["data"]["open_redemption_amount"] == 0

    @pytest.mark.asyncio
    async def test_settle_must_match_whole_orders(
        self, client: AsyncClient, issuance: InMemoryToken
    ) -> None:
        await issuance.mint(ALICE, 10**18)
        await client.post(
            "/api/v1/funding/sell",
            json={"amount": 10**18, "min_amount_out": 1},
            headers=_auth(ALICE),
        )
        await client.post("/api/v1/admin/queue/execute", headers=_auth(EXECUTOR))
        resp = await client.post(
            "/api/v1/admin/queue/settle", json={"amount": 500_000}, headers=_auth(MANAGER)
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 5004
