"""Unit tests for FundingManagerEngine governance setters and queries."""

from unittest.mock import MagicMock

import pytest

from src.fm_access.domain.roles import RoleRegistry
from src.fm_common.enums import FeeDirection
from src.fm_common.errors import (
    CallerNotAuthorizedError,
    FeeExceedsMaximumError,
    InvalidPriceSourceInterfaceError,
    InvalidProjectTreasuryError,
    InvalidTokenDecimalsError,
)
from src.fm_fees.domain.fee_engine import BPS_SCALE
from src.fm_funding.domain import events as ev
from src.fm_funding.engine.engine import FundingManagerEngine
from src.fm_ledger.infrastructure.memory_token import InMemoryToken
from src.fm_pricing.domain.manual_price_source import ManualPriceSource

ALICE = "0xalice"
GOV = "0xgov"
TREASURY = "0xtreasury"
NULL = "0x" + "0" * 40


class StaticPriceSource:
    def __init__(self, rate: int) -> None:
        self.rate = rate

    async def get_price_for_issuance(self) -> int:
        return self.rate

    async def get_price_for_redemption(self) -> int:
        return self.rate


class TestFees:
    @pytest.mark.asyncio
    async def test_max_below_current_fee_rejected(self, engine: FundingManagerEngine) -> None:
        # fixture buy fee is 100 bps
        with pytest.raises(FeeExceedsMaximumError):
            await engine.set_max_buy_fee(GOV, 50)
        cfg = engine.get_fee_config(FeeDirection.BUY)
        assert cfg.current_fee_bps == 100
        assert cfg.max_fee_bps == BPS_SCALE

    @pytest.mark.asyncio
    async def test_fee_above_max_rejected(self, engine: FundingManagerEngine) -> None:
        await engine.set_max_sell_fee(GOV, 300)
        with pytest.raises(FeeExceedsMaximumError):
            await engine.set_sell_fee(GOV, 301)
        assert engine.get_fee_config(FeeDirection.SELL).current_fee_bps == 100

    @pytest.mark.asyncio
    async def test_set_fee_emits_event(self, engine: FundingManagerEngine) -> None:
        await engine.set_buy_fee(GOV, 250)
        event = engine.events[-1]
        assert event.name == ev.FEE_UPDATED
        assert event.payload == {"direction": "BUY", "old": 100, "new": 250}

    @pytest.mark.asyncio
    async def test_fee_setters_require_governance(self, engine: FundingManagerEngine) -> None:
        with pytest.raises(CallerNotAuthorizedError):
            await engine.set_buy_fee(ALICE, 0)
        with pytest.raises(CallerNotAuthorizedError):
            await engine.set_max_sell_fee(ALICE, 0)


class TestTreasury:
    def test_null_treasury_rejected_at_construction(
        self,
        collateral: InMemoryToken,
        issuance: InMemoryToken,
        prices: ManualPriceSource,
        roles: RoleRegistry,
    ) -> None:
        with pytest.raises(InvalidProjectTreasuryError):
            FundingManagerEngine(
                collateral_token=collateral,
                issuance_token=issuance,
                price_source=prices,
                authorizer=roles,
                project_treasury=NULL,
            )

    @pytest.mark.asyncio
    async def test_set_treasury(self, engine: FundingManagerEngine) -> None:
        await engine.set_project_treasury(GOV, "0xnewtreasury")
        assert engine.project_treasury == "0xnewtreasury"
        assert engine.events[-1].payload == {"old": TREASURY, "new": "0xnewtreasury"}

    @pytest.mark.asyncio
    async def test_null_treasury_rejected(self, engine: FundingManagerEngine) -> None:
        with pytest.raises(InvalidProjectTreasuryError):
            await engine.set_project_treasury(GOV, NULL)
        assert engine.project_treasury == TREASURY


class TestOracle:
    @pytest.mark.asyncio
    async def test_swap_price_source(self, engine: FundingManagerEngine) -> None:
        await engine.set_oracle_address(GOV, StaticPriceSource(5 * 10**17))
        assert await engine.get_static_price_for_buying() == 5 * 10**17
        assert engine.events[-1].name == ev.ORACLE_UPDATED

    @pytest.mark.asyncio
    async def test_invalid_source_keeps_previous(self, engine: FundingManagerEngine) -> None:
        with pytest.raises(InvalidPriceSourceInterfaceError):
            await engine.set_oracle_address(GOV, object())  # type: ignore[arg-type]
        assert await engine.get_static_price_for_buying() == 2 * 10**18
        assert await engine.get_static_price_for_selling() == 10**18

    @pytest.mark.asyncio
    async def test_same_source_is_noop(
        self, engine: FundingManagerEngine, prices: ManualPriceSource
    ) -> None:
        before = len(engine.events)
        await engine.set_oracle_address(GOV, prices)
        assert len(engine.events) == before


class TestIssuanceToken:
    @pytest.mark.asyncio
    async def test_replacement_recaptures_decimals(self, engine: FundingManagerEngine) -> None:
        token = InMemoryToken("ISS8", 8)
        await engine.set_issuance_token(GOV, token)
        assert engine.issuance_token is token
        assert engine.decimals.issuance == 8
        # 1 USDC at 2.0 with 1% fee -> 1.98 tokens at 8 decimals
        assert await engine.calculate_purchase_return(1_000_000) == 198_000_000

    @pytest.mark.asyncio
    async def test_invalid_decimals_rejected(self, engine: FundingManagerEngine) -> None:
        token = MagicMock()
        token.decimals.return_value = 30
        with pytest.raises(InvalidTokenDecimalsError):
            await engine.set_issuance_token(GOV, token)
        assert engine.decimals.issuance == 18


class TestGates:
    @pytest.mark.asyncio
    async def test_open_close(self, engine: FundingManagerEngine) -> None:
        await engine.close_buy(GOV)
        await engine.close_sell(GOV)
        assert not engine.buy_is_open
        assert not engine.sell_is_open
        await engine.open_buy(GOV)
        assert engine.buy_is_open
        assert engine.events[-1].name == ev.BUY_STATUS_UPDATED

    @pytest.mark.asyncio
    async def test_unchanged_gate_emits_nothing(self, engine: FundingManagerEngine) -> None:
        before = len(engine.events)
        await engine.open_sell(GOV)
        assert len(engine.events) == before

    @pytest.mark.asyncio
    async def test_direct_operations_flag(self, engine: FundingManagerEngine) -> None:
        await engine.set_is_direct_operations_only(GOV, True)
        assert engine.is_direct_operations_only
        assert engine.events[-1].name == ev.DIRECT_OPERATIONS_ONLY_UPDATED

    @pytest.mark.asyncio
    async def test_gates_require_governance(self, engine: FundingManagerEngine) -> None:
        with pytest.raises(CallerNotAuthorizedError):
            await engine.close_buy(ALICE)
        with pytest.raises(CallerNotAuthorizedError):
            await engine.set_is_direct_operations_only(ALICE, True)
