"""FundingApplicationService: thin composition layer over FundingManagerEngine.

Maps request schemas to engine calls and engine results to response schemas.
The process-wide instance is built lazily from settings by
get_funding_service(); tests construct the service around their own engine.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_access.domain.roles import RoleRegistry
from src.fm_common.database import async_session_factory
from src.fm_common.decimals import amount_to_display
from src.fm_common.enums import Capability, FeeDirection, RedemptionState
from src.fm_common.errors import InternalError, InvalidPriceError, OrderNotFoundError
from src.fm_fees.domain.fee_engine import FeeEngine
from src.fm_funding.application.schemas import (
    BuyRequest,
    BuyResponse,
    FundingStateResponse,
    OrderListResponse,
    PriceUpdateRequest,
    QueueExecutionResponse,
    QuoteResponse,
    RedemptionOrderItem,
    SellRequest,
    SettleAmountResponse,
    cursor_decode,
    cursor_encode,
)
from src.fm_funding.engine.engine import FundingManagerEngine
from src.fm_ledger.infrastructure.memory_token import InMemoryToken
from src.fm_pricing.domain.manual_price_source import ManualPriceSource
from src.fm_redemption.domain.models import RedemptionOrder
from src.fm_redemption.infrastructure.batcher import RecordingSettlementBatcher
from src.fm_redemption.infrastructure.persistence import SqlRedemptionJournal

logger = logging.getLogger(__name__)


class FundingApplicationService:
    def __init__(
        self,
        engine: FundingManagerEngine,
        price_source: ManualPriceSource | None = None,
        journal: SqlRedemptionJournal | None = None,
    ) -> None:
        self.engine = engine
        self.price_source = price_source
        self.journal = journal

    # --- user operations ---

    async def buy(self, caller: str, body: BuyRequest) -> BuyResponse:
        if body.receiver is None:
            receiver = caller
            issued = await self.engine.buy(caller, body.amount, body.min_amount_out)
        else:
            receiver = body.receiver
            issued = await self.engine.buy_for(
                caller, receiver, body.amount, body.min_amount_out
            )
        d = self.engine.decimals
        return BuyResponse.from_result(receiver, body.amount, issued, d.collateral, d.issuance)

    async def sell(self, caller: str, body: SellRequest) -> RedemptionOrderItem:
        if body.receiver is None:
            order = await self.engine.sell(caller, body.amount, body.min_amount_out)
        else:
            order = await self.engine.sell_to(
                caller, body.receiver, body.amount, body.min_amount_out
            )
        return self._item(order)

    async def quote_buy(self, amount: int) -> QuoteResponse:
        out = await self.engine.calculate_purchase_return(amount)
        return QuoteResponse(
            amount_in=amount,
            amount_out=out,
            amount_out_display=amount_to_display(out, self.engine.decimals.issuance),
        )

    async def quote_sell(self, amount: int) -> QuoteResponse:
        out = await self.engine.calculate_sale_return(amount)
        return QuoteResponse(
            amount_in=amount,
            amount_out=out,
            amount_out_display=amount_to_display(out, self.engine.decimals.collateral),
        )

    # --- queries ---

    def get_state(self) -> FundingStateResponse:
        e = self.engine
        buy_cfg = e.get_fee_config(FeeDirection.BUY)
        sell_cfg = e.get_fee_config(FeeDirection.SELL)
        open_amount = e.get_open_redemption_amount()
        return FundingStateResponse(
            buy_fee_bps=buy_cfg.current_fee_bps,
            max_buy_fee_bps=buy_cfg.max_fee_bps,
            sell_fee_bps=sell_cfg.current_fee_bps,
            max_sell_fee_bps=sell_cfg.max_fee_bps,
            buy_is_open=e.buy_is_open,
            sell_is_open=e.sell_is_open,
            direct_operations_only=e.is_direct_operations_only,
            project_treasury=e.project_treasury,
            collateral_decimals=e.decimals.collateral,
            issuance_decimals=e.decimals.issuance,
            open_redemption_amount=open_amount,
            open_redemption_display=amount_to_display(open_amount, e.decimals.collateral),
            order_id=e.get_order_id(),
            next_order_id=e.get_next_order_id(),
            buy_fee_collected=e.get_fee_collected(FeeDirection.BUY),
            sell_fee_collected=e.get_fee_collected(FeeDirection.SELL),
        )

    async def get_order(self, order_id: int) -> RedemptionOrderItem:
        """Live order from the queue, else the journaled terminal record."""
        try:
            return self._item(self.engine.get_order(order_id))
        except OrderNotFoundError:
            if self.journal is None:
                raise
        order = await self.journal.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return self._item(order)

    def list_orders(self, state: RedemptionState | None) -> OrderListResponse:
        return OrderListResponse(items=[self._item(o) for o in self.engine.list_orders(state)])

    async def list_order_history(
        self,
        db: AsyncSession,
        state: RedemptionState | None,
        cursor: str | None,
        limit: int,
    ) -> OrderListResponse:
        if self.journal is None:
            raise InternalError("Redemption journal is disabled")
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        orders = await self.journal.list_orders(db, state, cursor_decode(cursor), limit + 1)
        has_more = len(orders) > limit
        page = orders[:limit]
        next_cursor = cursor_encode(page[-1].order_id) if has_more and page else None
        return OrderListResponse(
            items=[self._item(o) for o in page], next_cursor=next_cursor, has_more=has_more
        )

    # --- governance ---

    async def set_fee(
        self, caller: str, direction: FeeDirection, fee_bps: int
    ) -> FundingStateResponse:
        if direction is FeeDirection.BUY:
            await self.engine.set_buy_fee(caller, fee_bps)
        else:
            await self.engine.set_sell_fee(caller, fee_bps)
        return self.get_state()

    async def set_max_fee(
        self, caller: str, direction: FeeDirection, max_fee_bps: int
    ) -> FundingStateResponse:
        if direction is FeeDirection.BUY:
            await self.engine.set_max_buy_fee(caller, max_fee_bps)
        else:
            await self.engine.set_max_sell_fee(caller, max_fee_bps)
        return self.get_state()

    async def set_trading_status(
        self, caller: str, direction: FeeDirection, is_open: bool
    ) -> FundingStateResponse:
        if direction is FeeDirection.BUY:
            await (self.engine.open_buy(caller) if is_open else self.engine.close_buy(caller))
        else:
            await (self.engine.open_sell(caller) if is_open else self.engine.close_sell(caller))
        return self.get_state()

    def set_prices(self, caller: str, body: PriceUpdateRequest) -> dict[str, int]:
        if self.price_source is None:
            raise InternalError("Manual price source is not configured")
        if body.issuance_price is None and body.redemption_price is None:
            raise InvalidPriceError()
        if body.issuance_price is not None and body.redemption_price is not None:
            self.price_source.set_issuance_and_redemption_price(
                caller, body.issuance_price, body.redemption_price
            )
        elif body.issuance_price is not None:
            self.price_source.set_issuance_price(caller, body.issuance_price)
        elif body.redemption_price is not None:
            self.price_source.set_redemption_price(caller, body.redemption_price)
        return {
            "issuance_price": self.price_source.get_issuance_price_in_collateral_decimals(),
            "redemption_price": self.price_source.get_redemption_price_in_collateral_decimals(),
        }

    # --- settlement ---

    async def execute_queue(self, caller: str) -> QueueExecutionResponse:
        batch = await self.engine.execute_redemption_queue(caller)
        return QueueExecutionResponse(
            order_ids=[o.order_id for o in batch],
            total_amount=sum(o.final_redemption_amount for o in batch),
        )

    async def mark_settled(self, caller: str, amount: int) -> SettleAmountResponse:
        settled = await self.engine.mark_settled(caller, amount)
        return SettleAmountResponse(
            order_ids=[o.order_id for o in settled],
            open_redemption_amount=self.engine.get_open_redemption_amount(),
        )

    async def finalize_order(
        self, caller: str, order_id: int, completed: bool
    ) -> RedemptionOrderItem:
        if completed:
            order = await self.engine.complete_order(caller, order_id)
        else:
            order = await self.engine.cancel_order(caller, order_id)
        return self._item(order)

    def _item(self, order: RedemptionOrder) -> RedemptionOrderItem:
        d = self.engine.decimals
        return RedemptionOrderItem.from_order(order, d.collateral, d.issuance)


# ---------------------------------------------------------------------------
# Process-wide wiring
# ---------------------------------------------------------------------------

_service: FundingApplicationService | None = None


def build_funding_service() -> FundingApplicationService:
    """Wire the engine from settings with in-process ledgers and batcher."""
    roles = RoleRegistry(
        {
            Capability.GOVERNANCE: settings.GOVERNANCE_ADDRESSES,
            Capability.WHITELIST: settings.WHITELIST_ADDRESSES,
            Capability.QUEUE_EXECUTOR: settings.QUEUE_EXECUTOR_ADDRESSES,
            Capability.QUEUE_MANAGER: settings.QUEUE_MANAGER_ADDRESSES,
            Capability.PRICE_SETTER: settings.PRICE_SETTER_ADDRESSES,
        }
    )
    collateral = InMemoryToken(settings.COLLATERAL_TOKEN_SYMBOL, settings.COLLATERAL_TOKEN_DECIMALS)
    issuance = InMemoryToken(settings.ISSUANCE_TOKEN_SYMBOL, settings.ISSUANCE_TOKEN_DECIMALS)
    price_source = ManualPriceSource(roles, settings.COLLATERAL_TOKEN_DECIMALS)

    journal: SqlRedemptionJournal | None = None
    if settings.REDEMPTION_JOURNAL_ENABLED:
        journal = SqlRedemptionJournal(async_session_factory)

    engine = FundingManagerEngine(
        collateral_token=collateral,
        issuance_token=issuance,
        price_source=price_source,
        authorizer=roles,
        project_treasury=settings.PROJECT_TREASURY,
        settlement=RecordingSettlementBatcher(),
        fees=FeeEngine(
            buy_fee_bps=settings.BUY_FEE_BPS,
            sell_fee_bps=settings.SELL_FEE_BPS,
            max_buy_fee_bps=settings.MAX_BUY_FEE_BPS,
            max_sell_fee_bps=settings.MAX_SELL_FEE_BPS,
        ),
        direct_operations_only=settings.DIRECT_OPERATIONS_ONLY,
        buy_is_open=settings.BUY_IS_OPEN,
        sell_is_open=settings.SELL_IS_OPEN,
        journal=journal,
    )
    logger.info(
        "Funding engine ready: collateral=%s(%d) issuance=%s(%d) journal=%s",
        collateral.symbol,
        collateral.decimals(),
        issuance.symbol,
        issuance.decimals(),
        journal is not None,
    )
    return FundingApplicationService(engine, price_source=price_source, journal=journal)


def get_funding_service() -> FundingApplicationService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = build_funding_service()
    return _service


def set_funding_service(service: FundingApplicationService | None) -> None:
    """Replace the process-wide service (tests, alternative wiring)."""
    global _service  # noqa: PLW0603
    _service = service
