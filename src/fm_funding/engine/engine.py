"""FundingManagerEngine: oracle-priced issuance and queued redemption.

Every mutating entry point:
  1. runs under the engine lock (single writer, no interleaving)
  2. checks capability, gates and inputs, then prices the operation
  3. mutates internal state before awaiting any external collaborator
  4. on failure undoes queue and fee changes and compensates completed calls

Pricing (rates are 18-decimal fixed point):
  buy:  minted = from18(to18(gross - buy_fee, col) * issuance_rate / 1e18, iss)
  sell: gross  = from18(to18(deposit, iss) * redemption_rate / 1e18, col)
        net    = gross - sell_fee
"""
import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace

from src.fm_access.domain.authorizer import AuthorizerProtocol, require_capability
from src.fm_common.address import is_null_address
from src.fm_common.decimals import from_internal, mul_rate, to_internal, validate_decimals
from src.fm_common.enums import Capability, FeeDirection, RedemptionState
from src.fm_common.errors import (
    BuyingClosedError,
    DirectOperationsOnlyError,
    InsufficientBalanceError,
    InsufficientOutputAmountError,
    InvalidDepositAmountError,
    InvalidMinAmountOutError,
    InvalidProjectTreasuryError,
    QueueExecutionFailedError,
    SellingClosedError,
)
from src.fm_fees.domain.fee_engine import FeeConfig, FeeEngine
from src.fm_funding.domain import events as ev
from src.fm_funding.domain.events import DomainEvent
from src.fm_funding.engine.unit_of_work import UnitOfWork
from src.fm_ledger.domain.token import TokenLedgerProtocol
from src.fm_pricing.domain.price_source import PriceSourceAdapter, PriceSourceProtocol
from src.fm_redemption.domain.models import RedemptionOrder
from src.fm_redemption.domain.queue import RedemptionQueue
from src.fm_redemption.domain.settlement import RedemptionJournalProtocol, SettlementProtocol

logger = logging.getLogger(__name__)

EVENT_LOG_SIZE = 1_000


@dataclass(frozen=True)
class TokenDecimalsPair:
    collateral: int
    issuance: int


@dataclass
class FundingState:
    """Everything an invocation may mutate."""

    decimals: TokenDecimalsPair
    fees: FeeEngine
    project_treasury: str
    queue: RedemptionQueue = field(default_factory=RedemptionQueue)
    direct_operations_only: bool = False
    buy_is_open: bool = True
    sell_is_open: bool = True
    fee_collected: dict[FeeDirection, int] = field(
        default_factory=lambda: {FeeDirection.BUY: 0, FeeDirection.SELL: 0}
    )
    events: deque[DomainEvent] = field(default_factory=lambda: deque(maxlen=EVENT_LOG_SIZE))


class FundingManagerEngine:
    def __init__(
        self,
        collateral_token: TokenLedgerProtocol,
        issuance_token: TokenLedgerProtocol,
        price_source: PriceSourceProtocol,
        authorizer: AuthorizerProtocol,
        project_treasury: str,
        settlement: SettlementProtocol | None = None,
        fees: FeeEngine | None = None,
        direct_operations_only: bool = False,
        buy_is_open: bool = True,
        sell_is_open: bool = True,
        journal: RedemptionJournalProtocol | None = None,
    ) -> None:
        if is_null_address(project_treasury):
            raise InvalidProjectTreasuryError()
        self._collateral = collateral_token
        self._issuance = issuance_token
        self._prices = PriceSourceAdapter(price_source)
        self._authorizer = authorizer
        self._settlement = settlement
        self._journal = journal
        self._lock = asyncio.Lock()
        self._uow: UnitOfWork | None = None
        self._state = FundingState(
            decimals=TokenDecimalsPair(
                collateral=validate_decimals(collateral_token.decimals()),
                issuance=validate_decimals(issuance_token.decimals()),
            ),
            fees=fees or FeeEngine(),
            project_treasury=project_treasury,
            queue=RedemptionQueue(retain_terminal=journal is None),
            direct_operations_only=direct_operations_only,
            buy_is_open=buy_is_open,
            sell_is_open=sell_is_open,
        )

    # ------------------------------------------------------------------
    # Buy path
    # ------------------------------------------------------------------

    async def buy(self, caller: str, amount: int, min_amount_out: int) -> int:
        """Deposit collateral, mint issuance to the caller. Returns minted amount."""
        return await self._buy_order(caller, caller, amount, min_amount_out, direct=True)

    async def buy_for(
        self, caller: str, receiver: str, amount: int, min_amount_out: int
    ) -> int:
        """Deposit the caller's collateral, mint issuance to receiver."""
        return await self._buy_order(caller, receiver, amount, min_amount_out, direct=False)

    async def calculate_purchase_return(self, amount: int) -> int:
        if amount <= 0:
            raise InvalidDepositAmountError()
        rate = await self._prices.issuance_rate()
        _, net = self._state.fees.apply_fee(amount, FeeDirection.BUY)
        return self._issuance_amount(net, rate)

    async def _buy_order(
        self, caller: str, receiver: str, amount: int, min_amount_out: int, direct: bool
    ) -> int:
        async with self._lock:
            self._check_direct(direct)
            require_capability(self._authorizer, Capability.WHITELIST, caller)
            if not self._state.buy_is_open:
                raise BuyingClosedError()
            _validate_amounts(amount, min_amount_out)

            rate = await self._prices.issuance_rate()
            fee, net = self._state.fees.apply_fee(amount, FeeDirection.BUY)
            minted = self._issuance_amount(net, rate)
            if minted < min_amount_out:
                raise InsufficientOutputAmountError(minted, min_amount_out)

            async with self._transaction("buy") as uow:
                state = self._state
                treasury = state.project_treasury
                state.fee_collected[FeeDirection.BUY] += fee
                self._emit(
                    ev.TOKENS_BOUGHT,
                    buyer=caller,
                    receiver=receiver,
                    deposit_amount=amount,
                    fee_amount=fee,
                    issued_amount=minted,
                    exchange_rate=rate,
                )

                collateral, issuance = self._collateral, self._issuance
                await collateral.transfer_from(caller, treasury, amount)
                uow.on_rollback(
                    "refund collateral",
                    lambda: collateral.transfer_from(treasury, caller, amount),
                )
                await issuance.mint(receiver, minted)
                uow.on_rollback("burn minted", lambda: issuance.burn(receiver, minted))

        logger.info(
            "Buy: caller=%s receiver=%s deposit=%d fee=%d minted=%d",
            caller,
            receiver,
            amount,
            fee,
            minted,
        )
        return minted

    # ------------------------------------------------------------------
    # Sell path
    # ------------------------------------------------------------------

    async def sell(self, caller: str, amount: int, min_amount_out: int) -> RedemptionOrder:
        """Burn the caller's issuance and queue collateral owed to the caller."""
        return await self._sell_order(caller, caller, amount, min_amount_out, direct=True)

    async def sell_to(
        self, caller: str, receiver: str, amount: int, min_amount_out: int
    ) -> RedemptionOrder:
        """Burn the caller's issuance and queue collateral owed to receiver."""
        return await self._sell_order(caller, receiver, amount, min_amount_out, direct=False)

    async def calculate_sale_return(self, amount: int) -> int:
        if amount <= 0:
            raise InvalidDepositAmountError()
        rate = await self._prices.redemption_rate()
        gross = self._redemption_amount(amount, rate)
        _, net = self._state.fees.apply_fee(gross, FeeDirection.SELL)
        return net

    async def _sell_order(
        self, caller: str, receiver: str, amount: int, min_amount_out: int, direct: bool
    ) -> RedemptionOrder:
        async with self._lock:
            self._check_direct(direct)
            require_capability(self._authorizer, Capability.WHITELIST, caller)
            if not self._state.sell_is_open:
                raise SellingClosedError()
            if amount <= 0:
                raise InvalidDepositAmountError()
            balance = await self._issuance.balance_of(caller)
            if balance < amount:
                raise InsufficientBalanceError(amount, balance)
            if min_amount_out <= 0:
                raise InvalidMinAmountOutError()

            rate = await self._prices.redemption_rate()
            gross = self._redemption_amount(amount, rate)
            fee_bps = self._state.fees.fee_bps(FeeDirection.SELL)
            fee, net = self._state.fees.apply_fee(gross, FeeDirection.SELL)
            if net < min_amount_out:
                raise InsufficientOutputAmountError(net, min_amount_out)

            async with self._transaction("sell") as uow:
                state = self._state
                order = state.queue.create_order(
                    seller=caller,
                    receiver=receiver,
                    deposit_amount=amount,
                    exchange_rate=rate,
                    fee_percentage=fee_bps,
                    fee_amount=fee,
                    final_redemption_amount=net,
                    collateral_token=self._collateral.address,
                )
                state.fee_collected[FeeDirection.SELL] += fee
                self._emit(
                    ev.TOKENS_SOLD,
                    seller=caller,
                    receiver=receiver,
                    deposit_amount=amount,
                    fee_amount=fee,
                    redeem_amount=net,
                )
                self._emit(
                    ev.REDEMPTION_ORDER_CREATED,
                    order_id=order.order_id,
                    receiver=receiver,
                    final_redemption_amount=net,
                    open_redemption_amount=state.queue.open_redemption_amount,
                )

                journal = self._journal
                if journal is not None:
                    await journal.record(order)
                    uow.on_rollback(
                        "discard journaled order", lambda: journal.discard(order.order_id)
                    )
                issuance = self._issuance
                await issuance.burn(caller, amount)
                uow.on_rollback("re-mint burned", lambda: issuance.mint(caller, amount))

        logger.info(
            "Sell: caller=%s receiver=%s deposit=%d gross=%d fee=%d order=%d",
            caller,
            receiver,
            amount,
            gross,
            fee,
            order.order_id,
        )
        return order

    # ------------------------------------------------------------------
    # Redemption queue
    # ------------------------------------------------------------------

    async def execute_redemption_queue(self, caller: str) -> list[RedemptionOrder]:
        """Hand every PENDING order to the settlement collaborator as one batch."""
        async with self._lock:
            require_capability(self._authorizer, Capability.QUEUE_EXECUTOR, caller)
            settlement = self._settlement
            if not isinstance(settlement, SettlementProtocol):
                raise QueueExecutionFailedError(
                    "settlement collaborator does not implement submit_batch"
                )
            pending = self._state.queue.pending_ids()
            if not pending:
                return []

            async with self._transaction("execute_redemption_queue") as uow:
                batch = self._state.queue.mark_processing(pending)
                self._emit(
                    ev.REDEMPTION_QUEUE_EXECUTED,
                    order_ids=pending,
                    total_amount=sum(o.final_redemption_amount for o in batch),
                )
                journal = self._journal
                if journal is not None:
                    await journal.update_states(pending, RedemptionState.PROCESSING)
                    uow.on_rollback(
                        "restore PENDING in journal",
                        lambda: journal.update_states(pending, RedemptionState.PENDING),
                    )
                try:
                    accepted = await settlement.submit_batch(batch)
                except Exception as exc:
                    raise QueueExecutionFailedError(str(exc)) from exc
                if not accepted:
                    raise QueueExecutionFailedError("settlement rejected the batch")

        logger.info("Redemption queue executed: %d orders handed to settlement", len(batch))
        return batch

    async def mark_settled(self, caller: str, amount: int) -> list[RedemptionOrder]:
        """Settlement reports amount paid out.

        The amount must equal the finals of the oldest PROCESSING orders taken
        in id order; those orders become COMPLETED and are returned.
        """
        async with self._lock:
            require_capability(self._authorizer, Capability.QUEUE_MANAGER, caller)
            async with self._transaction("mark_settled"):
                queue = self._state.queue
                settled = queue.settle_amount(amount)
                for order in settled:
                    self._emit(
                        ev.REDEMPTION_ORDER_SETTLED,
                        order_id=order.order_id,
                        state=order.state.value,
                        amount=order.final_redemption_amount,
                        open_redemption_amount=queue.open_redemption_amount,
                    )
                order_ids = [o.order_id for o in settled]
                self._emit(
                    ev.REDEMPTION_AMOUNT_DEDUCTED,
                    amount=amount,
                    open_redemption_amount=queue.open_redemption_amount,
                    order_ids=order_ids,
                )
                if self._journal is not None and order_ids:
                    await self._journal.update_states(order_ids, RedemptionState.COMPLETED)

        logger.info(
            "Settlement reported %d: completed orders %s, open=%d",
            amount,
            order_ids,
            self._state.queue.open_redemption_amount,
        )
        return settled

    async def restore_from_journal(self) -> int:
        """Reload open orders and the id counter after a restart. Returns the order count."""
        journal = self._journal
        if journal is None:
            return 0
        async with self._lock:
            orders = await journal.load_open()
            last_order_id = await journal.max_order_id()
            self._state.queue.restore(orders, last_order_id)
        return len(orders)

    async def complete_order(self, caller: str, order_id: int) -> RedemptionOrder:
        return await self._finalize_order(caller, order_id, RedemptionState.COMPLETED)

    async def cancel_order(self, caller: str, order_id: int) -> RedemptionOrder:
        return await self._finalize_order(caller, order_id, RedemptionState.CANCELLED)

    async def _finalize_order(
        self, caller: str, order_id: int, state: RedemptionState
    ) -> RedemptionOrder:
        async with self._lock:
            require_capability(self._authorizer, Capability.QUEUE_MANAGER, caller)
            async with self._transaction("finalize_order"):
                order = self._state.queue.finalize(order_id, state)
                self._emit(
                    ev.REDEMPTION_ORDER_SETTLED,
                    order_id=order_id,
                    state=state.value,
                    amount=order.final_redemption_amount,
                    open_redemption_amount=self._state.queue.open_redemption_amount,
                )
                if self._journal is not None:
                    await self._journal.update_states([order_id], state)
            return order

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    async def set_buy_fee(self, caller: str, fee_bps: int) -> None:
        await self._set_fee(caller, FeeDirection.BUY, fee_bps)

    async def set_sell_fee(self, caller: str, fee_bps: int) -> None:
        await self._set_fee(caller, FeeDirection.SELL, fee_bps)

    async def set_max_buy_fee(self, caller: str, max_fee_bps: int) -> None:
        await self._set_max_fee(caller, FeeDirection.BUY, max_fee_bps)

    async def set_max_sell_fee(self, caller: str, max_fee_bps: int) -> None:
        await self._set_max_fee(caller, FeeDirection.SELL, max_fee_bps)

    async def _set_fee(self, caller: str, direction: FeeDirection, fee_bps: int) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            old = self._state.fees.fee_bps(direction)
            self._state.fees.set_fee(direction, fee_bps)
            if old != fee_bps:
                self._emit(ev.FEE_UPDATED, direction=direction.value, old=old, new=fee_bps)

    async def _set_max_fee(self, caller: str, direction: FeeDirection, max_fee_bps: int) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            old = self._state.fees.max_fee_bps(direction)
            self._state.fees.set_max_fee(direction, max_fee_bps)
            if old != max_fee_bps:
                self._emit(
                    ev.MAX_FEE_UPDATED, direction=direction.value, old=old, new=max_fee_bps
                )

    # ------------------------------------------------------------------
    # Configuration / treasury
    # ------------------------------------------------------------------

    async def set_project_treasury(self, caller: str, treasury: str) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            if is_null_address(treasury):
                raise InvalidProjectTreasuryError()
            old = self._state.project_treasury
            self._state.project_treasury = treasury
            self._emit(ev.PROJECT_TREASURY_UPDATED, old=old, new=treasury)

    async def set_is_direct_operations_only(self, caller: str, flag: bool) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            if self._state.direct_operations_only != flag:
                self._state.direct_operations_only = flag
                self._emit(ev.DIRECT_OPERATIONS_ONLY_UPDATED, value=flag)

    async def set_oracle_address(self, caller: str, price_source: PriceSourceProtocol) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            if price_source is self._prices.source:
                return
            self._prices.attach(price_source)
            self._emit(ev.ORACLE_UPDATED, source=type(price_source).__name__)

    async def set_issuance_token(self, caller: str, token: TokenLedgerProtocol) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            decimals = validate_decimals(token.decimals())
            self._issuance = token
            self._state.decimals = replace(self._state.decimals, issuance=decimals)
            self._emit(ev.ISSUANCE_TOKEN_UPDATED, token=token.address, decimals=decimals)

    async def open_buy(self, caller: str) -> None:
        await self._set_buy_status(caller, True)

    async def close_buy(self, caller: str) -> None:
        await self._set_buy_status(caller, False)

    async def open_sell(self, caller: str) -> None:
        await self._set_sell_status(caller, True)

    async def close_sell(self, caller: str) -> None:
        await self._set_sell_status(caller, False)

    async def _set_buy_status(self, caller: str, is_open: bool) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            if self._state.buy_is_open != is_open:
                self._state.buy_is_open = is_open
                self._emit(ev.BUY_STATUS_UPDATED, is_open=is_open)

    async def _set_sell_status(self, caller: str, is_open: bool) -> None:
        async with self._lock:
            require_capability(self._authorizer, Capability.GOVERNANCE, caller)
            if self._state.sell_is_open != is_open:
                self._state.sell_is_open = is_open
                self._emit(ev.SELL_STATUS_UPDATED, is_open=is_open)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_static_price_for_buying(self) -> int:
        return await self._prices.issuance_rate()

    async def get_static_price_for_selling(self) -> int:
        return await self._prices.redemption_rate()

    def get_open_redemption_amount(self) -> int:
        return self._state.queue.open_redemption_amount

    def get_order_id(self) -> int:
        return self._state.queue.order_id

    def get_next_order_id(self) -> int:
        return self._state.queue.next_order_id

    def get_order(self, order_id: int) -> RedemptionOrder:
        return self._state.queue.get(order_id)

    def list_orders(self, state: RedemptionState | None = None) -> list[RedemptionOrder]:
        return self._state.queue.list_orders(state)

    def get_fee_config(self, direction: FeeDirection) -> FeeConfig:
        return self._state.fees.config(direction)

    def get_fee_collected(self, direction: FeeDirection) -> int:
        return self._state.fee_collected[direction]

    @property
    def project_treasury(self) -> str:
        return self._state.project_treasury

    @property
    def is_direct_operations_only(self) -> bool:
        return self._state.direct_operations_only

    @property
    def buy_is_open(self) -> bool:
        return self._state.buy_is_open

    @property
    def sell_is_open(self) -> bool:
        return self._state.sell_is_open

    @property
    def decimals(self) -> TokenDecimalsPair:
        return self._state.decimals

    @property
    def collateral_token(self) -> TokenLedgerProtocol:
        return self._collateral

    @property
    def issuance_token(self) -> TokenLedgerProtocol:
        return self._issuance

    @property
    def events(self) -> list[DomainEvent]:
        return list(self._state.events)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _issuance_amount(self, collateral_amount: int, rate: int) -> int:
        d = self._state.decimals
        internal = mul_rate(to_internal(collateral_amount, d.collateral), rate)
        return from_internal(internal, d.issuance)

    def _redemption_amount(self, issuance_amount: int, rate: int) -> int:
        d = self._state.decimals
        internal = mul_rate(to_internal(issuance_amount, d.issuance), rate)
        return from_internal(internal, d.collateral)

    def _check_direct(self, direct: bool) -> None:
        if not direct and self._state.direct_operations_only:
            raise DirectOperationsOnlyError()

    def _emit(self, name: str, **payload: object) -> None:
        event = DomainEvent(name=name, payload=payload)
        if self._uow is not None:
            # published only if the unit of work commits
            self._uow.events.append(event)
            return
        self._publish(event)

    def _publish(self, event: DomainEvent) -> None:
        self._state.events.append(event)
        logger.debug("event %s %s", event.name, event.payload)

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[UnitOfWork]:
        state = self._state
        fee_collected = dict(state.fee_collected)
        checkpoint = state.queue.checkpoint()
        uow = UnitOfWork(operation)
        self._uow = uow
        try:
            yield uow
        except Exception as exc:
            logger.warning("%s failed (%s), rolling back", operation, exc)
            self._uow = None
            await uow.rollback()
            state.queue.rollback(checkpoint)
            state.fee_collected = fee_collected
            raise
        self._uow = None
        state.queue.release()
        for event in uow.events:
            self._publish(event)


def _validate_amounts(amount: int, min_amount_out: int) -> None:
    if amount <= 0:
        raise InvalidDepositAmountError()
    if min_amount_out <= 0:
        raise InvalidMinAmountOutError()
