"""RedemptionQueue: owns order ids, open orders and the open redemption total.

Invariants after every public call:
  - open_redemption_amount == sum(final_redemption_amount) over open orders
  - order ids are 1, 2, 3, ... in creation order, no gaps, no reuse
  - open_redemption_amount >= 0; an over-settlement raises, never clamps

Terminal orders are dropped from memory when retain_terminal is False (the
journal holds them). A checkpoint records the counters and a copy of every
order touched afterwards, so a failed unit of work is undone in O(touched).
"""

import logging
from dataclasses import dataclass, replace

from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import RedemptionState
from src.fm_common.errors import (
    InvalidOrderStateError,
    OpenRedemptionUnderflowError,
    OrderNotFoundError,
    SettlementAmountMismatchError,
)
from src.fm_redemption.domain.models import RedemptionOrder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueCheckpoint:
    last_order_id: int
    open_redemption_amount: int


class RedemptionQueue:
    def __init__(self, retain_terminal: bool = True) -> None:
        self._retain_terminal = retain_terminal
        self._last_order_id = 0
        self._open_redemption_amount = 0
        # insertion order == id order
        self._orders: dict[int, RedemptionOrder] = {}
        # pre-images of orders modified since checkpoint(); None when no checkpoint is open
        self._saved: dict[int, RedemptionOrder] | None = None

    @property
    def open_redemption_amount(self) -> int:
        return self._open_redemption_amount

    @property
    def order_id(self) -> int:
        """Id of the most recently created order, 0 before the first one."""
        return self._last_order_id

    @property
    def next_order_id(self) -> int:
        return self._last_order_id + 1

    def restore(self, orders: list[RedemptionOrder], last_order_id: int) -> None:
        """Rebuild an empty queue from journaled open orders and the highest id ever issued."""
        if self._last_order_id or self._orders:
            raise ValueError("restore() needs an empty queue")
        open_orders = sorted((o for o in orders if o.is_open), key=lambda o: o.order_id)
        if open_orders and open_orders[-1].order_id > last_order_id:
            raise ValueError(
                f"order {open_orders[-1].order_id} is newer than last id {last_order_id}"
            )
        self._orders = {o.order_id: replace(o) for o in open_orders}
        self._open_redemption_amount = sum(o.final_redemption_amount for o in open_orders)
        self._last_order_id = last_order_id
        logger.info(
            "Redemption queue restored: %d open orders, open=%d, last id=%d",
            len(open_orders),
            self._open_redemption_amount,
            last_order_id,
        )

    def create_order(
        self,
        seller: str,
        receiver: str,
        deposit_amount: int,
        exchange_rate: int,
        fee_percentage: int,
        fee_amount: int,
        final_redemption_amount: int,
        collateral_token: str,
    ) -> RedemptionOrder:
        order_id = self.next_order_id
        now = utc_now()
        order = RedemptionOrder(
            order_id=order_id,
            seller=seller,
            receiver=receiver,
            deposit_amount=deposit_amount,
            exchange_rate=exchange_rate,
            fee_percentage=fee_percentage,
            fee_amount=fee_amount,
            final_redemption_amount=final_redemption_amount,
            collateral_token=collateral_token,
            state=RedemptionState.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._orders[order_id] = order
        self._open_redemption_amount += final_redemption_amount
        self._last_order_id = order_id
        logger.info(
            "Redemption order %d queued: receiver=%s amount=%d open=%d",
            order_id,
            receiver,
            final_redemption_amount,
            self._open_redemption_amount,
        )
        return replace(order)

    def get(self, order_id: int) -> RedemptionOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return replace(order)

    def list_orders(self, state: RedemptionState | None = None) -> list[RedemptionOrder]:
        return [
            replace(o) for o in self._orders.values() if state is None or o.state == state
        ]

    def pending_ids(self) -> list[int]:
        return [o.order_id for o in self._orders.values() if o.state == RedemptionState.PENDING]

    def mark_processing(self, order_ids: list[int]) -> list[RedemptionOrder]:
        """PENDING -> PROCESSING for the given ids; returns the handed-over copies."""
        batch: list[RedemptionOrder] = []
        for order_id in order_ids:
            order = self._require_state(order_id, RedemptionState.PENDING)
            self._save(order)
            order.state = RedemptionState.PROCESSING
            order.updated_at = utc_now()
            batch.append(replace(order))
        return batch

    def finalize(self, order_id: int, state: RedemptionState) -> RedemptionOrder:
        """PROCESSING -> COMPLETED/CANCELLED, releasing the order from the open total."""
        if not state.is_terminal:
            raise ValueError(f"{state.value} is not a terminal redemption state")
        order = self._require_state(order_id, RedemptionState.PROCESSING)
        if order.final_redemption_amount > self._open_redemption_amount:
            raise OpenRedemptionUnderflowError(
                order.final_redemption_amount, self._open_redemption_amount
            )
        return self._close(order, state)

    def settle_amount(self, amount: int) -> list[RedemptionOrder]:
        """Complete PROCESSING orders oldest-first whose finals add up to exactly amount."""
        if amount < 0 or amount > self._open_redemption_amount:
            logger.error(
                "Open redemption underflow: settle=%d open=%d",
                amount,
                self._open_redemption_amount,
            )
            raise OpenRedemptionUnderflowError(amount, self._open_redemption_amount)

        matched: list[RedemptionOrder] = []
        covered = 0
        for order in self._orders.values():
            if covered == amount:
                break
            if order.state != RedemptionState.PROCESSING:
                continue
            if covered + order.final_redemption_amount > amount:
                break
            covered += order.final_redemption_amount
            matched.append(order)
        if covered != amount:
            raise SettlementAmountMismatchError(amount, covered)
        return [self._close(order, RedemptionState.COMPLETED) for order in matched]

    # --- checkpoint / undo ---

    def checkpoint(self) -> QueueCheckpoint:
        self._saved = {}
        return QueueCheckpoint(self._last_order_id, self._open_redemption_amount)

    def rollback(self, checkpoint: QueueCheckpoint) -> None:
        for order_id in range(checkpoint.last_order_id + 1, self._last_order_id + 1):
            self._orders.pop(order_id, None)
        for order_id, original in (self._saved or {}).items():
            if order_id <= checkpoint.last_order_id:
                self._orders[order_id] = original
        if self._saved:
            self._orders = dict(sorted(self._orders.items()))
        self._last_order_id = checkpoint.last_order_id
        self._open_redemption_amount = checkpoint.open_redemption_amount
        self._saved = None

    def release(self) -> None:
        self._saved = None

    # --- internals ---

    def _close(self, order: RedemptionOrder, state: RedemptionState) -> RedemptionOrder:
        self._save(order)
        self._open_redemption_amount -= order.final_redemption_amount
        order.state = state
        order.updated_at = utc_now()
        closed = replace(order)
        if not self._retain_terminal:
            del self._orders[order.order_id]
        return closed

    def _save(self, order: RedemptionOrder) -> None:
        if self._saved is not None and order.order_id not in self._saved:
            self._saved[order.order_id] = replace(order)

    def _require_state(self, order_id: int, expected: RedemptionState) -> RedemptionOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.state != expected:
            raise InvalidOrderStateError(order_id, order.state.value)
        return order
