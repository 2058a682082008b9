# src/fm_redemption/infrastructure/persistence.py
"""SqlRedemptionJournal: raw SQL journal of redemption orders.

Writes run in their own short transaction so the engine can compensate
(discard) a journaled order when a later step of the same sell fails.
"""
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.fm_common.datetime_utils import as_utc
from src.fm_common.enums import RedemptionState
from src.fm_redemption.domain.models import RedemptionOrder

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO redemption_orders (order_id, seller, receiver,
        deposit_amount, exchange_rate, fee_percentage, fee_amount,
        final_redemption_amount, collateral_token, state, created_at, updated_at)
    VALUES (:order_id, :seller, :receiver,
        :deposit_amount, :exchange_rate, :fee_percentage, :fee_amount,
        :final_redemption_amount, :collateral_token, :state, :created_at, :updated_at)
""")

_DELETE_ORDER_SQL = text("DELETE FROM redemption_orders WHERE order_id = :order_id")

_UPDATE_STATES_SQL = text("""
    UPDATE redemption_orders
    SET state = :state, updated_at = NOW()
    WHERE order_id = ANY(:order_ids)
""")

_SELECT_COLUMNS = """
    order_id, seller, receiver, deposit_amount, exchange_rate, fee_percentage,
    fee_amount, final_redemption_amount, collateral_token, state, created_at, updated_at
"""

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM redemption_orders
    WHERE (CAST(:state AS TEXT) IS NULL OR state = :state)
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR order_id < :cursor_id)
    ORDER BY order_id DESC
    LIMIT :limit
""")

_LOAD_OPEN_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM redemption_orders
    WHERE state IN ('PENDING', 'PROCESSING')
    ORDER BY order_id
""")

_MAX_ORDER_ID_SQL = text("SELECT COALESCE(MAX(order_id), 0) FROM redemption_orders")

_GET_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM redemption_orders
    WHERE order_id = :order_id
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> RedemptionOrder:
    """Convert a DB result row to a RedemptionOrder domain object."""
    return RedemptionOrder(
        order_id=int(row.order_id),
        seller=row.seller,
        receiver=row.receiver,
        deposit_amount=int(row.deposit_amount),
        exchange_rate=int(row.exchange_rate),
        fee_percentage=int(row.fee_percentage),
        fee_amount=int(row.fee_amount),
        final_redemption_amount=int(row.final_redemption_amount),
        collateral_token=row.collateral_token,
        state=RedemptionState(row.state),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


# ---------------------------------------------------------------------------
# Journal
# ---------------------------------------------------------------------------


class SqlRedemptionJournal:
    """Concrete implementation of RedemptionJournalProtocol using raw SQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, order: RedemptionOrder) -> None:
        async with self._session_factory() as db, db.begin():
            await db.execute(
                _INSERT_ORDER_SQL,
                {
                    "order_id": order.order_id,
                    "seller": order.seller,
                    "receiver": order.receiver,
                    "deposit_amount": Decimal(order.deposit_amount),
                    "exchange_rate": Decimal(order.exchange_rate),
                    "fee_percentage": order.fee_percentage,
                    "fee_amount": Decimal(order.fee_amount),
                    "final_redemption_amount": Decimal(order.final_redemption_amount),
                    "collateral_token": order.collateral_token,
                    "state": order.state.value,
                    "created_at": order.created_at,
                    "updated_at": order.updated_at,
                },
            )

    async def discard(self, order_id: int) -> None:
        async with self._session_factory() as db, db.begin():
            await db.execute(_DELETE_ORDER_SQL, {"order_id": order_id})

    async def update_states(self, order_ids: list[int], state: RedemptionState) -> None:
        if not order_ids:
            return
        async with self._session_factory() as db, db.begin():
            await db.execute(
                _UPDATE_STATES_SQL, {"order_ids": order_ids, "state": state.value}
            )

    async def load_open(self) -> list[RedemptionOrder]:
        async with self._session_factory() as db:
            result = await db.execute(_LOAD_OPEN_SQL)
            return [_row_to_order(row) for row in result.fetchall()]

    async def max_order_id(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(_MAX_ORDER_ID_SQL)
            return int(result.scalar_one())

    async def get(self, order_id: int) -> RedemptionOrder | None:
        async with self._session_factory() as db:
            result = await db.execute(_GET_ORDER_SQL, {"order_id": order_id})
            row = result.fetchone()
            return _row_to_order(row) if row is not None else None

    async def list_orders(
        self,
        db: AsyncSession,
        state: RedemptionState | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[RedemptionOrder]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "state": state.value if state else None,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_order(row) for row in result.fetchall()]
