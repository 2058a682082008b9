# src/fm_redemption/infrastructure/db_models.py
"""ORM model for the redemption_orders table.

DDL reference for alembic only; the journal queries it with raw SQL.
"""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.fm_common.database import Base

# uint256-sized amounts do not fit BIGINT
_AMOUNT = Numeric(78, 0)


class RedemptionOrderORM(Base):
    __tablename__ = "redemption_orders"

    order_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    seller: Mapped[str] = mapped_column(String(64), nullable=False)
    receiver: Mapped[str] = mapped_column(String(64), nullable=False)
    deposit_amount: Mapped[int] = mapped_column(_AMOUNT, nullable=False)
    exchange_rate: Mapped[int] = mapped_column(_AMOUNT, nullable=False)
    fee_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    fee_amount: Mapped[int] = mapped_column(_AMOUNT, nullable=False)
    final_redemption_amount: Mapped[int] = mapped_column(_AMOUNT, nullable=False)
    collateral_token: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
