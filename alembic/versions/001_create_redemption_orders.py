"""001: create redemption_orders table

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE redemption_orders (
            order_id                BIGINT          PRIMARY KEY,
            seller                  VARCHAR(64)     NOT NULL,
            receiver                VARCHAR(64)     NOT NULL,
            deposit_amount          NUMERIC(78, 0)  NOT NULL,
            exchange_rate           NUMERIC(78, 0)  NOT NULL,
            fee_percentage          INT             NOT NULL,
            fee_amount              NUMERIC(78, 0)  NOT NULL,
            final_redemption_amount NUMERIC(78, 0)  NOT NULL,
            collateral_token        VARCHAR(64)     NOT NULL,
            state                   VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_redemption_orders_order_id    CHECK (order_id > 0),
            CONSTRAINT ck_redemption_orders_deposit     CHECK (deposit_amount > 0),
            CONSTRAINT ck_redemption_orders_rate        CHECK (exchange_rate > 0),
            CONSTRAINT ck_redemption_orders_fee_pct     CHECK (fee_percentage BETWEEN 0 AND 10000),
            CONSTRAINT ck_redemption_orders_fee_amount  CHECK (fee_amount >= 0),
            CONSTRAINT ck_redemption_orders_final       CHECK (final_redemption_amount >= 0),
            CONSTRAINT ck_redemption_orders_state       CHECK (
                state IN ('PENDING', 'PROCESSING', 'COMPLETED', 'CANCELLED')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_redemption_orders_open
        ON redemption_orders (order_id)
        WHERE state IN ('PENDING', 'PROCESSING');
    """)
    op.execute(
        "CREATE INDEX idx_redemption_orders_receiver ON redemption_orders (receiver, order_id DESC);"
    )
    op.execute("COMMENT ON TABLE redemption_orders IS 'Queued redemption orders, one row per sell';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS redemption_orders CASCADE;")
