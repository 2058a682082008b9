"""Pydantic schemas and cursor utilities for the funding API.

Amounts are integers in the token's smallest unit. Input bounds are checked
by the engine so the API answers with the engine's error codes.
"""

import base64
import json

from pydantic import BaseModel, Field

from src.fm_common.datetime_utils import to_iso
from src.fm_common.decimals import amount_to_display
from src.fm_redemption.domain.models import RedemptionOrder

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode an order id into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BuyRequest(BaseModel):
    amount: int = Field(..., description="Collateral to deposit, smallest unit")
    min_amount_out: int = Field(..., description="Minimum issuance tokens to receive")
    receiver: str | None = Field(None, description="Beneficiary; omit to buy for yourself")


class SellRequest(BaseModel):
    amount: int = Field(..., description="Issuance tokens to redeem, smallest unit")
    min_amount_out: int = Field(..., description="Minimum collateral owed after fee")
    receiver: str | None = Field(None, description="Collateral receiver; omit for yourself")


class FeeUpdateRequest(BaseModel):
    fee_bps: int = Field(..., description="Basis points, 10000 = 100%")


class TreasuryUpdateRequest(BaseModel):
    treasury: str


class DirectOperationsRequest(BaseModel):
    enabled: bool


class TradingStatusRequest(BaseModel):
    is_open: bool


class PriceUpdateRequest(BaseModel):
    """Prices in collateral-token decimals; at least one must be set."""

    issuance_price: int | None = None
    redemption_price: int | None = None


class SettleAmountRequest(BaseModel):
    amount: int = Field(..., ge=0, description="Collateral paid out, smallest unit")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BuyResponse(BaseModel):
    receiver: str
    deposit_amount: int
    deposit_display: str
    issued_amount: int
    issued_display: str

    @classmethod
    def from_result(
        cls,
        receiver: str,
        deposit: int,
        issued: int,
        collateral_decimals: int,
        issuance_decimals: int,
    ) -> "BuyResponse":
        return cls(
            receiver=receiver,
            deposit_amount=deposit,
            deposit_display=amount_to_display(deposit, collateral_decimals),
            issued_amount=issued,
            issued_display=amount_to_display(issued, issuance_decimals),
        )


class RedemptionOrderItem(BaseModel):
    order_id: int
    seller: str
    receiver: str
    deposit_amount: int
    deposit_display: str
    exchange_rate: int
    fee_percentage: int
    fee_amount: int
    final_redemption_amount: int
    final_redemption_display: str
    collateral_token: str
    state: str
    created_at: str  # ISO8601 string
    updated_at: str

    @classmethod
    def from_order(
        cls, order: RedemptionOrder, collateral_decimals: int, issuance_decimals: int
    ) -> "RedemptionOrderItem":
        return cls(
            order_id=order.order_id,
            seller=order.seller,
            receiver=order.receiver,
            deposit_amount=order.deposit_amount,
            deposit_display=amount_to_display(order.deposit_amount, issuance_decimals),
            exchange_rate=order.exchange_rate,
            fee_percentage=order.fee_percentage,
            fee_amount=order.fee_amount,
            final_redemption_amount=order.final_redemption_amount,
            final_redemption_display=amount_to_display(
                order.final_redemption_amount, collateral_decimals
            ),
            collateral_token=order.collateral_token,
            state=order.state.value,
            created_at=to_iso(order.created_at),
            updated_at=to_iso(order.updated_at),
        )


class OrderListResponse(BaseModel):
    items: list[RedemptionOrderItem]
    next_cursor: str | None = None
    has_more: bool = False


class QuoteResponse(BaseModel):
    amount_in: int
    amount_out: int
    amount_out_display: str


class FundingStateResponse(BaseModel):
    buy_fee_bps: int
    max_buy_fee_bps: int
    sell_fee_bps: int
    max_sell_fee_bps: int
    buy_is_open: bool
    sell_is_open: bool
    direct_operations_only: bool
    project_treasury: str
    collateral_decimals: int
    issuance_decimals: int
    open_redemption_amount: int
    open_redemption_display: str
    order_id: int
    next_order_id: int
    buy_fee_collected: int
    sell_fee_collected: int


class QueueExecutionResponse(BaseModel):
    order_ids: list[int]
    total_amount: int


class SettleAmountResponse(BaseModel):
    order_ids: list[int]
    open_redemption_amount: int
