"""Redemption order domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.fm_common.enums import RedemptionState


@dataclass
class RedemptionOrder:
    order_id: int
    seller: str  # burned the issuance tokens
    receiver: str  # owed the collateral
    deposit_amount: int  # issuance tokens burned
    exchange_rate: int  # redemption rate used, 18 decimals
    fee_percentage: int  # sell fee used, bps
    fee_amount: int  # collateral retained by the protocol
    final_redemption_amount: int  # net collateral owed
    collateral_token: str
    state: RedemptionState = RedemptionState.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return not self.state.is_terminal
