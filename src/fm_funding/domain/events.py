"""Domain events recorded by the funding engine.

Consumers (audit log, notifications) read FundingManagerEngine.events; the
engine never pushes them anywhere itself.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.fm_common.datetime_utils import utc_now

TOKENS_BOUGHT = "TokensBought"
TOKENS_SOLD = "TokensSold"
REDEMPTION_ORDER_CREATED = "RedemptionOrderCreated"
REDEMPTION_QUEUE_EXECUTED = "RedemptionQueueExecuted"
REDEMPTION_ORDER_SETTLED = "RedemptionOrderSettled"
REDEMPTION_AMOUNT_DEDUCTED = "RedemptionAmountDeducted"
FEE_UPDATED = "FeeUpdated"
MAX_FEE_UPDATED = "MaxFeeUpdated"
PROJECT_TREASURY_UPDATED = "ProjectTreasuryUpdated"
DIRECT_OPERATIONS_ONLY_UPDATED = "DirectOperationsOnlyUpdated"
ORACLE_UPDATED = "OracleUpdated"
ISSUANCE_TOKEN_UPDATED = "IssuanceTokenUpdated"
BUY_STATUS_UPDATED = "BuyStatusUpdated"
SELL_STATUS_UPDATED = "SellStatusUpdated"


@dataclass(frozen=True)
class DomainEvent:
    name: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=utc_now)
