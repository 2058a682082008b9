"""RecordingSettlementBatcher: keeps submitted batches in memory.

Stands in for the payment executor in local wiring: it accepts every batch
and exposes what it received. Payments are reported back to the engine by
whoever holds QUEUE_MANAGER.
"""

import logging

from src.fm_redemption.domain.models import RedemptionOrder

logger = logging.getLogger(__name__)


class RecordingSettlementBatcher:
    def __init__(self) -> None:
        self.batches: list[list[RedemptionOrder]] = []

    async def submit_batch(self, orders: list[RedemptionOrder]) -> bool:
        self.batches.append(list(orders))
        logger.info(
            "Settlement batch %d accepted: %d orders, %d collateral",
            len(self.batches),
            len(orders),
            sum(o.final_redemption_amount for o in orders),
        )
        return True
