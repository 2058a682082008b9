"""Collaborator contracts on the outgoing side of the redemption queue.

SettlementProtocol: drains PROCESSING batches and performs the collateral
payments, later reporting back through the engine.
RedemptionJournalProtocol: durable record of every order and its state.
"""

from typing import Protocol, runtime_checkable

from src.fm_common.enums import RedemptionState
from src.fm_redemption.domain.models import RedemptionOrder


@runtime_checkable
class SettlementProtocol(Protocol):
    async def submit_batch(self, orders: list[RedemptionOrder]) -> bool: ...


class RedemptionJournalProtocol(Protocol):
    async def record(self, order: RedemptionOrder) -> None: ...

    async def discard(self, order_id: int) -> None: ...

    async def update_states(self, order_ids: list[int], state: RedemptionState) -> None: ...

    async def load_open(self) -> list[RedemptionOrder]: ...

    async def max_order_id(self) -> int: ...

    async def get(self, order_id: int) -> RedemptionOrder | None: ...
