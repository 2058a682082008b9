"""Compensation stack for one engine invocation.

Each completed external call registers its inverse; on failure the inverses
run newest-first so collaborators end where they started.
"""
import logging
from collections.abc import Awaitable, Callable

from src.fm_funding.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[None]]


class UnitOfWork:
    def __init__(self, operation: str) -> None:
        self.operation = operation
        # events raised inside the unit; dropped on rollback
        self.events: list[DomainEvent] = []
        self._compensations: list[tuple[str, Compensation]] = []

    def on_rollback(self, label: str, compensation: Compensation) -> None:
        self._compensations.append((label, compensation))

    async def rollback(self) -> None:
        while self._compensations:
            label, compensation = self._compensations.pop()
            try:
                await compensation()
            except Exception:
                # keep unwinding; the original error is re-raised by the caller
                logger.exception("%s: compensation '%s' failed", self.operation, label)
