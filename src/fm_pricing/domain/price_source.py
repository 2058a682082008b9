"""Price source contract and the adapter the funding engine reads rates through.

Rates are 18-decimal fixed point. A zero rate means "never published" and is
never handed to a consumer.
"""

import logging
from typing import Protocol, runtime_checkable

from src.fm_common.errors import InvalidPriceError, InvalidPriceSourceInterfaceError

logger = logging.getLogger(__name__)

_REQUIRED_METHODS = ("get_price_for_issuance", "get_price_for_redemption")


@runtime_checkable
class PriceSourceProtocol(Protocol):
    async def get_price_for_issuance(self) -> int: ...

    async def get_price_for_redemption(self) -> int: ...


def check_price_source_interface(candidate: object) -> None:
    """Raise InvalidPriceSourceInterfaceError(2002) unless candidate exposes both price queries."""
    if candidate is None:
        raise InvalidPriceSourceInterfaceError("no price source given")
    missing = [
        name for name in _REQUIRED_METHODS if not callable(getattr(candidate, name, None))
    ]
    if missing:
        raise InvalidPriceSourceInterfaceError(f"missing {', '.join(missing)}")


class PriceSourceAdapter:
    """Holds the attached price source and validates every rate read from it."""

    def __init__(self, source: PriceSourceProtocol) -> None:
        check_price_source_interface(source)
        self._source = source

    @property
    def source(self) -> PriceSourceProtocol:
        return self._source

    def attach(self, candidate: PriceSourceProtocol) -> None:
        """Swap in a new source. On failure the previous source stays attached."""
        check_price_source_interface(candidate)
        previous = self._source
        self._source = candidate
        logger.info(
            "Price source replaced: %s -> %s",
            type(previous).__name__,
            type(candidate).__name__,
        )

    async def issuance_rate(self) -> int:
        return _checked(await self._source.get_price_for_issuance())

    async def redemption_rate(self) -> int:
        return _checked(await self._source.get_price_for_redemption())


def _checked(rate: int) -> int:
    if rate <= 0:
        raise InvalidPriceError()
    return rate
