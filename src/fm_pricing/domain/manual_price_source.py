"""Manually published prices.

A caller holding PRICE_SETTER publishes prices in collateral-token decimals;
they are stored normalized to 18 decimals, which is what consumers read.
"""

import logging

from src.fm_access.domain.authorizer import AuthorizerProtocol, require_capability
from src.fm_common.decimals import from_internal, to_internal, validate_decimals
from src.fm_common.enums import Capability
from src.fm_common.errors import InvalidPriceError

logger = logging.getLogger(__name__)


class ManualPriceSource:
    def __init__(self, authorizer: AuthorizerProtocol, collateral_decimals: int) -> None:
        self._authorizer = authorizer
        self._collateral_decimals = validate_decimals(collateral_decimals)
        self._issuance_price = 0
        self._redemption_price = 0

    @property
    def collateral_decimals(self) -> int:
        return self._collateral_decimals

    def set_issuance_price(self, caller: str, price: int) -> None:
        require_capability(self._authorizer, Capability.PRICE_SETTER, caller)
        self._issuance_price = self._normalized(price)
        logger.info("Issuance price set: %d (18 dec) by %s", self._issuance_price, caller)

    def set_redemption_price(self, caller: str, price: int) -> None:
        require_capability(self._authorizer, Capability.PRICE_SETTER, caller)
        self._redemption_price = self._normalized(price)
        logger.info("Redemption price set: %d (18 dec) by %s", self._redemption_price, caller)

    def set_issuance_and_redemption_price(
        self, caller: str, issuance_price: int, redemption_price: int
    ) -> None:
        require_capability(self._authorizer, Capability.PRICE_SETTER, caller)
        issuance = self._normalized(issuance_price)
        redemption = self._normalized(redemption_price)
        self._issuance_price = issuance
        self._redemption_price = redemption
        logger.info(
            "Prices set: issuance=%d redemption=%d (18 dec) by %s",
            issuance,
            redemption,
            caller,
        )

    async def get_price_for_issuance(self) -> int:
        if self._issuance_price == 0:
            raise InvalidPriceError()
        return self._issuance_price

    async def get_price_for_redemption(self) -> int:
        if self._redemption_price == 0:
            raise InvalidPriceError()
        return self._redemption_price

    def get_issuance_price_in_collateral_decimals(self) -> int:
        return from_internal(self._issuance_price, self._collateral_decimals)

    def get_redemption_price_in_collateral_decimals(self) -> int:
        return from_internal(self._redemption_price, self._collateral_decimals)

    def _normalized(self, price: int) -> int:
        normalized = to_internal(price, self._collateral_decimals) if price > 0 else 0
        if normalized == 0:
            raise InvalidPriceError()
        return normalized
