"""Buy/sell fee configuration and fee calculation.

Invariant held after every call: current_fee_bps <= max_fee_bps <= 10_000.
Fees round up (ceiling division) in both directions: the protocol never
under-collects on a truncated remainder.
"""

import logging
from dataclasses import dataclass

from src.fm_common.enums import FeeDirection
from src.fm_common.errors import FeeExceedsMaximumError

logger = logging.getLogger(__name__)

BPS_SCALE = 10_000


@dataclass
class FeeConfig:
    current_fee_bps: int = 0
    max_fee_bps: int = BPS_SCALE


def calc_fee(gross_amount: int, fee_bps: int) -> int:
    """Ceiling division fee: (gross x fee_bps + 9999) // 10000."""
    if gross_amount == 0 or fee_bps == 0:
        return 0
    return (gross_amount * fee_bps + BPS_SCALE - 1) // BPS_SCALE


class FeeEngine:
    def __init__(
        self,
        buy_fee_bps: int = 0,
        sell_fee_bps: int = 0,
        max_buy_fee_bps: int = BPS_SCALE,
        max_sell_fee_bps: int = BPS_SCALE,
    ) -> None:
        self._configs: dict[FeeDirection, FeeConfig] = {
            FeeDirection.BUY: FeeConfig(),
            FeeDirection.SELL: FeeConfig(),
        }
        self.set_max_fee(FeeDirection.BUY, max_buy_fee_bps)
        self.set_max_fee(FeeDirection.SELL, max_sell_fee_bps)
        self.set_fee(FeeDirection.BUY, buy_fee_bps)
        self.set_fee(FeeDirection.SELL, sell_fee_bps)

    def config(self, direction: FeeDirection) -> FeeConfig:
        cfg = self._configs[direction]
        return FeeConfig(cfg.current_fee_bps, cfg.max_fee_bps)

    def fee_bps(self, direction: FeeDirection) -> int:
        return self._configs[direction].current_fee_bps

    def max_fee_bps(self, direction: FeeDirection) -> int:
        return self._configs[direction].max_fee_bps

    def set_fee(self, direction: FeeDirection, fee_bps: int) -> None:
        cfg = self._configs[direction]
        if fee_bps < 0 or fee_bps > cfg.max_fee_bps:
            raise FeeExceedsMaximumError(fee_bps, cfg.max_fee_bps)
        if fee_bps != cfg.current_fee_bps:
            logger.info(
                "%s fee updated: %d -> %d bps", direction.value, cfg.current_fee_bps, fee_bps
            )
        cfg.current_fee_bps = fee_bps

    def set_max_fee(self, direction: FeeDirection, max_fee_bps: int) -> None:
        cfg = self._configs[direction]
        if max_fee_bps > BPS_SCALE:
            raise FeeExceedsMaximumError(max_fee_bps, BPS_SCALE)
        if max_fee_bps < cfg.current_fee_bps:
            raise FeeExceedsMaximumError(cfg.current_fee_bps, max_fee_bps)
        if max_fee_bps != cfg.max_fee_bps:
            logger.info(
                "%s max fee updated: %d -> %d bps", direction.value, cfg.max_fee_bps, max_fee_bps
            )
        cfg.max_fee_bps = max_fee_bps

    def apply_fee(self, gross_amount: int, direction: FeeDirection) -> tuple[int, int]:
        """Split gross_amount into (fee_amount, net_amount)."""
        fee = calc_fee(gross_amount, self._configs[direction].current_fee_bps)
        return fee, gross_amount - fee
