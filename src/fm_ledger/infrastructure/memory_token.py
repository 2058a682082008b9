"""In-process token ledger used for local wiring and tests."""

import logging
from collections import defaultdict

from src.fm_common.address import normalize_address
from src.fm_common.decimals import validate_decimals
from src.fm_common.errors import InsufficientBalanceError

logger = logging.getLogger(__name__)


class InMemoryToken:
    def __init__(self, symbol: str, decimals: int, address: str | None = None) -> None:
        self.symbol = symbol
        self._decimals = validate_decimals(decimals)
        self._address = address or f"token:{symbol.lower()}"
        self._balances: dict[str, int] = defaultdict(int)
        self.total_supply = 0

    @property
    def address(self) -> str:
        return self._address

    def decimals(self) -> int:
        return self._decimals

    async def mint(self, to: str, amount: int) -> None:
        _check_amount(amount)
        self._balances[normalize_address(to)] += amount
        self.total_supply += amount
        logger.debug("%s mint %d -> %s", self.symbol, amount, to)

    async def burn(self, account: str, amount: int) -> None:
        _check_amount(amount)
        self._debit(account, amount)
        self.total_supply -= amount
        logger.debug("%s burn %d <- %s", self.symbol, amount, account)

    async def transfer_from(self, sender: str, recipient: str, amount: int) -> None:
        _check_amount(amount)
        self._debit(sender, amount)
        self._balances[normalize_address(recipient)] += amount
        logger.debug("%s transfer %d %s -> %s", self.symbol, amount, sender, recipient)

    async def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    def _debit(self, account: str, amount: int) -> None:
        key = normalize_address(account)
        available = self._balances.get(key, 0)
        if available < amount:
            raise InsufficientBalanceError(amount, available)
        self._balances[key] = available - amount


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError(f"Token amount must be non-negative, got {amount}")
