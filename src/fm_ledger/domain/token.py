"""The ledger operations the funding engine issues.

The engine acts as the ledger's privileged operator: it may mint, burn and
move balances without per-account allowances.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenLedgerProtocol(Protocol):
    @property
    def address(self) -> str: ...

    def decimals(self) -> int: ...

    async def mint(self, to: str, amount: int) -> None: ...

    async def burn(self, account: str, amount: int) -> None: ...

    async def transfer_from(self, sender: str, recipient: str, amount: int) -> None: ...

    async def balance_of(self, account: str) -> int: ...
