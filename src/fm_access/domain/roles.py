"""In-memory role registry implementing AuthorizerProtocol."""

import logging
from collections import defaultdict
from collections.abc import Iterable

from src.fm_common.address import normalize_address
from src.fm_common.enums import Capability

logger = logging.getLogger(__name__)


class RoleRegistry:
    """capability -> set of member addresses (lower-cased)."""

    def __init__(self, seeds: dict[Capability, Iterable[str]] | None = None) -> None:
        self._members: dict[Capability, set[str]] = defaultdict(set)
        for capability, addresses in (seeds or {}).items():
            for address in addresses:
                self.grant(capability, address)

    def grant(self, capability: Capability, address: str) -> None:
        self._members[capability].add(normalize_address(address))
        logger.info("Capability granted: %s -> %s", capability.value, address)

    def revoke(self, capability: Capability, address: str) -> None:
        self._members[capability].discard(normalize_address(address))
        logger.info("Capability revoked: %s -> %s", capability.value, address)

    def has_capability(self, capability: Capability, caller: str) -> bool:
        return normalize_address(caller) in self._members[capability]

    def members(self, capability: Capability) -> frozenset[str]:
        return frozenset(self._members[capability])
