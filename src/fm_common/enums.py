"""Global enums. Values must match DB CHECK constraints exactly."""

from enum import Enum


class FeeDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class RedemptionState(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (RedemptionState.COMPLETED, RedemptionState.CANCELLED)


class Capability(str, Enum):
    """Capability ids checked before privileged entry points."""

    GOVERNANCE = "GOVERNANCE_ROLE"
    WHITELIST = "WHITELIST_ROLE"
    QUEUE_EXECUTOR = "QUEUE_EXECUTOR_ROLE"
    QUEUE_MANAGER = "QUEUE_MANAGER_ROLE"
    PRICE_SETTER = "PRICE_SETTER_ROLE"
