"""Authorizer Protocol: the only thing the engine knows about role membership.

Role governance (who grants what) lives outside the funding manager. Unit
tests inject RoleRegistry or a stub to grant/deny arbitrary capabilities.
"""

from typing import Protocol, runtime_checkable

from src.fm_common.enums import Capability
from src.fm_common.errors import CallerNotAuthorizedError


@runtime_checkable
class AuthorizerProtocol(Protocol):
    def has_capability(self, capability: Capability, caller: str) -> bool: ...


def require_capability(
    authorizer: AuthorizerProtocol, capability: Capability, caller: str
) -> None:
    """Raise CallerNotAuthorizedError(1001) unless caller holds capability."""
    if not authorizer.has_capability(capability, caller):
        raise CallerNotAuthorizedError(capability.value, caller)
