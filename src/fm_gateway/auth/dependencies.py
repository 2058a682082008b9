"""FastAPI dependency: get_current_caller.

Usage in any protected router:
    from src.fm_gateway.auth.dependencies import get_current_caller

    @router.post("/protected")
    async def protected(caller: Annotated[str, Depends(get_current_caller)]):
        ...

Authentication only establishes WHO is calling. WHAT the caller may do is
decided by the engine's capability checks.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.fm_common.errors import InvalidCredentialsError
from src.fm_gateway.auth.jwt_handler import decode_token

bearer_scheme = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Return the caller address from a valid Bearer token, else HTTP 401."""
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return payload["sub"]
