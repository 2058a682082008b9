"""Fixed-window rate limiting backed by Redis.

Key pattern: "ratelimit:{client_ip}:{epoch_minute}". The first hit in a
window sets a 60s expiry. Over the limit, the request is answered with 429
and the RateLimitError envelope without reaching the router.

Redis being unreachable fails open: the request proceeds and a warning is
logged.
"""

import logging
import time

from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from config.settings import settings
from src.fm_common.errors import RateLimitError
from src.fm_common.redis_client import get_redis
from src.fm_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
_EXEMPT_PATHS = frozenset({"/health"})


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        window = int(time.time()) // _WINDOW_SECONDS
        key = f"ratelimit:{client_ip(request)}:{window}"
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except RedisError:
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path)
            return await call_next(request)

        if count > settings.RATE_LIMIT_PER_MINUTE:
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(_WINDOW_SECONDS)},
            )
        return await call_next(request)
