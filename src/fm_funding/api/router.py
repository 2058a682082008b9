"""Funding REST API: buy, sell, quotes and queue inspection.

Every mutating endpoint requires a Bearer token; the token subject is the
caller address handed to the engine's capability checks.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.enums import RedemptionState
from src.fm_common.response import ApiResponse, success_response
from src.fm_funding.application.schemas import BuyRequest, SellRequest
from src.fm_funding.application.service import (
    FundingApplicationService,
    get_funding_service,
)
from src.fm_gateway.auth.dependencies import get_current_caller

router = APIRouter(prefix="/funding", tags=["funding"])

Service = Annotated[FundingApplicationService, Depends(get_funding_service)]
Caller = Annotated[str, Depends(get_current_caller)]


def _ok(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/buy")
async def buy(
    body: BuyRequest, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    data = await service.buy(caller, body)
    return _ok(request, data.model_dump())


@router.post("/sell")
async def sell(
    body: SellRequest, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    data = await service.sell(caller, body)
    return _ok(request, data.model_dump())


@router.get("/quote/buy")
async def quote_buy(
    service: Service,
    request: Request,
    amount: int = Query(..., description="Collateral amount, smallest unit"),
) -> ApiResponse:
    data = await service.quote_buy(amount)
    return _ok(request, data.model_dump())


@router.get("/quote/sell")
async def quote_sell(
    service: Service,
    request: Request,
    amount: int = Query(..., description="Issuance amount, smallest unit"),
) -> ApiResponse:
    data = await service.quote_sell(amount)
    return _ok(request, data.model_dump())


@router.get("/state")
async def get_state(service: Service, request: Request) -> ApiResponse:
    return _ok(request, service.get_state().model_dump())


@router.get("/orders")
async def list_orders(
    service: Service,
    request: Request,
    state: RedemptionState | None = Query(None, description="Filter by order state"),
) -> ApiResponse:
    return _ok(request, service.list_orders(state).model_dump())


@router.get("/orders/history")
async def list_order_history(
    service: Service,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    state: RedemptionState | None = Query(None, description="Filter by order state"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await service.list_order_history(db, state, cursor, limit)
    return _ok(request, data.model_dump())


@router.get("/orders/{order_id}")
async def get_order(order_id: int, service: Service, request: Request) -> ApiResponse:
    data = await service.get_order(order_id)
    return _ok(request, data.model_dump())
