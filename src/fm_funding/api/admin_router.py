"""Privileged endpoints: fees, treasury, gates, prices and settlement reports.

Capability checks happen in the engine; a caller without the required
capability gets AppError 1001 (HTTP 403).
"""
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from src.fm_common.enums import FeeDirection
from src.fm_common.response import ApiResponse, success_response
from src.fm_funding.application.schemas import (
    DirectOperationsRequest,
    FeeUpdateRequest,
    PriceUpdateRequest,
    SettleAmountRequest,
    TradingStatusRequest,
    TreasuryUpdateRequest,
)
from src.fm_funding.application.service import (
    FundingApplicationService,
    get_funding_service,
)
from src.fm_gateway.auth.dependencies import get_current_caller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

Service = Annotated[FundingApplicationService, Depends(get_funding_service)]
Caller = Annotated[str, Depends(get_current_caller)]


def _ok(request: Request, data: Any, message: str = "success") -> ApiResponse:
    resp = success_response(data, message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.put("/fees/{direction}")
async def set_fee(
    direction: FeeDirection,
    body: FeeUpdateRequest,
    caller: Caller,
    service: Service,
    request: Request,
) -> ApiResponse:
    data = await service.set_fee(caller, direction, body.fee_bps)
    return _ok(request, data.model_dump(), "Fee updated")


@router.put("/fees/{direction}/max")
async def set_max_fee(
    direction: FeeDirection,
    body: FeeUpdateRequest,
    caller: Caller,
    service: Service,
    request: Request,
) -> ApiResponse:
    data = await service.set_max_fee(caller, direction, body.fee_bps)
    return _ok(request, data.model_dump(), "Maximum fee updated")


@router.put("/treasury")
async def set_treasury(
    body: TreasuryUpdateRequest, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    await service.engine.set_project_treasury(caller, body.treasury)
    return _ok(request, service.get_state().model_dump(), "Treasury updated")


@router.put("/direct-operations")
async def set_direct_operations(
    body: DirectOperationsRequest, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    await service.engine.set_is_direct_operations_only(caller, body.enabled)
    return _ok(request, service.get_state().model_dump())


@router.put("/{direction}/status")
async def set_trading_status(
    direction: FeeDirection,
    body: TradingStatusRequest,
    caller: Caller,
    service: Service,
    request: Request,
) -> ApiResponse:
    data = await service.set_trading_status(caller, direction, body.is_open)
    return _ok(request, data.model_dump())


@router.put("/prices")
async def set_prices(
    body: PriceUpdateRequest, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    data = service.set_prices(caller, body)
    return _ok(request, data, "Prices published")


@router.post("/queue/execute")
async def execute_queue(caller: Caller, service: Service, request: Request) -> ApiResponse:
    data = await service.execute_queue(caller)
    logger.info("Queue executed via API by %s: %d orders", caller, len(data.order_ids))
    return _ok(request, data.model_dump(), "Redemption queue executed")


@router.post("/queue/settle")
async def settle_amount(
    body: SettleAmountRequest, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    data = await service.mark_settled(caller, body.amount)
    return _ok(request, data.model_dump())


@router.post("/orders/{order_id}/complete")
async def complete_order(
    order_id: int, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    data = await service.finalize_order(caller, order_id, completed=True)
    return _ok(request, data.model_dump(), "Order completed")


@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: int, caller: Caller, service: Service, request: Request
) -> ApiResponse:
    data = await service.finalize_order(caller, order_id, completed=False)
    return _ok(request, data.model_dump(), "Order cancelled")
