"""
退款路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.errors import to_http_exception
from app.models.orm import User
from app.models.schemas import (
    RefundCreate, RefundCreateResponse, RefundCalculationResponse,
    RefundListResponse, RefundProcessRequest, RefundResponse,
)
from app.services.refund_service import RefundService
from app.security.auth import get_current_user, require_super_admin
from core.domain.errors import DomainError
from core.domain.refund import RefundCalculation, RefundType
from core.domain.refund_lifecycle import RefundStatus

router = APIRouter(prefix="/refunds", tags=["退款管理"])


def _calculation_response(booking_id: int, refund_type: RefundType,
                          calculation: RefundCalculation) -> RefundCalculationResponse:
    return RefundCalculationResponse(
        booking_id=booking_id,
        refund_type=refund_type,
        original_amount=calculation.original_amount,
        cancellation_fee_amount=calculation.cancellation_fee_amount,
        refund_amount=calculation.refund_amount,
        fee_percentage=calculation.fee_percentage,
        hours_until_check_in=calculation.hours_until_check_in,
    )


@router.get("/preview", response_model=RefundCalculationResponse)
def preview_refund(
    booking_id: int,
    refund_type: RefundType = RefundType.CANCELLATION,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """预估取消费与退款金额"""
    service = RefundService(db)
    try:
        calculation = service.preview_refund(booking_id, current_user, refund_type)
    except DomainError as e:
        raise to_http_exception(e)
    return _calculation_response(booking_id, refund_type, calculation)


@router.post("/", response_model=RefundCreateResponse)
def create_refund_request(
    data: RefundCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """取消预订并申请退款"""
    service = RefundService(db)
    try:
        result = service.create_refund_request(
            data.booking_id, current_user, data.refund_reason, data.refund_type
        )
    except DomainError as e:
        raise to_http_exception(e)
    return RefundCreateResponse(
        refund=RefundResponse.model_validate(result["refund"]),
        calculation=_calculation_response(data.booking_id, data.refund_type, result["calculation"]),
    )


@router.get("/my", response_model=RefundListResponse)
def get_my_refunds(
    status: Optional[RefundStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """我的退款记录"""
    service = RefundService(db)
    return service.get_user_refunds(current_user.id, status=status, page=page, limit=limit)


@router.get("/", response_model=RefundListResponse)
def list_refunds(
    status: Optional[RefundStatus] = None,
    refund_type: Optional[RefundType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """全部退款记录（管理员）"""
    service = RefundService(db)
    return service.list_refunds(status=status, refund_type=refund_type, page=page, limit=limit)


@router.get("/{refund_id}", response_model=RefundResponse)
def get_refund(
    refund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """退款详情"""
    service = RefundService(db)
    try:
        return service.get_refund(refund_id, user=current_user)
    except DomainError as e:
        raise to_http_exception(e)


@router.post("/{refund_id}/process", response_model=RefundResponse)
def process_refund(
    refund_id: int,
    data: RefundProcessRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """审核退款：approve 入账钱包 / reject 恢复预订 / fail 标记失败"""
    service = RefundService(db)
    try:
        if data.action == "approve":
            return service.process_refund(refund_id, current_user)
        if data.action == "reject":
            return service.reject_refund(refund_id, current_user, data.rejection_reason)
        return service.mark_refund_failed(refund_id, current_user, data.failure_reason)
    except DomainError as e:
        raise to_http_exception(e)
