"""
定价管理路由
调价规则维护（管理员）与有效价格查询
"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.errors import to_http_exception
from app.models.orm import User
from app.models.schemas import (
    PriceAdjustmentCreate, PriceAdjustmentUpdate, PriceAdjustmentResponse,
    PriceAdjustmentListResponse, EffectivePriceResponse, StayPriceResponse, NightlyPrice,
)
from app.services.pricing_service import PricingService
from app.security.auth import get_current_user, require_super_admin
from core.domain.errors import DomainError
from core.domain.pricing import AdjustmentStatus

router = APIRouter(prefix="/pricing", tags=["定价管理"])


@router.post("/adjust", response_model=PriceAdjustmentResponse)
def create_adjustment(
    data: PriceAdjustmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """创建调价规则"""
    service = PricingService(db)
    try:
        return service.create_adjustment(data, created_by=current_user.id)
    except DomainError as e:
        raise to_http_exception(e)


@router.get("/history", response_model=PriceAdjustmentListResponse)
def list_adjustments(
    status: Optional[AdjustmentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """调价规则历史"""
    service = PricingService(db)
    return service.list_adjustments(status=status, page=page, limit=limit)


@router.get("/effective-price", response_model=EffectivePriceResponse)
def get_effective_price(
    room_id: int,
    booking_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """查询房间有效价格"""
    service = PricingService(db)
    try:
        return service.get_effective_price(room_id, booking_date)
    except DomainError as e:
        raise to_http_exception(e)


@router.get("/stay-price", response_model=StayPriceResponse)
def get_stay_price(
    room_id: int,
    check_in_date: datetime,
    check_out_date: datetime,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """计算整段住宿房费"""
    service = PricingService(db)
    try:
        return service.calculate_stay_price(room_id, check_in_date, check_out_date)
    except DomainError as e:
        raise to_http_exception(e)


@router.get("/calendar", response_model=List[NightlyPrice])
def get_price_calendar(
    room_id: int,
    start_date: datetime,
    end_date: datetime,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """价格日历"""
    service = PricingService(db)
    try:
        return service.get_price_calendar(room_id, start_date, end_date)
    except DomainError as e:
        raise to_http_exception(e)


@router.get("/{adjustment_id}", response_model=PriceAdjustmentResponse)
def get_adjustment(
    adjustment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """调价规则详情"""
    service = PricingService(db)
    try:
        return service.get_adjustment(adjustment_id)
    except DomainError as e:
        raise to_http_exception(e)


@router.put("/{adjustment_id}", response_model=PriceAdjustmentResponse)
def update_adjustment(
    adjustment_id: int,
    data: PriceAdjustmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """更新调价规则"""
    service = PricingService(db)
    try:
        return service.update_adjustment(adjustment_id, data, operator_id=current_user.id)
    except DomainError as e:
        raise to_http_exception(e)


@router.delete("/{adjustment_id}", response_model=PriceAdjustmentResponse)
def retire_adjustment(
    adjustment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """下线调价规则"""
    service = PricingService(db)
    try:
        return service.retire_adjustment(adjustment_id, operator_id=current_user.id)
    except DomainError as e:
        raise to_http_exception(e)
