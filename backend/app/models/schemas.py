"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Any, Literal
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from app.models.orm import ConfigValueType, RefundMethod, WalletTransactionType
from core.domain.clock import to_naive_utc
from core.domain.pricing import AdjustmentType, AdjustmentStatus
from core.domain.refund import RefundType
from core.domain.refund_lifecycle import RefundStatus


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    return to_naive_utc(value) if value is not None else None


# ============== 调价规则 Schemas ==============

class PriceAdjustmentCreate(BaseModel):
    cities: List[str] = Field(default_factory=list)
    hotels: List[int] = Field(default_factory=list)
    room_types: List[int] = Field(default_factory=list)
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    reason: Optional[str] = Field(None, max_length=500)
    effective_date: datetime
    expiry_date: Optional[datetime] = None

    @field_validator("effective_date", "expiry_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)

    @model_validator(mode="after")
    def check_rule(self):
        if self.expiry_date is not None and self.expiry_date <= self.effective_date:
            raise ValueError("失效时间必须晚于生效时间")
        if self.adjustment_type == AdjustmentType.PERCENTAGE and self.adjustment_value <= Decimal("-100"):
            raise ValueError("比例调价不能小于等于 -100%")
        return self


class PriceAdjustmentUpdate(BaseModel):
    cities: Optional[List[str]] = None
    hotels: Optional[List[int]] = None
    room_types: Optional[List[int]] = None
    adjustment_type: Optional[AdjustmentType] = None
    adjustment_value: Optional[Decimal] = None
    reason: Optional[str] = Field(None, max_length=500)
    effective_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    status: Optional[AdjustmentStatus] = None

    @field_validator("effective_date", "expiry_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)

    @model_validator(mode="after")
    def reject_nulls(self):
        # expiry_date / reason 可置空，其余字段只能省略不能为 null
        for name in ("cities", "hotels", "room_types", "adjustment_type",
                     "adjustment_value", "effective_date", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} 不能为 null")
        return self


class PriceAdjustmentResponse(BaseModel):
    id: int
    cities: List[str]
    hotels: List[int]
    room_types: List[int]
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    reason: Optional[str]
    effective_date: datetime
    expiry_date: Optional[datetime]
    status: AdjustmentStatus
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @field_validator("cities", "hotels", "room_types", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return value or []


class PriceAdjustmentListResponse(BaseModel):
    adjustments: List[PriceAdjustmentResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class EffectivePriceResponse(BaseModel):
    room_id: int
    booking_date: datetime
    original_price_per_night: Decimal
    original_price_per_hour: Optional[Decimal]
    effective_price_per_night: Decimal
    effective_price_per_hour: Optional[Decimal]
    applied_adjustments: List[int]


class NightlyPrice(BaseModel):
    date: datetime
    price: Decimal
    applied_adjustments: List[int]


class StayPriceResponse(BaseModel):
    room_id: int
    check_in_date: datetime
    check_out_date: datetime
    nights: int
    total_amount: Decimal
    nightly: List[NightlyPrice]


# ============== 退款 Schemas ==============

class RefundCreate(BaseModel):
    booking_id: int
    refund_reason: str = Field(..., min_length=10, max_length=1000)
    refund_type: RefundType = RefundType.CANCELLATION


class RefundCalculationResponse(BaseModel):
    booking_id: int
    refund_type: RefundType
    original_amount: Decimal
    cancellation_fee_amount: Decimal
    refund_amount: Decimal
    fee_percentage: Decimal
    hours_until_check_in: Decimal


class RefundResponse(BaseModel):
    id: int
    booking_id: int
    original_payment_id: Optional[int]
    user_id: int
    refund_type: RefundType
    original_amount: Decimal
    cancellation_fee_amount: Decimal
    refund_amount: Decimal
    cancellation_fee_percentage: Decimal
    refund_reason: str
    status: RefundStatus
    refund_method: Optional[RefundMethod]
    razorpay_refund_id: Optional[str]
    processed_by: Optional[int]
    processed_at: Optional[datetime]
    rejection_reason: Optional[str]
    failure_reason: Optional[str]
    expected_processing_days: Optional[int]
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RefundCreateResponse(BaseModel):
    refund: RefundResponse
    calculation: RefundCalculationResponse


class RefundListResponse(BaseModel):
    refunds: List[RefundResponse]
    total: int
    page: int
    limit: int


class RefundProcessRequest(BaseModel):
    action: Literal["approve", "reject", "fail"]
    rejection_reason: Optional[str] = Field(None, max_length=1000)
    failure_reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_reason(self):
        if self.action == "reject" and not (self.rejection_reason and self.rejection_reason.strip()):
            raise ValueError("拒绝退款必须填写原因")
        return self


# ============== 钱包 Schemas ==============

class WalletResponse(BaseModel):
    user_id: int
    balance: Decimal
    total_earned: Decimal
    total_spent: Decimal
    status: str


class WalletTransactionResponse(BaseModel):
    id: int
    type: WalletTransactionType
    source: str
    amount: Decimal
    balance_after: Decimal
    description: Optional[str]
    reference_id: Optional[str]
    reference_type: Optional[str]
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WalletTransactionListResponse(BaseModel):
    transactions: List[WalletTransactionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# ============== 系统配置 Schemas ==============

class ConfigurationUpdate(BaseModel):
    value: Any
    type: ConfigValueType
    description: Optional[str] = None
    category: str = Field(default="app", max_length=50)


class ConfigurationResponse(BaseModel):
    id: int
    key: str
    value: str
    type: ConfigValueType
    description: Optional[str]
    category: str
    is_active: bool
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
