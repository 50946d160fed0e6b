"""
core/domain/__init__.py

领域层入口点
"""
from core.domain.errors import (
    DomainError,
    ValidationError,
    InvalidAdjustmentError,
    InvalidBookingStateError,
    InvalidRefundTransitionError,
)
from core.domain.money import to_money, percent_of, ZERO
from core.domain.pricing import (
    AdjustmentType,
    AdjustmentStatus,
    RoomContext,
    PriceAdjustmentRule,
    PriceResolution,
    EffectivePriceResolver,
)
from core.domain.refund import (
    RefundType,
    RefundTier,
    RefundTierTable,
    RefundCalculation,
    RefundCalculator,
)
from core.domain.refund_lifecycle import RefundStatus, RefundTrigger, transition_refund

__all__ = [
    "DomainError",
    "ValidationError",
    "InvalidAdjustmentError",
    "InvalidBookingStateError",
    "InvalidRefundTransitionError",
    "to_money",
    "percent_of",
    "ZERO",
    "AdjustmentType",
    "AdjustmentStatus",
    "RoomContext",
    "PriceAdjustmentRule",
    "PriceResolution",
    "EffectivePriceResolver",
    "RefundType",
    "RefundTier",
    "RefundTierTable",
    "RefundCalculation",
    "RefundCalculator",
    "RefundStatus",
    "RefundTrigger",
    "transition_refund",
]
