"""
领域事件定义 (Domain Events)
调价规则与退款流程中发布的业务事件
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List


class EventType(str, Enum):
    """事件类型枚举"""
    # 调价规则
    PRICE_ADJUSTMENT_CREATED = "price_adjustment.created"
    PRICE_ADJUSTMENT_UPDATED = "price_adjustment.updated"
    PRICE_ADJUSTMENT_RETIRED = "price_adjustment.retired"

    # 预订
    BOOKING_CANCELLED = "booking.cancelled"

    # 退款
    REFUND_REQUESTED = "refund.requested"
    REFUND_PROCESSED = "refund.processed"
    REFUND_REJECTED = "refund.rejected"
    REFUND_FAILED = "refund.failed"

    # 钱包
    WALLET_CREDITED = "wallet.credited"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime / Decimal 序列化
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result


@dataclass
class PriceAdjustmentChangedData(BaseEventData):
    """调价规则创建 / 更新 / 下线事件数据"""
    adjustment_id: int = 0
    adjustment_type: str = ""
    adjustment_value: Decimal = Decimal("0")
    status: str = ""
    changed_fields: List[str] = field(default_factory=list)
    operator_id: Optional[int] = None


@dataclass
class BookingCancelledData(BaseEventData):
    """预订取消事件数据"""
    booking_id: int = 0
    user_id: int = 0
    hotel_id: int = 0
    cancelled_by: str = ""
    reason: str = ""


@dataclass
class RefundEventData(BaseEventData):
    """退款状态事件数据"""
    refund_id: int = 0
    booking_id: int = 0
    user_id: int = 0
    hotel_name: str = ""
    refund_type: str = ""
    status: str = ""
    refund_amount: Decimal = Decimal("0")
    cancellation_fee_amount: Decimal = Decimal("0")
    expected_processing_days: Optional[int] = None
    operator_id: Optional[int] = None
    reason: str = ""


@dataclass
class WalletCreditedData(BaseEventData):
    """钱包入账事件数据"""
    wallet_id: int = 0
    user_id: int = 0
    amount: Decimal = Decimal("0")
    balance_after: Decimal = Decimal("0")
    source: str = ""
    reference_id: str = ""
