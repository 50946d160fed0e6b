"""
core/domain/errors.py

领域错误类型

所有错误同步抛出，不在领域层重试或吞掉；details 携带足够的上下文
（规则 ID、预订字段等）供调用方记录日志并返回给用户。
"""
from typing import Any, Dict


class DomainError(Exception):
    """领域错误基类"""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        """转换为可序列化的字典"""
        result: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            result["details"] = {k: _jsonable(v) for k, v in self.details.items()}
        return result


class ValidationError(DomainError):
    """输入格式或取值不合法"""

    code = "VALIDATION_ERROR"


class InvalidAdjustmentError(DomainError):
    """调价规则数据会产生无意义的价格"""

    code = "INVALID_ADJUSTMENT"

    def __init__(self, message: str, rule_id: Any = None, **details: Any):
        super().__init__(message, rule_id=rule_id, **details)
        self.rule_id = rule_id


class InvalidBookingStateError(DomainError):
    """预订数据不满足退款计算前提（金额非正、缺少入住时间等）"""

    code = "INVALID_BOOKING_STATE"

    def __init__(self, message: str, booking_id: Any = None, field: str = None, **details: Any):
        super().__init__(message, booking_id=booking_id, field=field, **details)
        self.booking_id = booking_id
        self.field = field


class InvalidRefundTransitionError(DomainError):
    """退款记录状态转换不合法"""

    code = "INVALID_REFUND_TRANSITION"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


__all__ = [
    "DomainError",
    "ValidationError",
    "InvalidAdjustmentError",
    "InvalidBookingStateError",
    "InvalidRefundTransitionError",
]
