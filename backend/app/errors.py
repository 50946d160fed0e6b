"""
应用层错误类型 与 HTTP 映射
服务层抛出 DomainError 家族，路由层统一转换为 HTTPException
"""
from fastapi import HTTPException, status

from core.domain.errors import (
    DomainError,
    ValidationError,
    InvalidAdjustmentError,
    InvalidBookingStateError,
    InvalidRefundTransitionError,
)


class NotFoundError(DomainError):
    """资源不存在"""

    code = "NOT_FOUND"


class ConflictError(DomainError):
    """资源冲突（如重复的退款申请）"""

    code = "CONFLICT"


class PermissionDeniedError(DomainError):
    """无权操作该资源"""

    code = "FORBIDDEN"


_STATUS_MAP = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidAdjustmentError: status.HTTP_400_BAD_REQUEST,
    InvalidBookingStateError: status.HTTP_400_BAD_REQUEST,
    InvalidRefundTransitionError: status.HTTP_400_BAD_REQUEST,
}


def to_http_exception(error: DomainError) -> HTTPException:
    """将领域错误转换为 HTTPException"""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_MAP.items():
        if isinstance(error, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=error.to_dict())
