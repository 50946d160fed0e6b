"""
core/domain/money.py

金额工具 - 统一使用 Decimal，按最小货币单位（2 位小数）四舍五入
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

from core.domain.errors import ValidationError

MoneyLike = Union[Decimal, int, str, float]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: MoneyLike, field: str = "amount") -> Decimal:
    """转换为 Decimal（不做舍入）"""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field} 不是有效的数值", field=field, value=value)
    else:
        try:
            # float 先转 str，避免二进制误差
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"{field} 不是有效的数值", field=field, value=value)

    if not result.is_finite():
        raise ValidationError(f"{field} 不是有效的数值", field=field, value=value)
    return result


def to_money(value: MoneyLike, field: str = "amount") -> Decimal:
    """转换为 2 位小数金额（ROUND_HALF_UP）"""
    return to_decimal(value, field).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """计算 amount 的 percentage%，结果按金额精度舍入"""
    return to_money(amount * percentage / HUNDRED)


__all__ = ["MoneyLike", "CENT", "ZERO", "HUNDRED", "to_decimal", "to_money", "percent_of"]
