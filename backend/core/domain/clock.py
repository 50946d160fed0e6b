"""
core/domain/clock.py

时间工具 - 领域层统一使用 naive UTC datetime
"""
from datetime import datetime, timezone
from decimal import Decimal

SECONDS_PER_HOUR = Decimal(3600)


def utcnow() -> datetime:
    """当前 UTC 时间（naive）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """带时区的时间转为 naive UTC；naive 时间视为已经是 UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def hours_between(start: datetime, end: datetime) -> Decimal:
    """
    计算 end - start 的小时数（精确 Decimal，可为负）

    Args:
        start: 起始时间
        end: 结束时间
    """
    delta = to_naive_utc(end) - to_naive_utc(start)
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(10 ** 6)
    return seconds / SECONDS_PER_HOUR
