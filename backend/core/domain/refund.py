"""
core/domain/refund.py

退款计算 - 按距离入住的小时数分档收取取消费

档位表（tier table）由调用方注入，不在此处写死：
- 按 min_hours 严格降序
- 最后一档 min_hours 必须为 0
- 距离入住越近，费率不得降低

计算规则：
- no_show 或已过入住时间：收取 100% 取消费
- 否则取第一个满足 hours >= min_hours 的档位
- 取消费 = round_half_up(总额 * 费率 / 100)，退款 = 总额 - 取消费
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
import logging

from core.domain.clock import hours_between
from core.domain.errors import InvalidBookingStateError, ValidationError
from core.domain.money import HUNDRED, ZERO, MoneyLike, to_decimal, to_money, percent_of

logger = logging.getLogger(__name__)


class RefundType(str, Enum):
    """退款类型"""
    CANCELLATION = "cancellation"
    NO_SHOW = "no_show"
    ADMIN_REFUND = "admin_refund"


@dataclass(frozen=True)
class RefundTier:
    """
    退款档位

    Attributes:
        min_hours: 距离入住至少多少小时
        fee_percentage: 该档位的取消费率（0-100）
    """

    min_hours: Decimal
    fee_percentage: Decimal


class RefundTierTable:
    """
    退款档位表（构造时校验）

    Example:
        >>> table = RefundTierTable.from_config([
        ...     {"min_hours": 72, "fee_percentage": 0},
        ...     {"min_hours": 24, "fee_percentage": 25},
        ...     {"min_hours": 0, "fee_percentage": 50},
        ... ])
        >>> table.fee_for(Decimal("30"))
        Decimal('25')
    """

    def __init__(self, tiers: Sequence[RefundTier]):
        self._tiers = tuple(tiers)
        self._validate()

    @classmethod
    def from_config(cls, entries: Iterable[Union[Dict[str, Any], RefundTier]]) -> "RefundTierTable":
        """从配置（字典列表）构建档位表"""
        if not isinstance(entries, (list, tuple)):
            raise ValidationError("退款档位表必须是列表", field="tier_table", value=entries)
        tiers: List[RefundTier] = []
        for entry in entries:
            if isinstance(entry, RefundTier):
                tiers.append(entry)
                continue
            try:
                min_hours = entry["min_hours"]
                fee_percentage = entry["fee_percentage"]
            except (KeyError, TypeError):
                raise ValidationError(
                    "退款档位必须包含 min_hours 和 fee_percentage",
                    field="tier_table", value=entry,
                )
            tiers.append(RefundTier(
                min_hours=to_decimal(min_hours, field="min_hours"),
                fee_percentage=to_decimal(fee_percentage, field="fee_percentage"),
            ))
        return cls(tiers)

    @property
    def tiers(self) -> tuple:
        return self._tiers

    @property
    def max_fee_percentage(self) -> Decimal:
        """最高档费率（即 min_hours = 0 的末档）"""
        return self._tiers[-1].fee_percentage

    def fee_for(self, hours_until_check_in: Decimal) -> Decimal:
        """
        根据距离入住小时数查找费率

        Args:
            hours_until_check_in: 非负小时数
        """
        for tier in self._tiers:
            if hours_until_check_in >= tier.min_hours:
                return tier.fee_percentage
        # 负数小时不会走到档位表，这里兜底取末档
        return self.max_fee_percentage

    def to_config(self) -> List[Dict[str, str]]:
        """序列化为配置格式"""
        return [
            {"min_hours": str(t.min_hours), "fee_percentage": str(t.fee_percentage)}
            for t in self._tiers
        ]

    def _validate(self) -> None:
        if not self._tiers:
            raise ValidationError("退款档位表不能为空", field="tier_table")

        previous: Optional[RefundTier] = None
        for index, tier in enumerate(self._tiers):
            if tier.fee_percentage < ZERO or tier.fee_percentage > HUNDRED:
                raise ValidationError(
                    "取消费率必须在 0-100 之间",
                    field="fee_percentage", index=index, value=tier.fee_percentage,
                )
            if tier.min_hours < ZERO:
                raise ValidationError(
                    "min_hours 不能为负数", field="min_hours", index=index, value=tier.min_hours,
                )
            if previous is not None:
                if tier.min_hours >= previous.min_hours:
                    raise ValidationError(
                        "退款档位必须按 min_hours 严格降序排列",
                        field="min_hours", index=index, value=tier.min_hours,
                    )
                if tier.fee_percentage < previous.fee_percentage:
                    raise ValidationError(
                        "距离入住越近，取消费率不能降低",
                        field="fee_percentage", index=index, value=tier.fee_percentage,
                    )
            previous = tier

        if self._tiers[-1].min_hours != ZERO:
            raise ValidationError(
                "最后一个退款档位的 min_hours 必须为 0",
                field="min_hours", index=len(self._tiers) - 1,
            )

    def __len__(self) -> int:
        return len(self._tiers)

    def __repr__(self) -> str:
        return f"RefundTierTable({[(str(t.min_hours), str(t.fee_percentage)) for t in self._tiers]})"


@dataclass(frozen=True)
class RefundCalculation:
    """
    退款计算结果

    Attributes:
        original_amount: 已支付金额
        cancellation_fee_amount: 取消费
        refund_amount: 退款金额
        fee_percentage: 取消费率
        hours_until_check_in: 距离入住小时数（2 位小数，可为负）
    """

    original_amount: Decimal
    cancellation_fee_amount: Decimal
    refund_amount: Decimal
    fee_percentage: Decimal
    hours_until_check_in: Decimal

    @classmethod
    def full_refund(cls, total_amount: Decimal, hours_until_check_in: Decimal) -> "RefundCalculation":
        """免收取消费的全额退款（管理员退款）"""
        return cls(
            original_amount=total_amount,
            cancellation_fee_amount=ZERO,
            refund_amount=total_amount,
            fee_percentage=Decimal("0"),
            hours_until_check_in=hours_until_check_in,
        )


class RefundCalculator:
    """
    退款计算器

    Example:
        >>> calculator = RefundCalculator(tier_table)
        >>> result = calculator.calculate(check_in, Decimal("5000.00"), now, RefundType.CANCELLATION)
        >>> result.cancellation_fee_amount + result.refund_amount == result.original_amount
        True
    """

    SUPPORTED_TYPES = (RefundType.CANCELLATION, RefundType.NO_SHOW)

    def __init__(self, tier_table: RefundTierTable):
        self._tier_table = tier_table

    @property
    def tier_table(self) -> RefundTierTable:
        return self._tier_table

    def fee_percentage_for(self, hours_until_check_in: Decimal, refund_type: RefundType) -> Decimal:
        """确定费率：no_show / 已过入住时间为 100%，否则查档位表"""
        if refund_type == RefundType.NO_SHOW or hours_until_check_in < ZERO:
            return HUNDRED
        return self._tier_table.fee_for(hours_until_check_in)

    def calculate(
        self,
        check_in_date: Optional[datetime],
        total_amount: MoneyLike,
        now: datetime,
        refund_type: Union[RefundType, str] = RefundType.CANCELLATION,
        booking_id: Any = None,
    ) -> RefundCalculation:
        """
        计算取消费与退款金额

        Args:
            check_in_date: 入住时间
            total_amount: 已支付金额
            now: 计算时间点
            refund_type: cancellation 或 no_show
            booking_id: 仅用于错误上下文

        Raises:
            InvalidBookingStateError: 金额非正或缺少入住时间
            ValidationError: 不支持的退款类型
        """
        refund_type = self._coerce_type(refund_type)

        if check_in_date is None:
            raise InvalidBookingStateError(
                "预订缺少入住时间", booking_id=booking_id, field="check_in_date",
            )
        if total_amount is None:
            raise InvalidBookingStateError(
                "预订金额必须大于 0", booking_id=booking_id, field="total_amount",
            )
        total = to_money(total_amount, field="total_amount")
        if total <= ZERO:
            raise InvalidBookingStateError(
                "预订金额必须大于 0", booking_id=booking_id, field="total_amount", value=total,
            )

        hours = hours_between(now, check_in_date)
        fee_percentage = self.fee_percentage_for(hours, refund_type)

        fee = percent_of(total, fee_percentage)
        refund = total - fee

        return RefundCalculation(
            original_amount=total,
            cancellation_fee_amount=fee,
            refund_amount=refund,
            fee_percentage=fee_percentage,
            hours_until_check_in=to_money(hours),
        )

    def _coerce_type(self, refund_type: Union[RefundType, str]) -> RefundType:
        try:
            value = RefundType(refund_type)
        except ValueError:
            raise ValidationError(f"不支持的退款类型: {refund_type}", field="refund_type", value=refund_type)
        if value not in self.SUPPORTED_TYPES:
            raise ValidationError(f"不支持的退款类型: {refund_type}", field="refund_type", value=refund_type)
        return value


__all__ = [
    "RefundType",
    "RefundTier",
    "RefundTierTable",
    "RefundCalculation",
    "RefundCalculator",
]
