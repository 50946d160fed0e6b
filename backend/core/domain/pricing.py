"""
core/domain/pricing.py

有效价格解析 - 在房间基础价格上按顺序叠加生效中的调价规则

规则按城市 / 酒店 / 房型三个维度限定范围：
- 某维度列表为空表示该维度不限
- 非空维度必须全部命中（交集语义）

解析结果只依赖入参，相同输入（包括 as_of）总是得到相同结果。
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple
import logging

from core.domain.clock import to_naive_utc
from core.domain.errors import InvalidAdjustmentError, ValidationError
from core.domain.money import HUNDRED, ZERO, MoneyLike, to_decimal, to_money

logger = logging.getLogger(__name__)


class AdjustmentType(str, Enum):
    """调价方式"""
    PERCENTAGE = "percentage"  # 按比例，10 表示 +10%
    FIXED = "fixed"            # 固定金额增减


class AdjustmentStatus(str, Enum):
    """调价规则状态"""
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class RoomContext:
    """待定价房间所属的城市 / 酒店 / 房型"""
    city_id: Any
    hotel_id: Any
    room_type_id: Any = None


@dataclass(frozen=True)
class PriceAdjustmentRule:
    """
    调价规则

    Attributes:
        id: 规则ID（同一批规则的 ID 需可互相比较，用于排序）
        adjustment_type: 调价方式
        adjustment_value: 调价值（可为负）
        effective_date: 生效时间（含）
        expiry_date: 失效时间（不含），None 表示长期有效
        cities / hotels / room_types: 范围限定，空表示不限
        reason: 调价原因，仅供展示
        status: 规则状态，非 active 视为已下线
    """

    id: Any
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    effective_date: datetime
    expiry_date: Optional[datetime] = None
    cities: Tuple[Any, ...] = ()
    hotels: Tuple[Any, ...] = ()
    room_types: Tuple[Any, ...] = ()
    reason: Optional[str] = None
    status: AdjustmentStatus = AdjustmentStatus.ACTIVE

    def is_active_at(self, as_of: datetime) -> bool:
        """as_of 是否落在有效期内且规则未下线"""
        if self.status != AdjustmentStatus.ACTIVE:
            return False
        as_of = to_naive_utc(as_of)
        if to_naive_utc(self.effective_date) > as_of:
            return False
        if self.expiry_date is not None and as_of >= to_naive_utc(self.expiry_date):
            return False
        return True

    def applies_to(self, context: RoomContext) -> bool:
        """规则范围是否覆盖该房间"""
        return (
            _dimension_matches(self.cities, context.city_id)
            and _dimension_matches(self.hotels, context.hotel_id)
            and _dimension_matches(self.room_types, context.room_type_id)
        )

    def apply(self, price: Decimal) -> Decimal:
        """在当前价格上应用本规则（不舍入）"""
        value = to_decimal(self.adjustment_value, field="adjustment_value")
        if self.adjustment_type == AdjustmentType.PERCENTAGE:
            return price * (1 + value / HUNDRED)
        return price + value

    @property
    def sort_key(self) -> Tuple[datetime, Any]:
        return (to_naive_utc(self.effective_date), self.id)


@dataclass(frozen=True)
class PriceResolution:
    """
    价格解析结果

    Attributes:
        base_price: 基础价格
        final_price: 最终价格（2 位小数，非负）
        applied_rules: 按应用顺序排列的规则ID
    """

    base_price: Decimal
    final_price: Decimal
    applied_rules: Tuple[Any, ...] = field(default_factory=tuple)

    @property
    def is_adjusted(self) -> bool:
        return bool(self.applied_rules)


def _dimension_matches(scope: Iterable[Any], value: Any) -> bool:
    scope = tuple(scope or ())
    if not scope:
        return True
    return value is not None and value in scope


class EffectivePriceResolver:
    """
    有效价格解析器

    Example:
        >>> resolver = EffectivePriceResolver()
        >>> result = resolver.resolve(Decimal("1000.00"), ctx, rules, as_of)
        >>> result.final_price, result.applied_rules
    """

    def select_rules(
        self,
        room_context: RoomContext,
        candidate_rules: Iterable[PriceAdjustmentRule],
        as_of: datetime,
    ) -> List[PriceAdjustmentRule]:
        """
        筛选并排序适用规则

        排序：生效时间升序，相同时按规则ID升序。
        """
        matched = [
            rule for rule in candidate_rules
            if rule.is_active_at(as_of) and rule.applies_to(room_context)
        ]
        return sorted(matched, key=lambda r: r.sort_key)

    def resolve(
        self,
        base_price: MoneyLike,
        room_context: RoomContext,
        candidate_rules: Iterable[PriceAdjustmentRule],
        as_of: datetime,
    ) -> PriceResolution:
        """
        计算最终价格

        Args:
            base_price: 基础价格
            room_context: 房间范围信息
            candidate_rules: 候选规则（可包含不适用的规则）
            as_of: 定价时间点

        Returns:
            PriceResolution

        Raises:
            ValidationError: 基础价格为负或不是数值
            InvalidAdjustmentError: 适用规则中存在 <= -100% 的比例调价
        """
        base = to_money(base_price, field="base_price")
        if base < ZERO:
            raise ValidationError("基础价格不能为负数", field="base_price", value=base)

        rules = self.select_rules(room_context, candidate_rules, as_of)
        for rule in rules:
            if rule.adjustment_type == AdjustmentType.PERCENTAGE \
                    and to_decimal(rule.adjustment_value) <= -HUNDRED:
                raise InvalidAdjustmentError(
                    f"调价规则 {rule.id} 的比例调价不能小于等于 -100%",
                    rule_id=rule.id,
                    adjustment_value=rule.adjustment_value,
                )

        running = base
        for rule in rules:
            running = rule.apply(running)

        final_price = to_money(max(running, ZERO))
        if rules:
            logger.debug(f"Resolved price {base} -> {final_price} with rules {[r.id for r in rules]}")

        return PriceResolution(
            base_price=base,
            final_price=final_price,
            applied_rules=tuple(rule.id for rule in rules),
        )


__all__ = [
    "AdjustmentType",
    "AdjustmentStatus",
    "RoomContext",
    "PriceAdjustmentRule",
    "PriceResolution",
    "EffectivePriceResolver",
]
