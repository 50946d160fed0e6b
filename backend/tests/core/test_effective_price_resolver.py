"""
测试 core.domain.pricing 有效价格解析
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from core.domain.errors import InvalidAdjustmentError, ValidationError
from core.domain.pricing import (
    AdjustmentStatus, AdjustmentType, EffectivePriceResolver,
    PriceAdjustmentRule, RoomContext,
)

AS_OF = datetime(2024, 6, 1, 12, 0)
CTX = RoomContext(city_id="mumbai", hotel_id=7, room_type_id=3)


def _rule(rule_id, adjustment_type=AdjustmentType.PERCENTAGE, value="10", **kwargs):
    kwargs.setdefault("effective_date", AS_OF - timedelta(days=1))
    return PriceAdjustmentRule(
        id=rule_id,
        adjustment_type=adjustment_type,
        adjustment_value=Decimal(value),
        **kwargs,
    )


@pytest.fixture
def resolver():
    return EffectivePriceResolver()


class TestResolve:
    """价格解析"""

    def test_city_scoped_percentage(self, resolver):
        rule = _rule(1, value="10", cities=("mumbai",))
        result = resolver.resolve(Decimal("1000.00"), CTX, [rule], AS_OF)
        assert result.final_price == Decimal("1100.00")
        assert result.applied_rules == (1,)
        assert result.is_adjusted

    def test_percentage_then_fixed_in_id_order(self, resolver):
        rules = [
            _rule(2, AdjustmentType.FIXED, "-50"),
            _rule(1, AdjustmentType.PERCENTAGE, "10"),
        ]
        result = resolver.resolve(Decimal("1000.00"), CTX, rules, AS_OF)
        assert result.final_price == Decimal("1050.00")
        assert result.applied_rules == (1, 2)

    def test_earlier_effective_date_applied_first(self, resolver):
        rules = [
            _rule(1, AdjustmentType.FIXED, "100", effective_date=AS_OF - timedelta(hours=1)),
            _rule(2, AdjustmentType.PERCENTAGE, "10", effective_date=AS_OF - timedelta(days=3)),
        ]
        result = resolver.resolve(Decimal("1000.00"), CTX, rules, AS_OF)
        # 先 +10% 再 +100
        assert result.final_price == Decimal("1200.00")
        assert result.applied_rules == (2, 1)

    def test_no_rules_is_identity(self, resolver):
        result = resolver.resolve(Decimal("1234.56"), CTX, [], AS_OF)
        assert result.final_price == Decimal("1234.56")
        assert result.applied_rules == ()
        assert not result.is_adjusted

    def test_same_input_same_output(self, resolver):
        rules = [_rule(1, value="12.5"), _rule(2, AdjustmentType.FIXED, "-3.33")]
        first = resolver.resolve(Decimal("999.99"), CTX, rules, AS_OF)
        second = resolver.resolve(Decimal("999.99"), CTX, list(reversed(rules)), AS_OF)
        assert first == second

    def test_final_price_rounded_half_up(self, resolver):
        result = resolver.resolve(Decimal("100.05"), CTX, [_rule(1, value="10")], AS_OF)
        # 110.055 -> 110.06
        assert result.final_price == Decimal("110.06")

    def test_clamped_at_zero(self, resolver):
        result = resolver.resolve(Decimal("100.00"), CTX, [_rule(1, AdjustmentType.FIXED, "-500")], AS_OF)
        assert result.final_price == Decimal("0.00")
        assert result.applied_rules == (1,)

    def test_negative_base_rejected(self, resolver):
        with pytest.raises(ValidationError):
            resolver.resolve(Decimal("-1"), CTX, [], AS_OF)

    def test_minus_hundred_percent_rejected(self, resolver):
        with pytest.raises(InvalidAdjustmentError) as exc:
            resolver.resolve(Decimal("1000.00"), CTX, [_rule(9, value="-100")], AS_OF)
        assert exc.value.rule_id == 9

    def test_invalid_rule_out_of_scope_ignored(self, resolver):
        rule = _rule(9, value="-150", cities=("delhi",))
        result = resolver.resolve(Decimal("1000.00"), CTX, [rule], AS_OF)
        assert result.final_price == Decimal("1000.00")


class TestRuleSelection:
    """规则筛选"""

    def test_scope_intersection(self, resolver):
        matching = _rule(1, cities=("mumbai",), hotels=(7,))
        wrong_hotel = _rule(2, cities=("mumbai",), hotels=(8,))
        wrong_type = _rule(3, room_types=(4,))
        selected = resolver.select_rules(CTX, [matching, wrong_hotel, wrong_type], AS_OF)
        assert [r.id for r in selected] == [1]

    def test_empty_scope_matches_everything(self, resolver):
        selected = resolver.select_rules(CTX, [_rule(1)], AS_OF)
        assert [r.id for r in selected] == [1]

    def test_room_type_scope_without_room_type(self, resolver):
        ctx = RoomContext(city_id="mumbai", hotel_id=7)
        selected = resolver.select_rules(ctx, [_rule(1, room_types=(3,))], AS_OF)
        assert selected == []

    def test_effective_date_inclusive(self, resolver):
        rule = _rule(1, effective_date=AS_OF)
        assert resolver.select_rules(CTX, [rule], AS_OF) == [rule]

    def test_expiry_date_exclusive(self, resolver):
        rule = _rule(1, expiry_date=AS_OF)
        assert resolver.select_rules(CTX, [rule], AS_OF) == []
        assert resolver.select_rules(CTX, [rule], AS_OF - timedelta(seconds=1)) == [rule]

    def test_future_rule_not_selected(self, resolver):
        rule = _rule(1, effective_date=AS_OF + timedelta(minutes=1))
        assert resolver.select_rules(CTX, [rule], AS_OF) == []

    def test_retired_rules_ignored(self, resolver):
        assert resolver.select_rules(CTX, [_rule(1, status=AdjustmentStatus.INACTIVE)], AS_OF) == []
