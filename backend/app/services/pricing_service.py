"""
定价服务
管理调价规则（PriceAdjustment），并基于规则解析房间有效价格
价格在读取时解析，不回写房间基础价格
"""
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models.events import EventType, PriceAdjustmentChangedData
from app.models.orm import PriceAdjustment, Room
from app.models.schemas import PriceAdjustmentCreate, PriceAdjustmentUpdate
from core.domain.clock import to_naive_utc, utcnow
from core.domain.errors import ValidationError
from core.domain.money import ZERO, to_money
from core.domain.pricing import (
    AdjustmentStatus, AdjustmentType, EffectivePriceResolver,
    PriceAdjustmentRule, RoomContext,
)
from core.engine.event_bus import event_bus, Event

logger = logging.getLogger(__name__)


def to_rule(adjustment: PriceAdjustment) -> PriceAdjustmentRule:
    """ORM 行转换为领域规则"""
    return PriceAdjustmentRule(
        id=adjustment.id,
        adjustment_type=AdjustmentType(adjustment.adjustment_type),
        adjustment_value=Decimal(str(adjustment.adjustment_value)),
        effective_date=adjustment.effective_date,
        expiry_date=adjustment.expiry_date,
        cities=tuple(adjustment.cities or ()),
        hotels=tuple(adjustment.hotels or ()),
        room_types=tuple(adjustment.room_types or ()),
        reason=adjustment.reason,
        status=AdjustmentStatus(adjustment.status),
    )


def room_context(room: Room) -> RoomContext:
    """房间的定价范围信息"""
    return RoomContext(
        city_id=room.hotel.city if room.hotel else None,
        hotel_id=room.hotel_id,
        room_type_id=room.room_type_id,
    )


class PricingService:
    """定价服务"""

    def __init__(self, db: Session, resolver: Optional[EffectivePriceResolver] = None,
                 event_publisher: Callable[[Event], None] = None):
        self.db = db
        self.resolver = resolver or EffectivePriceResolver()
        self._publish_event = event_publisher or event_bus.publish

    # ---------- 调价规则管理 ----------

    def create_adjustment(self, data: PriceAdjustmentCreate,
                          created_by: Optional[int] = None) -> PriceAdjustment:
        """创建调价规则"""
        adjustment = PriceAdjustment(
            cities=list(data.cities),
            hotels=list(data.hotels),
            room_types=list(data.room_types),
            adjustment_type=data.adjustment_type,
            adjustment_value=data.adjustment_value,
            reason=data.reason,
            effective_date=data.effective_date,
            expiry_date=data.expiry_date,
            status=AdjustmentStatus.ACTIVE,
            created_by=created_by,
        )
        self.db.add(adjustment)
        self.db.commit()
        self.db.refresh(adjustment)

        logger.info(
            f"Price adjustment {adjustment.id} created: {adjustment.adjustment_type.value} "
            f"{adjustment.adjustment_value} from {adjustment.effective_date}"
        )
        self._publish(EventType.PRICE_ADJUSTMENT_CREATED, adjustment, operator_id=created_by)
        return adjustment

    def get_adjustment(self, adjustment_id: int) -> PriceAdjustment:
        """获取调价规则"""
        adjustment = self.db.query(PriceAdjustment).filter(
            PriceAdjustment.id == adjustment_id
        ).first()
        if not adjustment:
            raise NotFoundError(f"调价规则 {adjustment_id} 不存在", adjustment_id=adjustment_id)
        return adjustment

    def list_adjustments(self, status: Optional[AdjustmentStatus] = None,
                         page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """分页获取调价规则历史（新建在前）"""
        query = self.db.query(PriceAdjustment)
        if status is not None:
            query = query.filter(PriceAdjustment.status == status)

        total = query.count()
        adjustments = query.order_by(
            PriceAdjustment.created_at.desc(), PriceAdjustment.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "adjustments": adjustments,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": max(1, math.ceil(total / limit)),
        }

    def update_adjustment(self, adjustment_id: int, data: PriceAdjustmentUpdate,
                          operator_id: Optional[int] = None) -> PriceAdjustment:
        """更新调价规则（ID 以外的字段均可修改）"""
        adjustment = self.get_adjustment(adjustment_id)
        update_data = data.model_dump(exclude_unset=True)

        for key, value in update_data.items():
            setattr(adjustment, key, value)

        if adjustment.expiry_date is not None and adjustment.expiry_date <= adjustment.effective_date:
            self.db.rollback()
            raise ValidationError("失效时间必须晚于生效时间", field="expiry_date")
        if AdjustmentType(adjustment.adjustment_type) == AdjustmentType.PERCENTAGE \
                and Decimal(str(adjustment.adjustment_value)) <= Decimal("-100"):
            self.db.rollback()
            raise ValidationError("比例调价不能小于等于 -100%", field="adjustment_value")

        self.db.commit()
        self.db.refresh(adjustment)

        logger.info(f"Price adjustment {adjustment.id} updated: {sorted(update_data)}")
        self._publish(EventType.PRICE_ADJUSTMENT_UPDATED, adjustment,
                      operator_id=operator_id, changed_fields=sorted(update_data))
        return adjustment

    def retire_adjustment(self, adjustment_id: int, operator_id: Optional[int] = None) -> PriceAdjustment:
        """下线调价规则（不物理删除）"""
        adjustment = self.get_adjustment(adjustment_id)
        adjustment.status = AdjustmentStatus.INACTIVE
        self.db.commit()
        self.db.refresh(adjustment)

        logger.info(f"Price adjustment {adjustment.id} retired")
        self._publish(EventType.PRICE_ADJUSTMENT_RETIRED, adjustment, operator_id=operator_id)
        return adjustment

    # ---------- 有效价格 ----------

    def get_candidate_rules(self, as_of: datetime) -> List[PriceAdjustmentRule]:
        """获取 as_of 时刻生效中的规则（范围匹配交给解析器）"""
        as_of = to_naive_utc(as_of)
        rows = self.db.query(PriceAdjustment).filter(
            PriceAdjustment.status == AdjustmentStatus.ACTIVE,
            PriceAdjustment.effective_date <= as_of,
            or_(PriceAdjustment.expiry_date.is_(None), PriceAdjustment.expiry_date > as_of),
        ).all()
        return [to_rule(row) for row in rows]

    def get_room(self, room_id: int) -> Room:
        """获取房间"""
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFoundError(f"房间 {room_id} 不存在", room_id=room_id)
        return room

    def get_effective_price(self, room_id: int, booking_date: Optional[datetime] = None) -> Dict[str, Any]:
        """获取房间在指定时间的有效价格（夜价与钟点价）"""
        room = self.get_room(room_id)
        as_of = to_naive_utc(booking_date) if booking_date else utcnow()

        context = room_context(room)
        rules = self.get_candidate_rules(as_of)

        nightly = self.resolver.resolve(room.price_per_night, context, rules, as_of)
        hourly = None
        if room.price_per_hour is not None:
            hourly = self.resolver.resolve(room.price_per_hour, context, rules, as_of)

        return {
            "room_id": room.id,
            "booking_date": as_of,
            "original_price_per_night": to_money(room.price_per_night),
            "original_price_per_hour": to_money(room.price_per_hour) if room.price_per_hour is not None else None,
            "effective_price_per_night": nightly.final_price,
            "effective_price_per_hour": hourly.final_price if hourly else None,
            "applied_adjustments": list(nightly.applied_rules),
        }

    def calculate_stay_price(self, room_id: int, check_in_date: datetime,
                             check_out_date: datetime) -> Dict[str, Any]:
        """按晚解析价格并汇总整段住宿房费"""
        check_in_date = to_naive_utc(check_in_date)
        check_out_date = to_naive_utc(check_out_date)
        if check_out_date <= check_in_date:
            raise ValidationError("离店时间必须晚于入住时间", field="check_out_date")

        room = self.get_room(room_id)
        context = room_context(room)

        nightly = []
        total = ZERO
        current = check_in_date
        while current < check_out_date:
            resolution = self.resolver.resolve(
                room.price_per_night, context, self.get_candidate_rules(current), current
            )
            nightly.append({
                "date": current,
                "price": resolution.final_price,
                "applied_adjustments": list(resolution.applied_rules),
            })
            total += resolution.final_price
            current += timedelta(days=1)

        return {
            "room_id": room.id,
            "check_in_date": check_in_date,
            "check_out_date": check_out_date,
            "nights": len(nightly),
            "total_amount": to_money(total),
            "nightly": nightly,
        }

    def get_price_calendar(self, room_id: int, start_date: datetime, end_date: datetime) -> List[Dict[str, Any]]:
        """获取价格日历（含首尾两天）"""
        start_date = to_naive_utc(start_date)
        end_date = to_naive_utc(end_date)
        if end_date < start_date:
            raise ValidationError("结束日期不能早于开始日期", field="end_date")

        room = self.get_room(room_id)
        context = room_context(room)

        result = []
        current = start_date
        while current <= end_date:
            resolution = self.resolver.resolve(
                room.price_per_night, context, self.get_candidate_rules(current), current
            )
            result.append({
                "date": current,
                "price": resolution.final_price,
                "applied_adjustments": list(resolution.applied_rules),
            })
            current += timedelta(days=1)
        return result

    def _publish(self, event_type: EventType, adjustment: PriceAdjustment,
                 operator_id: Optional[int] = None, changed_fields: Optional[List[str]] = None) -> None:
        self._publish_event(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=PriceAdjustmentChangedData(
                adjustment_id=adjustment.id,
                adjustment_type=AdjustmentType(adjustment.adjustment_type).value,
                adjustment_value=Decimal(str(adjustment.adjustment_value)),
                status=AdjustmentStatus(adjustment.status).value,
                changed_fields=changed_fields or [],
                operator_id=operator_id,
            ).to_dict(),
            source="pricing_service",
        ))
