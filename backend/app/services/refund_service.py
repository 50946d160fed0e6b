"""
退款服务
取消预订并生成退款申请，管理员审核后退款以钱包余额入账
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError, PermissionDeniedError
from app.models.events import BookingCancelledData, EventType, RefundEventData
from app.models.orm import (
    Booking, BookingStatus, PaymentMode, PaymentStatus, Refund, RefundMethod,
    User, UserRole,
)
from app.services.configuration_service import ConfigurationService
from app.services.wallet_service import WalletService
from core.domain.clock import hours_between, to_naive_utc, utcnow
from core.domain.errors import InvalidBookingStateError
from core.domain.money import ZERO, to_money
from core.domain.refund import RefundCalculation, RefundCalculator, RefundType
from core.domain.refund_lifecycle import RefundStatus, RefundTrigger, transition_refund
from core.engine.event_bus import event_bus, Event

logger = logging.getLogger(__name__)

# 仍占用该预订的退款状态（rejected / failed 后可重新申请）
BLOCKING_STATUSES = (RefundStatus.PENDING, RefundStatus.PROCESSED)

_CANCELLED_BY = {
    UserRole.USER: "user",
    UserRole.HOTEL: "hotel",
    UserRole.SUPER_ADMIN: "admin",
}


class RefundService:
    """退款服务"""

    def __init__(self, db: Session,
                 configuration_service: Optional[ConfigurationService] = None,
                 calculator: Optional[RefundCalculator] = None,
                 wallet_service: Optional[WalletService] = None,
                 event_publisher: Callable[[Event], None] = None):
        self.db = db
        self.configuration_service = configuration_service or ConfigurationService(db)
        self._calculator = calculator
        self._publish_event = event_publisher or event_bus.publish
        self.wallet_service = wallet_service or WalletService(db, event_publisher=self._publish_event)

    @property
    def calculator(self) -> RefundCalculator:
        """退款计算器（未注入时按当前配置的档位表构建）"""
        if self._calculator is None:
            return RefundCalculator(self.configuration_service.get_refund_tier_table())
        return self._calculator

    # ---------- 查询 ----------

    def get_booking(self, booking_id: int) -> Booking:
        """获取预订"""
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"预订 {booking_id} 不存在", booking_id=booking_id)
        return booking

    def get_refund(self, refund_id: int, user: Optional[User] = None) -> Refund:
        """获取退款记录，传入 user 时校验可见性"""
        refund = self.db.query(Refund).filter(Refund.id == refund_id).first()
        if not refund:
            raise NotFoundError(f"退款记录 {refund_id} 不存在", refund_id=refund_id)
        if user is not None:
            self._check_booking_access(refund.booking, user)
        return refund

    def get_user_refunds(self, user_id: int, status: Optional[RefundStatus] = None,
                         page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """获取用户自己的退款记录"""
        query = self.db.query(Refund).filter(Refund.user_id == user_id)
        if status is not None:
            query = query.filter(Refund.status == status)
        return self._paginate(query, page, limit)

    def list_refunds(self, status: Optional[RefundStatus] = None,
                     refund_type: Optional[RefundType] = None,
                     page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """获取全部退款记录（管理员）"""
        query = self.db.query(Refund)
        if status is not None:
            query = query.filter(Refund.status == status)
        if refund_type is not None:
            query = query.filter(Refund.refund_type == refund_type)
        return self._paginate(query, page, limit)

    # ---------- 退款申请 ----------

    def preview_refund(self, booking_id: int, user: User,
                       refund_type: RefundType = RefundType.CANCELLATION,
                       now: Optional[datetime] = None) -> RefundCalculation:
        """预估退款金额，不落库"""
        booking = self.get_booking(booking_id)
        self._check_refund_permission(booking, user, refund_type)
        self._check_refundable(booking)
        return self._calculate(booking, refund_type, now or utcnow())

    def create_refund_request(self, booking_id: int, user: User, refund_reason: str,
                              refund_type: RefundType = RefundType.CANCELLATION,
                              now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        取消预订并创建退款申请

        Args:
            booking_id: 预订ID
            user: 发起人（客人本人、酒店方或管理员）
            refund_reason: 退款原因
            refund_type: cancellation / no_show / admin_refund
            now: 计算时间点，默认当前 UTC

        Returns:
            {"refund": Refund, "calculation": RefundCalculation}
        """
        refund_type = RefundType(refund_type)
        now = to_naive_utc(now) if now else utcnow()

        booking = self.get_booking(booking_id)
        self._check_refund_permission(booking, user, refund_type)
        self._check_refundable(booking)

        existing = self.db.query(Refund).filter(
            Refund.booking_id == booking.id,
            Refund.status.in_(BLOCKING_STATUSES),
        ).first()
        if existing:
            raise ConflictError(
                "该预订已存在退款申请",
                booking_id=booking.id, refund_id=existing.id, status=existing.status.value,
            )

        calculation = self._calculate(booking, refund_type, now)
        payment = booking.payment
        payment_mode = payment.payment_mode if payment else None

        refund = Refund(
            booking_id=booking.id,
            original_payment_id=payment.id if payment else None,
            user_id=booking.user_id,
            refund_type=refund_type,
            original_amount=calculation.original_amount,
            cancellation_fee_amount=calculation.cancellation_fee_amount,
            refund_amount=calculation.refund_amount,
            cancellation_fee_percentage=calculation.fee_percentage,
            refund_reason=refund_reason,
            status=RefundStatus.PENDING,
            refund_method=RefundMethod.RAZORPAY if payment_mode == PaymentMode.ONLINE else RefundMethod.BANK_TRANSFER,
            expected_processing_days=self.configuration_service.get_refund_processing_days(payment_mode),
        )
        self.db.add(refund)

        booking.status = BookingStatus.CANCELLED
        booking.cancellation_reason = refund_reason
        booking.cancelled_by = _CANCELLED_BY.get(user.role, "user")
        booking.cancelled_at = now

        try:
            self.db.commit()
        except IntegrityError:
            # 并发申请撞上唯一索引
            self.db.rollback()
            raise ConflictError("该预订已存在退款申请", booking_id=booking_id)
        self.db.refresh(refund)

        logger.info(
            f"Refund {refund.id} requested for booking {booking.id} by user {user.id}: "
            f"fee {calculation.cancellation_fee_amount} ({calculation.fee_percentage}%), "
            f"refund {calculation.refund_amount}"
        )

        self._publish_event(Event(
            event_type=EventType.BOOKING_CANCELLED,
            timestamp=datetime.now(),
            data=BookingCancelledData(
                booking_id=booking.id,
                user_id=booking.user_id,
                hotel_id=booking.hotel_id,
                cancelled_by=booking.cancelled_by,
                reason=refund_reason,
            ).to_dict(),
            source="refund_service",
        ))
        self._publish(EventType.REFUND_REQUESTED, refund, operator_id=user.id, reason=refund_reason)

        return {"refund": refund, "calculation": calculation}

    # ---------- 审核 ----------

    def process_refund(self, refund_id: int, operator: User,
                       now: Optional[datetime] = None) -> Refund:
        """通过退款：退款金额入账到客人钱包"""
        self._require_admin(operator)
        refund = self.get_refund(refund_id)
        refund.status = transition_refund(refund.status, RefundTrigger.PROCESS, refund_id=refund.id)

        refund_amount = to_money(refund.refund_amount)
        if refund_amount > ZERO:
            self.wallet_service.credit(
                user_id=refund.user_id,
                amount=refund_amount,
                source="refund",
                description=f"Refund for booking #{refund.booking_id}",
                reference_id=str(refund.id),
                reference_type="refund",
            )
            if refund.original_payment is not None:
                refund.original_payment.status = PaymentStatus.REFUNDED

        refund.refund_method = RefundMethod.WALLET
        refund.processed_by = operator.id
        refund.processed_at = to_naive_utc(now) if now else utcnow()
        self.db.commit()
        self.db.refresh(refund)

        logger.info(f"Refund {refund.id} processed by {operator.id}: {refund_amount} credited to wallet")
        self._publish(EventType.REFUND_PROCESSED, refund, operator_id=operator.id)
        return refund

    def reject_refund(self, refund_id: int, operator: User, rejection_reason: str,
                      now: Optional[datetime] = None) -> Refund:
        """拒绝退款：预订恢复为已确认"""
        self._require_admin(operator)
        refund = self.get_refund(refund_id)
        refund.status = transition_refund(
            refund.status, RefundTrigger.REJECT,
            context={"rejection_reason": rejection_reason}, refund_id=refund.id,
        )
        refund.rejection_reason = rejection_reason
        refund.processed_by = operator.id
        refund.processed_at = to_naive_utc(now) if now else utcnow()

        booking = refund.booking
        booking.status = BookingStatus.CONFIRMED
        booking.cancellation_reason = None
        booking.cancelled_by = None
        booking.cancelled_at = None

        self.db.commit()
        self.db.refresh(refund)

        logger.info(f"Refund {refund.id} rejected by {operator.id}, booking {booking.id} restored")
        self._publish(EventType.REFUND_REJECTED, refund, operator_id=operator.id, reason=rejection_reason)
        return refund

    def mark_refund_failed(self, refund_id: int, operator: User, failure_reason: Optional[str] = None,
                           now: Optional[datetime] = None) -> Refund:
        """标记退款失败（渠道退款未成功）"""
        self._require_admin(operator)
        refund = self.get_refund(refund_id)
        refund.status = transition_refund(refund.status, RefundTrigger.FAIL, refund_id=refund.id)
        refund.failure_reason = failure_reason
        refund.processed_by = operator.id
        refund.processed_at = to_naive_utc(now) if now else utcnow()
        self.db.commit()
        self.db.refresh(refund)

        logger.warning(f"Refund {refund.id} marked failed by {operator.id}: {failure_reason}")
        self._publish(EventType.REFUND_FAILED, refund, operator_id=operator.id, reason=failure_reason or "")
        return refund

    # ---------- 内部方法 ----------

    def _calculate(self, booking: Booking, refund_type: RefundType, now: datetime) -> RefundCalculation:
        if refund_type == RefundType.ADMIN_REFUND:
            # 管理员退款免收取消费，但仍校验预订数据
            if booking.check_in_date is None:
                raise InvalidBookingStateError("预订缺少入住时间", booking_id=booking.id, field="check_in_date")
            total = to_money(booking.total_amount) if booking.total_amount is not None else ZERO
            if total <= ZERO:
                raise InvalidBookingStateError(
                    "预订金额必须大于 0", booking_id=booking.id, field="total_amount", value=total,
                )
            hours = to_money(hours_between(now, booking.check_in_date))
            return RefundCalculation.full_refund(total, hours)

        return self.calculator.calculate(
            booking.check_in_date, booking.total_amount, now,
            refund_type=refund_type, booking_id=booking.id,
        )

    def _check_refundable(self, booking: Booking) -> None:
        if booking.status == BookingStatus.CANCELLED:
            raise InvalidBookingStateError("预订已取消", booking_id=booking.id, field="status")
        if booking.status == BookingStatus.COMPLETED:
            raise InvalidBookingStateError("已完成的预订不能退款", booking_id=booking.id, field="status")

    def _check_booking_access(self, booking: Booking, user: User) -> None:
        if user.role == UserRole.SUPER_ADMIN:
            return
        if user.role == UserRole.HOTEL and booking.hotel and booking.hotel.owner_id == user.id:
            return
        if booking.user_id == user.id:
            return
        raise PermissionDeniedError("无权访问该预订", booking_id=booking.id, user_id=user.id)

    def _check_refund_permission(self, booking: Booking, user: User, refund_type: RefundType) -> None:
        if RefundType(refund_type) == RefundType.ADMIN_REFUND and user.role != UserRole.SUPER_ADMIN:
            raise PermissionDeniedError("只有管理员可以发起管理员退款", user_id=user.id)
        self._check_booking_access(booking, user)

    def _require_admin(self, user: User) -> None:
        if user.role != UserRole.SUPER_ADMIN:
            raise PermissionDeniedError("只有管理员可以审核退款", user_id=user.id)

    def _paginate(self, query, page: int, limit: int) -> Dict[str, Any]:
        total = query.count()
        refunds = query.order_by(Refund.created_at.desc(), Refund.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()
        return {"refunds": refunds, "total": total, "page": page, "limit": limit}

    def _publish(self, event_type: EventType, refund: Refund,
                 operator_id: Optional[int] = None, reason: str = "") -> None:
        booking = refund.booking
        self._publish_event(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=RefundEventData(
                refund_id=refund.id,
                booking_id=refund.booking_id,
                user_id=refund.user_id,
                hotel_name=booking.hotel.name if booking and booking.hotel else "",
                refund_type=RefundType(refund.refund_type).value,
                status=RefundStatus(refund.status).value,
                refund_amount=to_money(refund.refund_amount),
                cancellation_fee_amount=to_money(refund.cancellation_fee_amount),
                expected_processing_days=refund.expected_processing_days,
                operator_id=operator_id,
                reason=reason,
            ).to_dict(),
            source="refund_service",
        ))
