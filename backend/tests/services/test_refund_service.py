"""
测试 RefundService 退款申请与审核
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from app.errors import ConflictError, NotFoundError, PermissionDeniedError
from app.models.events import EventType
from app.models.orm import (
    BookingStatus, ConfigValueType, PaymentMode, PaymentStatus, Refund, RefundMethod,
    WalletTransaction,
)
from app.services.configuration_service import ConfigurationService, REFUND_FEE_TIERS_KEY
from app.services.refund_service import RefundService
from app.services.wallet_service import WalletService
from core.domain.errors import InvalidBookingStateError, InvalidRefundTransitionError
from core.domain.refund import RefundType
from core.domain.refund_lifecycle import RefundStatus

NOW = datetime(2024, 6, 1, 12, 0)
REASON = "行程变更，无法按时入住"


@pytest.fixture
def service(db_session, published_events):
    return RefundService(db_session, event_publisher=published_events.append)


@pytest.fixture
def booking(booking_factory, guest_user, sample_room):
    """80 小时后入住的在线支付预订"""
    return booking_factory(guest_user, sample_room, NOW + timedelta(hours=80))


def _request(service, booking, user, refund_type=RefundType.CANCELLATION):
    return service.create_refund_request(booking.id, user, REASON, refund_type, now=NOW)


class TestPreview:
    """退款预估"""

    def test_preview_does_not_persist(self, service, db_session, booking, guest_user):
        calculation = service.preview_refund(booking.id, guest_user, now=NOW)
        assert calculation.refund_amount == Decimal("5000.00")
        assert db_session.query(Refund).count() == 0
        assert booking.status == BookingStatus.CONFIRMED

    def test_preview_other_users_booking(self, service, booking, other_guest):
        with pytest.raises(PermissionDeniedError):
            service.preview_refund(booking.id, other_guest, now=NOW)

    def test_preview_missing_booking(self, service, guest_user):
        with pytest.raises(NotFoundError):
            service.preview_refund(999, guest_user, now=NOW)


class TestCreateRefundRequest:
    """退款申请"""

    def test_full_refund_far_ahead(self, service, booking, guest_user, published_events):
        result = _request(service, booking, guest_user)
        refund = result["refund"]

        assert refund.status == RefundStatus.PENDING
        assert refund.refund_amount == Decimal("5000.00")
        assert refund.cancellation_fee_amount == Decimal("0.00")
        assert refund.refund_method == RefundMethod.RAZORPAY
        assert refund.expected_processing_days == 7
        assert refund.original_payment_id == booking.payment.id

        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancelled_by == "user"
        assert booking.cancellation_reason == REASON
        assert booking.cancelled_at == NOW

        event_types = [e.event_type for e in published_events]
        assert event_types == [EventType.BOOKING_CANCELLED, EventType.REFUND_REQUESTED]

    def test_last_minute_half_fee(self, service, booking_factory, guest_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=10))
        result = _request(service, booking, guest_user)
        assert result["calculation"].cancellation_fee_amount == Decimal("2500.00")
        assert result["refund"].refund_amount == Decimal("2500.00")
        assert result["refund"].cancellation_fee_percentage == Decimal("50")

    def test_no_show(self, service, booking_factory, guest_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=200), total_amount="3000.00")
        result = _request(service, booking, guest_user, refund_type=RefundType.NO_SHOW)
        assert result["refund"].refund_amount == Decimal("0.00")
        assert result["refund"].cancellation_fee_amount == Decimal("3000.00")

    def test_offline_payment_uses_bank_transfer(self, service, booking_factory, guest_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=80),
                                  payment_mode=PaymentMode.OFFLINE)
        refund = _request(service, booking, guest_user)["refund"]
        assert refund.refund_method == RefundMethod.BANK_TRANSFER
        assert refund.expected_processing_days == 10

    def test_configured_tiers_used(self, service, db_session, booking, guest_user):
        ConfigurationService(db_session).set(
            REFUND_FEE_TIERS_KEY,
            [{"min_hours": 100, "fee_percentage": 0}, {"min_hours": 0, "fee_percentage": 20}],
            ConfigValueType.JSON,
        )
        result = _request(service, booking, guest_user)
        assert result["calculation"].cancellation_fee_amount == Decimal("1000.00")

    def test_hotel_owner_can_cancel(self, service, booking, hotel_owner):
        _request(service, booking, hotel_owner)
        assert booking.cancelled_by == "hotel"

    def test_admin_refund_waives_fee(self, service, booking_factory, guest_user, admin_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=2))
        result = _request(service, booking, admin_user, refund_type=RefundType.ADMIN_REFUND)
        assert result["refund"].refund_amount == Decimal("5000.00")
        assert result["refund"].user_id == guest_user.id
        assert booking.cancelled_by == "admin"

    def test_admin_refund_requires_admin(self, service, booking, guest_user):
        with pytest.raises(PermissionDeniedError):
            _request(service, booking, guest_user, refund_type=RefundType.ADMIN_REFUND)

    def test_other_user_denied(self, service, booking, other_guest):
        with pytest.raises(PermissionDeniedError):
            _request(service, booking, other_guest)

    def test_already_cancelled(self, service, booking_factory, guest_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=80),
                                  status=BookingStatus.CANCELLED)
        with pytest.raises(InvalidBookingStateError):
            _request(service, booking, guest_user)

    def test_duplicate_request_conflicts(self, service, db_session, booking, guest_user):
        _request(service, booking, guest_user)
        # 绕过取消状态检查，验证重复申请
        booking.status = BookingStatus.CONFIRMED
        db_session.commit()
        with pytest.raises(ConflictError):
            _request(service, booking, guest_user)

    def test_zero_amount_booking(self, service, booking_factory, guest_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=80), total_amount="0.00")
        with pytest.raises(InvalidBookingStateError):
            _request(service, booking, guest_user)


class TestProcessRefund:
    """退款审核"""

    def test_approve_credits_wallet(self, service, db_session, booking, guest_user, admin_user, published_events):
        refund = _request(service, booking, guest_user)["refund"]
        processed = service.process_refund(refund.id, admin_user, now=NOW)

        assert processed.status == RefundStatus.PROCESSED
        assert processed.refund_method == RefundMethod.WALLET
        assert processed.processed_by == admin_user.id
        assert processed.processed_at == NOW
        assert booking.payment.status == PaymentStatus.REFUNDED

        assert WalletService(db_session).get_balance(guest_user.id) == Decimal("5000.00")
        transaction = db_session.query(WalletTransaction).one()
        assert transaction.reference_id == str(refund.id)

        event_types = [e.event_type for e in published_events]
        assert EventType.WALLET_CREDITED in event_types
        assert event_types[-1] == EventType.REFUND_PROCESSED

    def test_approve_no_show_skips_wallet(self, service, db_session, booking_factory, guest_user,
                                          admin_user, sample_room):
        booking = booking_factory(guest_user, sample_room, NOW + timedelta(hours=80))
        refund = _request(service, booking, guest_user, refund_type=RefundType.NO_SHOW)["refund"]
        service.process_refund(refund.id, admin_user, now=NOW)
        assert db_session.query(WalletTransaction).count() == 0

    def test_only_admin_processes(self, service, booking, guest_user):
        refund = _request(service, booking, guest_user)["refund"]
        with pytest.raises(PermissionDeniedError):
            service.process_refund(refund.id, guest_user)

    def test_cannot_process_twice(self, service, booking, guest_user, admin_user):
        refund = _request(service, booking, guest_user)["refund"]
        service.process_refund(refund.id, admin_user)
        with pytest.raises(InvalidRefundTransitionError):
            service.process_refund(refund.id, admin_user)

    def test_reject_restores_booking(self, service, booking, guest_user, admin_user, published_events):
        refund = _request(service, booking, guest_user)["refund"]
        rejected = service.reject_refund(refund.id, admin_user, "不符合退款政策")

        assert rejected.status == RefundStatus.REJECTED
        assert rejected.rejection_reason == "不符合退款政策"
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.cancelled_by is None
        assert booking.cancelled_at is None
        assert published_events[-1].event_type == EventType.REFUND_REJECTED

    def test_reject_requires_reason(self, service, booking, guest_user, admin_user):
        refund = _request(service, booking, guest_user)["refund"]
        with pytest.raises(InvalidRefundTransitionError):
            service.reject_refund(refund.id, admin_user, "  ")
        assert service.get_refund(refund.id).status == RefundStatus.PENDING

    def test_new_request_after_rejection(self, service, booking, guest_user, admin_user):
        refund = _request(service, booking, guest_user)["refund"]
        service.reject_refund(refund.id, admin_user, "资料不全")
        second = _request(service, booking, guest_user)["refund"]
        assert second.id != refund.id
        assert second.status == RefundStatus.PENDING

    def test_mark_failed(self, service, booking, guest_user, admin_user):
        refund = _request(service, booking, guest_user)["refund"]
        failed = service.mark_refund_failed(refund.id, admin_user, "渠道超时")
        assert failed.status == RefundStatus.FAILED
        assert failed.failure_reason == "渠道超时"
        with pytest.raises(InvalidRefundTransitionError):
            service.process_refund(refund.id, admin_user)


class TestQueries:
    """退款查询"""

    def test_get_refund_visibility(self, service, booking, guest_user, other_guest, hotel_owner):
        refund = _request(service, booking, guest_user)["refund"]
        assert service.get_refund(refund.id, user=guest_user).id == refund.id
        assert service.get_refund(refund.id, user=hotel_owner).id == refund.id
        with pytest.raises(PermissionDeniedError):
            service.get_refund(refund.id, user=other_guest)

    def test_user_and_admin_lists(self, service, booking_factory, guest_user, other_guest, admin_user, sample_room):
        mine = booking_factory(guest_user, sample_room, NOW + timedelta(hours=80))
        theirs = booking_factory(other_guest, sample_room, NOW + timedelta(hours=80))
        _request(service, mine, guest_user)
        other_refund = _request(service, theirs, other_guest)["refund"]
        service.process_refund(other_refund.id, admin_user)

        assert service.get_user_refunds(guest_user.id)["total"] == 1
        assert service.list_refunds()["total"] == 2
        processed = service.list_refunds(status=RefundStatus.PROCESSED)
        assert [r.id for r in processed["refunds"]] == [other_refund.id]
        assert service.list_refunds(refund_type=RefundType.NO_SHOW)["total"] == 0
