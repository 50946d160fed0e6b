"""
测试 WalletService 钱包入账
"""
import pytest
from decimal import Decimal

from app.models.events import EventType
from app.models.orm import Wallet, WalletTransaction, WalletTransactionType
from app.services.wallet_service import WalletService
from core.domain.errors import ValidationError


@pytest.fixture
def service(db_session, published_events):
    return WalletService(db_session, event_publisher=published_events.append)


class TestWalletService:
    def test_balance_without_wallet(self, service, guest_user):
        assert service.get_balance(guest_user.id) == Decimal("0.00")
        assert service.get_wallet(guest_user.id) is None

    def test_credit_creates_wallet(self, service, db_session, guest_user, published_events):
        transaction = service.credit(guest_user.id, Decimal("1250.50"), "refund",
                                     reference_id="3", reference_type="refund")
        db_session.commit()

        assert transaction.type == WalletTransactionType.CREDIT
        assert transaction.balance_after == Decimal("1250.50")
        wallet = db_session.query(Wallet).filter(Wallet.user_id == guest_user.id).one()
        assert wallet.total_earned == Decimal("1250.50")
        assert published_events[0].event_type == EventType.WALLET_CREDITED
        assert published_events[0].data["amount"] == "1250.50"

    def test_credits_accumulate(self, service, db_session, guest_user):
        service.credit(guest_user.id, Decimal("100.00"), "refund")
        service.credit(guest_user.id, "50.255", "promotion")
        db_session.commit()

        assert service.get_balance(guest_user.id) == Decimal("150.26")
        assert db_session.query(Wallet).count() == 1
        assert db_session.query(WalletTransaction).count() == 2

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_rejects_non_positive(self, service, guest_user, amount):
        with pytest.raises(ValidationError):
            service.credit(guest_user.id, amount, "refund")

    def test_summary_without_wallet(self, service, guest_user):
        summary = service.get_summary(guest_user.id)
        assert summary["balance"] == Decimal("0.00")
        assert summary["total_earned"] == Decimal("0.00")

    def test_transactions_newest_first(self, service, db_session, guest_user, other_guest):
        service.credit(guest_user.id, Decimal("100.00"), "refund", reference_id="1")
        service.credit(guest_user.id, Decimal("40.00"), "refund", reference_id="2")
        service.credit(other_guest.id, Decimal("10.00"), "promotion")
        db_session.commit()

        result = service.get_transactions(guest_user.id, page=1, limit=1)
        assert result["total"] == 2
        assert result["total_pages"] == 2
        assert [t.reference_id for t in result["transactions"]] == ["2"]
        assert result["transactions"][0].balance_after == Decimal("140.00")

        summary = service.get_summary(guest_user.id)
        assert summary["balance"] == Decimal("140.00")
        assert summary["total_earned"] == Decimal("140.00")
