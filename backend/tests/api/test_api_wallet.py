"""
钱包 API 测试
覆盖 /wallet 端点
"""
from datetime import timedelta
from decimal import Decimal
from fastapi.testclient import TestClient

from core.domain.clock import utcnow


class TestWalletEndpoints:
    def test_empty_wallet(self, client: TestClient, guest_headers):
        response = client.get("/wallet/", headers=guest_headers)
        assert response.status_code == 200
        assert Decimal(response.json()["balance"]) == Decimal("0")

        transactions = client.get("/wallet/transactions", headers=guest_headers).json()
        assert transactions["total"] == 0
        assert transactions["transactions"] == []

    def test_processed_refund_visible(self, client: TestClient, guest_headers, other_guest_headers,
                                      admin_headers, booking_factory, guest_user, sample_room):
        booking = booking_factory(guest_user, sample_room, utcnow() + timedelta(hours=80))
        refund_id = client.post("/refunds/", json={
            "booking_id": booking.id,
            "refund_reason": "行程变更，无法按时入住",
        }, headers=guest_headers).json()["refund"]["id"]
        client.post(f"/refunds/{refund_id}/process", json={"action": "approve"}, headers=admin_headers)

        wallet = client.get("/wallet/", headers=guest_headers).json()
        assert Decimal(wallet["balance"]) == Decimal("5000.00")
        assert Decimal(wallet["total_earned"]) == Decimal("5000.00")

        transactions = client.get("/wallet/transactions", headers=guest_headers).json()
        assert transactions["total"] == 1
        entry = transactions["transactions"][0]
        assert entry["type"] == "credit"
        assert entry["source"] == "refund"
        assert entry["reference_id"] == str(refund_id)
        assert Decimal(entry["amount"]) == Decimal("5000.00")

        # 他人钱包不受影响
        other = client.get("/wallet/", headers=other_guest_headers).json()
        assert Decimal(other["balance"]) == Decimal("0")

    def test_requires_auth(self, client: TestClient):
        assert client.get("/wallet/").status_code in (401, 403)
