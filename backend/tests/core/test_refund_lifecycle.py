"""
测试 core.domain.refund_lifecycle 退款状态流转
"""
import pytest

from core.domain.errors import InvalidRefundTransitionError
from core.domain.refund_lifecycle import (
    RefundStatus, RefundTrigger, is_final, transition_refund,
)


class TestTransitions:
    """状态转换"""

    def test_process(self):
        assert transition_refund(RefundStatus.PENDING, RefundTrigger.PROCESS) == RefundStatus.PROCESSED

    def test_reject_with_reason(self):
        new_status = transition_refund(
            "pending", "reject", context={"rejection_reason": "重复申请"}
        )
        assert new_status == RefundStatus.REJECTED

    @pytest.mark.parametrize("context", [None, {}, {"rejection_reason": "   "}])
    def test_reject_requires_reason(self, context):
        with pytest.raises(InvalidRefundTransitionError) as exc:
            transition_refund(RefundStatus.PENDING, RefundTrigger.REJECT, context=context, refund_id=5)
        assert exc.value.details["refund_id"] == 5

    def test_fail(self):
        assert transition_refund(RefundStatus.PENDING, RefundTrigger.FAIL) == RefundStatus.FAILED

    @pytest.mark.parametrize("status", [RefundStatus.PROCESSED, RefundStatus.REJECTED, RefundStatus.FAILED])
    @pytest.mark.parametrize("trigger", list(RefundTrigger))
    def test_final_states_cannot_move(self, status, trigger):
        with pytest.raises(InvalidRefundTransitionError) as exc:
            transition_refund(status, trigger, context={"rejection_reason": "x"})
        assert exc.value.details["status"] == status.value

    def test_unknown_trigger(self):
        with pytest.raises(ValueError):
            transition_refund(RefundStatus.PENDING, "refund_twice")


class TestIsFinal:
    def test_pending_not_final(self):
        assert not is_final(RefundStatus.PENDING)

    @pytest.mark.parametrize("status", ["processed", "rejected", "failed"])
    def test_terminal(self, status):
        assert is_final(status)
