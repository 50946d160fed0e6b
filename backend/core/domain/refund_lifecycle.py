"""
core/domain/refund_lifecycle.py

退款记录生命周期

    pending --process--> processed
    pending --reject(reason)--> rejected
    pending --fail--> failed

processed / rejected / failed 为终态。
"""
from enum import Enum
from typing import Any, Dict, Optional, Union

from core.domain.errors import InvalidRefundTransitionError
from core.engine.state_machine import StateMachine, StateMachineConfig, StateTransition


class RefundStatus(str, Enum):
    """退款状态"""
    PENDING = "pending"
    PROCESSED = "processed"
    REJECTED = "rejected"
    FAILED = "failed"


class RefundTrigger(str, Enum):
    """退款状态触发动作"""
    PROCESS = "process"
    REJECT = "reject"
    FAIL = "fail"


def _has_rejection_reason(context: Dict[str, Any]) -> bool:
    reason = context.get("rejection_reason")
    return bool(reason and str(reason).strip())


REFUND_STATE_MACHINE = StateMachineConfig(
    name="Refund",
    states=[s.value for s in RefundStatus],
    transitions=[
        StateTransition(
            from_state=RefundStatus.PENDING.value,
            to_state=RefundStatus.PROCESSED.value,
            trigger=RefundTrigger.PROCESS.value,
        ),
        StateTransition(
            from_state=RefundStatus.PENDING.value,
            to_state=RefundStatus.REJECTED.value,
            trigger=RefundTrigger.REJECT.value,
            condition=_has_rejection_reason,
            description="拒绝退款必须填写原因",
        ),
        StateTransition(
            from_state=RefundStatus.PENDING.value,
            to_state=RefundStatus.FAILED.value,
            trigger=RefundTrigger.FAIL.value,
        ),
    ],
    initial_state=RefundStatus.PENDING.value,
    final_states=frozenset({
        RefundStatus.PROCESSED.value,
        RefundStatus.REJECTED.value,
        RefundStatus.FAILED.value,
    }),
)


def transition_refund(
    current: Union[RefundStatus, str],
    trigger: Union[RefundTrigger, str],
    context: Optional[Dict[str, Any]] = None,
    refund_id: Any = None,
) -> RefundStatus:
    """
    计算退款状态转换后的新状态

    Args:
        current: 当前状态
        trigger: 触发动作
        context: 转换上下文（reject 需要 rejection_reason）
        refund_id: 仅用于错误上下文

    Returns:
        新状态

    Raises:
        InvalidRefundTransitionError: 当前状态不允许该动作或条件不满足
    """
    current_value = RefundStatus(current).value
    trigger_value = RefundTrigger(trigger).value

    machine = StateMachine(REFUND_STATE_MACHINE, current_state=current_value)
    transition = machine.get_transition(trigger_value)

    if transition is None:
        raise InvalidRefundTransitionError(
            f"退款状态为 {current_value}，无法执行 {trigger_value}",
            refund_id=refund_id, status=current_value, trigger=trigger_value,
        )
    if not machine.fire(trigger_value, context):
        raise InvalidRefundTransitionError(
            transition.description or f"退款无法执行 {trigger_value}",
            refund_id=refund_id, status=current_value, trigger=trigger_value,
        )
    return RefundStatus(machine.current_state)


def is_final(status: Union[RefundStatus, str]) -> bool:
    """是否为终态"""
    return RefundStatus(status).value in REFUND_STATE_MACHINE.final_states


__all__ = [
    "RefundStatus",
    "RefundTrigger",
    "REFUND_STATE_MACHINE",
    "transition_refund",
    "is_final",
]
