"""
core/engine/state_machine.py

状态机引擎 - 支持带条件的状态转换、终态和转换历史
"""
from typing import Dict, List, Any, Optional, Callable, FrozenSet
from dataclasses import dataclass, field
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


@dataclass
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作
        condition: 可选的转换条件
        description: 条件不满足时的提示
    """

    from_state: str
    to_state: str
    trigger: str
    condition: Optional[Callable[[Dict[str, Any]], bool]] = None
    description: str = ""

    def is_allowed(self, context: Dict[str, Any]) -> bool:
        """检查转换是否被允许"""
        if self.condition is None:
            return True
        return bool(self.condition(context))


@dataclass
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 状态机名称
        states: 所有状态的列表
        transitions: 转换列表
        initial_state: 初始状态
        final_states: 终态（无法再转出）
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str
    final_states: FrozenSet[str] = field(default_factory=frozenset)


@dataclass
class StateMachineSnapshot:
    """
    状态转换记录

    Attributes:
        previous_state: 转换前状态
        current_state: 转换后状态
        trigger: 触发动作
        timestamp: 转换时间
    """

    previous_state: str
    current_state: str
    trigger: str
    timestamp: datetime


class StateMachine:
    """
    状态机引擎

    Example:
        >>> machine = StateMachine(
        ...     config=StateMachineConfig(
        ...         name="Refund",
        ...         states=["pending", "processed", "rejected"],
        ...         transitions=[...],
        ...         initial_state="pending"
        ...     )
        ... )
        >>> if machine.can_fire("process"):
        ...     machine.fire("process")
    """

    def __init__(self, config: StateMachineConfig, current_state: Optional[str] = None):
        self._config = config
        self._current_state = current_state if current_state is not None else config.initial_state
        if self._current_state not in config.states:
            raise ValueError(f"Unknown state for {config.name}: {self._current_state}")
        self._history: List[StateMachineSnapshot] = []
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}

        # 构建转换映射: (from_state, trigger) -> transition
        for t in config.transitions:
            if t.from_state not in self._transition_map:
                self._transition_map[t.from_state] = {}
            self._transition_map[t.from_state][t.trigger] = t

    @property
    def current_state(self) -> str:
        """获取当前状态"""
        return self._current_state

    @property
    def config(self) -> StateMachineConfig:
        """获取状态机配置"""
        return self._config

    @property
    def is_final(self) -> bool:
        """当前是否处于终态"""
        return self._current_state in self._config.final_states

    def get_transition(self, trigger: str) -> Optional[StateTransition]:
        """获取当前状态下 trigger 对应的转换"""
        return self._transition_map.get(self._current_state, {}).get(trigger)

    def available_triggers(self) -> List[str]:
        """当前状态下可用的触发动作"""
        return sorted(self._transition_map.get(self._current_state, {}).keys())

    def can_fire(self, trigger: str, context: Optional[Dict[str, Any]] = None) -> bool:
        """
        检查触发动作是否可执行

        Args:
            trigger: 触发动作
            context: 可选的上下文数据

        Returns:
            True 如果转换被允许
        """
        transition = self.get_transition(trigger)
        if transition is None:
            return False
        return transition.is_allowed(context or {})

    def fire(self, trigger: str, context: Optional[Dict[str, Any]] = None) -> bool:
        """
        执行状态转换

        Args:
            trigger: 触发动作
            context: 可选的上下文数据

        Returns:
            True 如果转换成功
        """
        if not self.can_fire(trigger, context):
            logger.warning(
                f"Invalid transition on {self._config.name}: {self._current_state} (trigger: {trigger})"
            )
            return False

        transition = self.get_transition(trigger)
        previous_state = self._current_state
        self._current_state = transition.to_state

        self._history.append(StateMachineSnapshot(
            previous_state=previous_state,
            current_state=self._current_state,
            trigger=trigger,
            timestamp=datetime.now(),
        ))

        logger.info(f"State transition on {self._config.name}: {previous_state} -> {self._current_state} (trigger: {trigger})")
        return True

    def get_history(self) -> List[StateMachineSnapshot]:
        """获取转换历史"""
        return list(self._history)

    def reset(self, state: Optional[str] = None) -> None:
        """
        重置状态机

        Args:
            state: 要重置到的状态，如果为 None 则使用初始状态
        """
        self._current_state = state if state is not None else self._config.initial_state
        self._history.clear()


# 导出
__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachineSnapshot",
    "StateMachine",
]
