"""
core/engine - 核心引擎模块

包含框架的通用引擎组件：
- event_bus: 事件总线（发布/订阅）
- state_machine: 状态机引擎（状态转换）

使用方式:
    >>> from core.engine import event_bus, Event
    >>> from core.engine import StateMachine, StateMachineConfig
"""

# 事件总线
from core.engine.event_bus import (
    EventId,
    CorrelationId,
    EventHandler,
    Event,
    PublishResult,
    EventBusStatistics,
    EventBus,
    event_bus,
)

# 状态机引擎
from core.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachineSnapshot,
    StateMachine,
)

__all__ = [
    "EventId",
    "CorrelationId",
    "EventHandler",
    "Event",
    "PublishResult",
    "EventBusStatistics",
    "EventBus",
    "event_bus",
    "StateTransition",
    "StateMachineConfig",
    "StateMachineSnapshot",
    "StateMachine",
]
