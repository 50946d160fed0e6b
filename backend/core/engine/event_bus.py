"""
core/engine/event_bus.py

进程内事件总线 - 发布/订阅

服务层在退款状态变化、调价规则变更等时机发布领域事件，
通知类处理器（推送、邮件等）以订阅者方式接入，处理器异常互相隔离。
"""
from typing import Callable, Dict, List, Any, Optional, Protocol, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

# 类型别名
EventId = str
CorrelationId = str


def _generate_event_id() -> EventId:
    """生成唯一事件ID"""
    return f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


class EventHandler(Protocol):
    """事件处理器协议"""

    def __call__(self, event: "Event") -> None:
        ...


@dataclass
class Event:
    """
    领域事件

    Attributes:
        event_type: 事件类型（如 "refund.processed"）
        timestamp: 事件时间戳
        data: 事件数据
        source: 触发来源（服务名）
        event_id: 唯一事件ID
        correlation_id: 关联ID（如同一次退款申请触发的多个事件）
    """

    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str = ""
    event_id: EventId = field(default_factory=_generate_event_id)
    correlation_id: Optional[CorrelationId] = None

    def with_correlation(self, parent_id: EventId) -> "Event":
        """设置关联ID并返回自身"""
        self.correlation_id = parent_id
        return self


@dataclass
class PublishResult:
    """
    事件发布结果

    Attributes:
        event_type: 事件类型
        subscriber_count: 订阅者数量
        success_count: 成功处理的处理器数量
        failure_count: 失败的处理器数量
        errors: (handler, exception) 列表
    """

    event_type: str
    subscriber_count: int
    success_count: int = 0
    failure_count: int = 0
    errors: List[Tuple[Callable, Exception]] = field(default_factory=list)


@dataclass
class EventBusStatistics:
    """事件总线统计"""

    total_published: int = 0
    total_processed: int = 0
    total_failed: int = 0
    subscriber_count: Dict[str, int] = field(default_factory=dict)


class EventBus:
    """
    事件总线 - 线程安全单例

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe("refund.processed", lambda e: print(e.data["refund_id"]))
        >>> bus.publish(Event(event_type="refund.processed", timestamp=datetime.now(), data={"refund_id": 1}))
    """

    _instance: Optional["EventBus"] = None
    _lock = threading.Lock()

    def __new__(cls, history_size: int = 100) -> "EventBus":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, history_size: int = 100):
        if self._initialized:
            return

        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._event_history: deque = deque(maxlen=history_size)
        self._subscriber_lock = threading.RLock()
        self._stats = EventBusStatistics()
        self._stats_lock = threading.Lock()
        self._initialized = True
        logger.info("EventBus initialized")

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        订阅事件

        Args:
            event_type: 事件类型
            handler: 处理函数，接收 Event 对象
        """
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.info(f"Handler {_handler_name(handler)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """取消订阅"""
        with self._subscriber_lock:
            if handler in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(handler)
                logger.info(f"Handler {_handler_name(handler)} unsubscribed from {event_type}")

    def publish(self, event: Event) -> PublishResult:
        """
        发布事件（同步执行所有处理器）

        处理器异常记录日志并计入结果，不影响其他处理器，也不抛给发布方。
        """
        self._event_history.append(event)

        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        with self._stats_lock:
            self._stats.total_published += 1

        result = PublishResult(event_type=event.event_type, subscriber_count=len(handlers))

        for handler in handlers:
            try:
                handler(event)
                result.success_count += 1
                with self._stats_lock:
                    self._stats.total_processed += 1
            except Exception as e:
                result.failure_count += 1
                result.errors.append((handler, e))
                with self._stats_lock:
                    self._stats.total_failed += 1
                logger.error(
                    f"Event handler {_handler_name(handler)} error for {event.event_type}: {e}",
                    exc_info=True,
                )

        return result

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """获取事件历史（最新的在前）"""
        history = list(self._event_history)
        if event_type:
            history = [e for e in history if e.event_type == event_type]
        return list(reversed(history))[:limit]

    def get_subscribers(self, event_type: Optional[str] = None) -> Dict[str, List[str]]:
        """获取订阅者名称（用于调试）"""
        with self._subscriber_lock:
            if event_type:
                return {event_type: [_handler_name(h) for h in self._subscribers.get(event_type, [])]}
            return {et: [_handler_name(h) for h in hs] for et, hs in self._subscribers.items()}

    def get_statistics(self) -> EventBusStatistics:
        """获取统计信息副本"""
        with self._stats_lock:
            stats = EventBusStatistics(
                total_published=self._stats.total_published,
                total_processed=self._stats.total_processed,
                total_failed=self._stats.total_failed,
            )
        with self._subscriber_lock:
            stats.subscriber_count = {et: len(hs) for et, hs in self._subscribers.items()}
        return stats

    def clear(self) -> None:
        """完全清空（仅用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()
        self._event_history.clear()
        with self._stats_lock:
            self._stats = EventBusStatistics()


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


# 全局事件总线实例
event_bus = EventBus()


__all__ = [
    "EventId",
    "CorrelationId",
    "EventHandler",
    "Event",
    "PublishResult",
    "EventBusStatistics",
    "EventBus",
    "event_bus",
]
