"""
事件处理器
订阅调价与退款领域事件，记录业务日志（通知投递由外部系统负责）
"""
import logging

from app.models.events import EventType
from core.engine.event_bus import event_bus, Event

logger = logging.getLogger(__name__)


class EventHandlers:
    """事件处理器集合"""

    def __init__(self):
        self._registered = False

    def handle_price_adjustment_changed(self, event: Event) -> None:
        """调价规则变更"""
        data = event.data
        logger.info(
            f"[{EventType(event.event_type).value}] adjustment={data.get('adjustment_id')} "
            f"{data.get('adjustment_type')} {data.get('adjustment_value')} status={data.get('status')}"
        )

    def handle_booking_cancelled(self, event: Event) -> None:
        """预订取消"""
        data = event.data
        logger.info(
            f"Booking {data.get('booking_id')} cancelled by {data.get('cancelled_by')} "
            f"(hotel {data.get('hotel_id')})"
        )

    def handle_refund_event(self, event: Event) -> None:
        """退款状态变化，记录退款金额与状态"""
        data = event.data
        logger.info(
            f"[{EventType(event.event_type).value}] refund={data.get('refund_id')} booking={data.get('booking_id')} "
            f"user={data.get('user_id')} amount={data.get('refund_amount')} status={data.get('status')}"
        )

    def handle_wallet_credited(self, event: Event) -> None:
        """钱包入账"""
        data = event.data
        logger.info(
            f"Wallet {data.get('wallet_id')} of user {data.get('user_id')} credited "
            f"{data.get('amount')} ({data.get('source')})"
        )

    def _subscriptions(self):
        return [
            (EventType.PRICE_ADJUSTMENT_CREATED, self.handle_price_adjustment_changed),
            (EventType.PRICE_ADJUSTMENT_UPDATED, self.handle_price_adjustment_changed),
            (EventType.PRICE_ADJUSTMENT_RETIRED, self.handle_price_adjustment_changed),
            (EventType.BOOKING_CANCELLED, self.handle_booking_cancelled),
            (EventType.REFUND_REQUESTED, self.handle_refund_event),
            (EventType.REFUND_PROCESSED, self.handle_refund_event),
            (EventType.REFUND_REJECTED, self.handle_refund_event),
            (EventType.REFUND_FAILED, self.handle_refund_event),
            (EventType.WALLET_CREDITED, self.handle_wallet_credited),
        ]

    def register_handlers(self, event_bus_instance=None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            return

        bus = event_bus_instance or event_bus
        for event_type, handler in self._subscriptions():
            bus.subscribe(event_type, handler)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """取消注册所有事件处理器（用于测试）"""
        bus = event_bus_instance or event_bus
        for event_type, handler in self._subscriptions():
            bus.unsubscribe(event_type, handler)

        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers():
    """注册所有事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()
