import asyncio
import inspect
import itertools
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from taskboard.schemas.realtime import ChangeEvent
from taskboard.logs.server_log import api_logger

ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class Subscription:
    """One registered listener for a table, scoped by equality filters"""

    def __init__(self, subscription_id: int, table: str, filters: Optional[Dict[str, Any]], callback: ChangeCallback):
        self.id = subscription_id
        self.table = table
        self.filters = dict(filters or {})
        self.callback = callback

    def accepts(self, event: ChangeEvent) -> bool:
        return event.table == self.table and event.matches(self.filters)


class ChangeFeed:
    """In-process row-level change feed, fanned out to subscribers per table"""

    def __init__(self):
        # {table: {subscription_id: Subscription}}
        self.subscriptions: Dict[str, Dict[int, Subscription]] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        table: str,
        filters: Optional[Dict[str, Any]],
        callback: ChangeCallback,
    ) -> Callable[[], None]:
        """Register a callback and return its unsubscribe handle"""
        subscription = Subscription(next(self._ids), table, filters, callback)
        self.subscriptions.setdefault(table, {})[subscription.id] = subscription
        api_logger.info(f"ChangeFeed: subscription {subscription.id} on '{table}' with filter {subscription.filters}")

        def unsubscribe() -> None:
            self.unsubscribe(table, subscription.id)

        return unsubscribe

    def unsubscribe(self, table: str, subscription_id: int):
        table_subscriptions = self.subscriptions.get(table)
        if not table_subscriptions or subscription_id not in table_subscriptions:
            return
        del table_subscriptions[subscription_id]
        if not table_subscriptions:
            del self.subscriptions[table]
        api_logger.info(f"ChangeFeed: subscription {subscription_id} on '{table}' removed")

    def subscriber_count(self, table: Optional[str] = None) -> int:
        if table is not None:
            return len(self.subscriptions.get(table, {}))
        return sum(len(subs) for subs in self.subscriptions.values())

    async def publish(self, event: ChangeEvent):
        """Deliver an event to every matching subscriber; callback errors are logged, not raised"""
        # Копия списка: колбэк может отписаться во время рассылки
        targets = [sub for sub in self.subscriptions.get(event.table, {}).values() if sub.accepts(event)]
        if not targets:
            return

        api_logger.info(f"ChangeFeed: {event.event_type.value} on '{event.table}' to {len(targets)} subscribers")

        # Подписчики обслуживаются параллельно, медленный не задерживает остальных
        await asyncio.gather(*(self._deliver(subscription, event) for subscription in targets))

    async def _deliver(self, subscription: Subscription, event: ChangeEvent):
        try:
            result = subscription.callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            api_logger.error(
                f"ChangeFeed: subscriber {subscription.id} failed on {event.event_type.value} '{event.table}': {str(e)}"
            )
