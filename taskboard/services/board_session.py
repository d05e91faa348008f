from typing import Callable, List, Optional, Tuple

from taskboard.core.exceptions import FetchError
from taskboard.schemas.board import BoardSnapshot, CardSchema
from taskboard.schemas.realtime import ChangeEvent
from taskboard.services.board_cache import BoardStateCache
from taskboard.services.drag_engine import DragReconciliationEngine, PointerSensor
from taskboard.services.notification_service import Notifier
from taskboard.services.progress_service import ProgressAggregator
from taskboard.logs import debug_logger, api_logger

WATCHED_TABLES = ("tasks", "statuses")


class BoardSession:
    """
    One mounted project board: cache, drag engine and progress aggregator
    wired to the store's change feed.

    Update graph: change feed -> cache reload -> progress recompute.
    Drops: engine -> store commit -> progress recompute (or reload on failure).
    """

    def __init__(
        self,
        store,
        project_id: str,
        notifier: Optional[Notifier] = None,
        activation_distance: Optional[float] = None,
    ):
        self.store = store
        self.project_id = project_id
        self.notifier = notifier or Notifier()
        self.cache = BoardStateCache(store, project_id)
        self.aggregator = ProgressAggregator(store)
        self.engine = DragReconciliationEngine(store, self.cache, self.aggregator, self.notifier)
        self.sensor = PointerSensor(self.engine, activation_distance)
        self._unsubscribes: List[Callable[[], None]] = []

    @property
    def mounted(self) -> bool:
        return bool(self._unsubscribes)

    @property
    def snapshot(self) -> BoardSnapshot:
        return self.cache.snapshot

    async def mount(self) -> BoardSnapshot:
        """Initial fetch, progress and change-feed subscriptions"""
        if not self.mounted:
            for table in WATCHED_TABLES:
                self._unsubscribes.append(
                    self.store.subscribe(table, {"project_id": self.project_id}, self.handle_change)
                )

        await self.refresh()
        return self.cache.snapshot

    def unmount(self):
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []
        self.engine.cancel()
        self.cache.clear()
        debug_logger.debug(f"Доска проекта {self.project_id} закрыта")

    async def refresh(self) -> bool:
        """Reload the whole board and recompute progress; False if the fetch failed"""
        try:
            snapshot = await self.cache.load_snapshot(self.project_id)
        except FetchError as e:
            api_logger.error(str(e))
            self.notifier.failure("Failed to load board data")
            return False

        await self.aggregator.recompute(snapshot)
        return True

    async def handle_change(self, event: ChangeEvent):
        # Без применения дельты: любое событие ведет к полной перезагрузке
        api_logger.info(
            f"Board {self.project_id}: realtime {event.event_type.value} on '{event.table}', reloading"
        )
        await self.refresh()

    def on_progress_update(self, listener: Callable[[int], None]) -> Callable[[], None]:
        return self.aggregator.on_progress_update(listener)

    def on_drag_start(self, item_id: str) -> bool:
        return self.engine.on_drag_start(item_id)

    def on_drag_over(self, item_id: str, target_id: Optional[str]):
        self.engine.on_drag_over(item_id, target_id)

    async def on_drag_end(self, item_id: str, target_id: Optional[str]) -> bool:
        return await self.engine.on_drag_end(item_id, target_id)

    def cards_in_column(self, column_id: str) -> Tuple[CardSchema, ...]:
        return self.cache.cards_in_column(column_id)
