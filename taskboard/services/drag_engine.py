import enum
import math
from typing import Optional, Set

from taskboard.core import get_settings
from taskboard.core.exceptions import (
    CommitError,
    FetchError,
    NotFoundError,
    RecordNotFoundError,
    StoreError,
)
from taskboard.schemas.board import DragSessionSchema
from taskboard.services.board_cache import BoardStateCache
from taskboard.logs import debug_logger, api_logger


class DragState(str, enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


class DragReconciliationEngine:
    """
    Optimistic drag-and-drop of cards between status columns.

    Pointer-over events relocate the card in the cache speculatively. A drop
    issues exactly one update of the card's status to the Remote Store; on
    failure the speculative state is discarded by reloading the board.
    """

    def __init__(self, store, cache: BoardStateCache, aggregator=None, notifier=None):
        self._store = store
        self.cache = cache
        self.aggregator = aggregator
        self.notifier = notifier
        self.state = DragState.IDLE
        self.session: Optional[DragSessionSchema] = None
        self._in_flight: Set[str] = set()

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    def resolve_target(self, target_id: Optional[str]) -> Optional[str]:
        """Column id for a drop/over target: a column itself or the column of a card"""
        if target_id is None:
            return None
        if self.cache.get_column(target_id) is not None:
            return target_id
        card = self.cache.get_card(target_id)
        if card is not None:
            return card.column_id
        return None

    def on_drag_start(self, item_id: str) -> bool:
        if self.state != DragState.IDLE:
            debug_logger.debug(f"Перетаскивание {item_id} проигнорировано, состояние {self.state.value}")
            return False

        card = self.cache.get_card(item_id)
        if card is None:
            debug_logger.warning(f"Задача {item_id} отсутствует на доске, перетаскивание не начато")
            return False

        self.session = DragSessionSchema(
            card_id=card.id,
            origin_column_id=card.column_id,
            target_column_id=card.column_id,
        )
        self.state = DragState.DRAGGING
        debug_logger.debug(f"Начато перетаскивание задачи {card.id} из статуса {card.column_id}")
        return True

    def on_drag_over(self, item_id: str, target_id: Optional[str]):
        if self.state != DragState.DRAGGING or self.session is None or self.session.card_id != item_id:
            return

        column_id = self.resolve_target(target_id)
        if column_id is None:
            return

        self.session.target_column_id = column_id
        self.cache.relocate(item_id, column_id)

    def cancel(self) -> bool:
        """Abort the drag and restore the card to its origin column, no I/O"""
        if self.state != DragState.DRAGGING or self.session is None:
            return False

        session = self.session
        self.cache.relocate(session.card_id, session.origin_column_id)
        self.session = None
        self.state = DragState.IDLE
        debug_logger.debug(f"Перетаскивание задачи {session.card_id} отменено")
        return True

    async def on_drag_end(self, item_id: str, target_id: Optional[str]) -> bool:
        """Drop handler; True only when the move was committed"""
        if item_id in self._in_flight:
            api_logger.warning(f"Drop of task {item_id} rejected: commit already in flight")
            return False

        if self.state != DragState.DRAGGING or self.session is None or self.session.card_id != item_id:
            return False

        column_id = self.resolve_target(target_id)
        if column_id is None:
            if self.cache.get_card(item_id) is not None:
                self.cancel()
                return False
            # Карточку удалили во время перетаскивания: коммит получит NotFound
            column_id = self.session.target_column_id

        self.cache.relocate(item_id, column_id)
        card = self.cache.get_card(item_id)
        commit_column_id = card.column_id if card is not None else column_id

        self.session = None
        self.state = DragState.COMMITTING
        self._in_flight.add(item_id)
        try:
            error = await self._commit(item_id, commit_column_id)
            if error is not None:
                await self._reconcile(error)
                return False
        finally:
            self._in_flight.discard(item_id)
            self.state = DragState.IDLE

        if self.notifier is not None:
            self.notifier.success("Task status updated")
        if self.aggregator is not None:
            await self.aggregator.recompute(self.cache.snapshot)
        return True

    async def _commit(self, card_id: str, column_id: str) -> Optional[CommitError]:
        try:
            await self._store.update("tasks", card_id, {"status_id": column_id})
        except RecordNotFoundError as e:
            return NotFoundError(card_id, column_id, e)
        except StoreError as e:
            return CommitError(card_id, column_id, e)
        debug_logger.info(f"Задача {card_id} перемещена в статус {column_id}")
        return None

    async def _reconcile(self, error: CommitError):
        """Discard speculative state by reloading the authoritative board"""
        api_logger.error(str(error))
        if self.notifier is not None:
            self.notifier.failure("Failed to update task status", str(error.cause or error))

        try:
            snapshot = await self.cache.load_snapshot()
        except FetchError as e:
            api_logger.error(str(e))
            if self.notifier is not None:
                self.notifier.failure("Failed to load board data")
            return

        if self.aggregator is not None:
            await self.aggregator.recompute(snapshot)


class PointerSensor:
    """
    Turns raw pointer input into drag handler calls.

    A press becomes a drag only after the pointer moved more than
    `activation_distance` from where it went down; shorter gestures are clicks.
    """

    def __init__(self, engine: DragReconciliationEngine, activation_distance: Optional[float] = None):
        self.engine = engine
        if activation_distance is None:
            activation_distance = get_settings().DRAG_ACTIVATION_DISTANCE
        self.activation_distance = activation_distance
        self._item_id: Optional[str] = None
        self._origin = (0.0, 0.0)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def _reset(self):
        self._item_id = None
        self._active = False

    def pointer_down(self, item_id: str, x: float, y: float) -> bool:
        if self._item_id is not None or self.engine.state != DragState.IDLE:
            return False
        self._item_id = item_id
        self._origin = (x, y)
        self._active = False
        return True

    def pointer_move(self, x: float, y: float, over_id: Optional[str] = None):
        if self._item_id is None:
            return

        if not self._active:
            distance = math.hypot(x - self._origin[0], y - self._origin[1])
            if distance <= self.activation_distance:
                return
            if not self.engine.on_drag_start(self._item_id):
                self._reset()
                return
            self._active = True

        if over_id is not None:
            self.engine.on_drag_over(self._item_id, over_id)

    async def pointer_up(self, over_id: Optional[str] = None) -> bool:
        if self._item_id is None:
            return False
        item_id, active = self._item_id, self._active
        self._reset()
        if not active:
            return False
        return await self.engine.on_drag_end(item_id, over_id)

    def pointer_leave(self):
        """Pointer left the viewport: cancel any active drag"""
        if self._active:
            self.engine.cancel()
        self._reset()
