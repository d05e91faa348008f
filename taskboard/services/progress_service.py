from datetime import datetime, timezone
from typing import Callable, List, Optional

from taskboard.core import get_settings
from taskboard.core.exceptions import ProgressWriteError, StoreError
from taskboard.schemas.board import BoardSnapshot
from taskboard.logs import debug_logger, api_logger

ProgressListener = Callable[[int], None]


def calculate_progress(snapshot: BoardSnapshot, done_name: Optional[str] = None) -> int:
    """
    Percentage of cards sitting in the "done" column, rounded half up.

    Returns 0 when there is no "done" column or the board has no cards.
    """
    done_name = (done_name or get_settings().DONE_STATUS_NAME).lower()
    done_column = next((c for c in snapshot.columns if c.name.lower() == done_name), None)
    total = len(snapshot.cards)
    if done_column is None or total == 0:
        return 0

    completed = sum(1 for card in snapshot.cards if card.column_id == done_column.id)
    # round(100 * completed / total) c округлением половины вверх, без float
    return (200 * completed + total) // (2 * total)


class ProgressAggregator:
    """Derives the completion percentage of a project and persists it best-effort"""

    def __init__(self, store, done_name: Optional[str] = None):
        self._store = store
        self._done_name = done_name
        self._listeners: List[ProgressListener] = []
        self.last_percentage: Optional[int] = None
        self._persisted: Optional[tuple] = None

    def on_progress_update(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def recompute(self, snapshot: BoardSnapshot) -> int:
        percentage = calculate_progress(snapshot, self._done_name)
        self.last_percentage = percentage

        for listener in list(self._listeners):
            try:
                listener(percentage)
            except Exception as e:
                debug_logger.error(f"Ошибка в подписчике прогресса: {str(e)}")

        if self._persisted == (snapshot.project_id, percentage):
            # Это значение уже записано, повторный upsert не нужен
            return percentage

        try:
            await self.persist(snapshot.project_id, percentage)
        except ProgressWriteError as e:
            # Устаревший процент не критичен: только лог
            api_logger.warning(str(e))
        return percentage

    async def persist(self, project_id: str, percentage: int):
        try:
            await self._store.upsert(
                "project_progress",
                {
                    "project_id": project_id,
                    "percentage": percentage,
                    "calculated_at": datetime.now(timezone.utc).replace(tzinfo=None),
                },
                conflict_key="project_id",
            )
        except StoreError as e:
            self._persisted = None
            raise ProgressWriteError(project_id, percentage, e) from e
        self._persisted = (project_id, percentage)
        debug_logger.debug(f"Прогресс проекта {project_id}: {percentage}%")

    async def fetch(self, project_id: str) -> Optional[int]:
        """Persisted percentage, or None when no record exists yet"""
        rows = await self._store.select("project_progress", {"project_id": project_id})
        if not rows:
            return None
        return rows[0]["percentage"]
