from typing import Callable, List, Optional, Tuple

from taskboard.core.exceptions import FetchError, StoreError
from taskboard.schemas.board import BoardSnapshot, CardSchema, ColumnSchema
from taskboard.logs import debug_logger, log_function

SnapshotListener = Callable[[BoardSnapshot], None]


def relocate(snapshot: BoardSnapshot, card_id: str, target_column_id: str) -> BoardSnapshot:
    """
    Return a snapshot where `card_id` sits in `target_column_id`.

    Unknown card or unknown target column returns the snapshot unchanged, so
    a relocation can never produce a dangling column reference.
    """
    card = snapshot.get_card(card_id)
    if card is None or snapshot.get_column(target_column_id) is None:
        return snapshot
    if card.column_id == target_column_id:
        return snapshot

    cards = tuple(
        c.model_copy(update={"column_id": target_column_id}) if c.id == card_id else c
        for c in snapshot.cards
    )
    return snapshot.model_copy(update={"cards": cards})


class BoardStateCache:
    """
    Columns and cards of one project, the single source of truth for rendering.

    The snapshot is replaced as a whole on every change; readers only ever
    see a complete BoardSnapshot.
    """

    def __init__(self, store, project_id: Optional[str] = None):
        self._store = store
        self.project_id = project_id
        self._snapshot: Optional[BoardSnapshot] = None
        self._listeners: List[SnapshotListener] = []

    @property
    def snapshot(self) -> BoardSnapshot:
        if self._snapshot is None:
            return BoardSnapshot(project_id=self.project_id or "")
        return self._snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _swap(self, snapshot: BoardSnapshot):
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                debug_logger.error(f"Ошибка в подписчике снимка доски: {str(e)}")

    @log_function()
    async def load_snapshot(self, project_id: Optional[str] = None) -> BoardSnapshot:
        """Fetch statuses then tasks and swap in a new snapshot; FetchError keeps the old one"""
        project_id = project_id or self.project_id
        try:
            column_rows = await self._store.select(
                "statuses", {"project_id": project_id}, order_by="display_order"
            )
            card_rows = await self._store.select(
                "tasks", {"project_id": project_id}, order_by=["created_at", "id"]
            )
        except StoreError as e:
            debug_logger.error(f"Не удалось загрузить доску проекта {project_id}: {str(e)}")
            raise FetchError(project_id, e) from e

        # Стабильная сортировка: при равном display_order сохраняется порядок получения
        columns = tuple(
            sorted((ColumnSchema.model_validate(row) for row in column_rows), key=lambda c: c.display_order)
        )
        column_ids = {column.id for column in columns}

        cards: List[CardSchema] = []
        for row in card_rows:
            card = CardSchema.model_validate(row)
            if card.column_id not in column_ids:
                debug_logger.warning(
                    f"Задача {card.id} ссылается на неизвестный статус {card.column_id}, пропускаем"
                )
                continue
            cards.append(card)

        snapshot = BoardSnapshot(project_id=project_id, columns=columns, cards=tuple(cards))
        self.project_id = project_id
        self._swap(snapshot)
        debug_logger.info(
            f"Доска проекта {project_id} загружена: {len(columns)} статусов, {len(cards)} задач"
        )
        return snapshot

    def relocate(self, card_id: str, target_column_id: str) -> BoardSnapshot:
        """Local, no-I/O move of a card; returns the current snapshot"""
        current = self.snapshot
        updated = relocate(current, card_id, target_column_id)
        if updated is not current:
            self._swap(updated)
        return self.snapshot

    def cards_in_column(self, column_id: str) -> Tuple[CardSchema, ...]:
        return self.snapshot.cards_in_column(column_id)

    def get_card(self, card_id: str) -> Optional[CardSchema]:
        return self.snapshot.get_card(card_id)

    def get_column(self, column_id: str) -> Optional[ColumnSchema]:
        return self.snapshot.get_column(column_id)

    def clear(self):
        """Discard the snapshot when the board view goes away"""
        self._snapshot = None
