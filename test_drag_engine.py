import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from taskboard.core.exceptions import RecordNotFoundError, StoreError
from taskboard.schemas.notification import ToastVariant
from taskboard.services.board_cache import BoardStateCache
from taskboard.services.drag_engine import DragReconciliationEngine, DragState, PointerSensor
from taskboard.services.notification_service import Notifier
from taskboard.services.progress_service import ProgressAggregator
from taskboard.services.remote_store import RemoteStore


def assert_no_dangling(snapshot):
    column_ids = {column.id for column in snapshot.columns}
    assert all(card.column_id in column_ids for card in snapshot.cards)


@pytest.fixture
def mock_store():
    return AsyncMock(spec=RemoteStore)


@pytest.fixture
def engine(mock_store, snapshot):
    cache = BoardStateCache(mock_store, "p1")
    cache._snapshot = snapshot
    aggregator = ProgressAggregator(mock_store)
    return DragReconciliationEngine(mock_store, cache, aggregator, Notifier())


class TestDragStateMachine:
    """Тесты состояний перетаскивания"""

    def test_drag_start_captures_origin(self, engine):
        assert engine.on_drag_start("t1") is True
        assert engine.state == DragState.DRAGGING
        assert engine.session.origin_column_id == "new"

    def test_unknown_card_does_not_start(self, engine):
        assert engine.on_drag_start("ghost") is False
        assert engine.state == DragState.IDLE

    def test_second_drag_ignored_while_dragging(self, engine):
        engine.on_drag_start("t1")

        assert engine.on_drag_start("t2") is False
        assert engine.session.card_id == "t1"

    def test_drag_over_card_uses_its_column(self, engine):
        engine.on_drag_start("t1")
        engine.on_drag_over("t1", "t2")

        assert engine.cache.get_card("t1").column_id == "done"
        assert engine.session.target_column_id == "done"

    def test_intermediate_states_have_no_dangling_reference(self, engine):
        engine.on_drag_start("t1")
        for target in ("progress", "nowhere", "t2", "new", "done"):
            engine.on_drag_over("t1", target)
            assert_no_dangling(engine.cache.snapshot)

    def test_over_events_for_other_item_ignored(self, engine):
        engine.on_drag_start("t1")
        engine.on_drag_over("t2", "new")

        assert engine.cache.get_card("t2").column_id == "done"

    @pytest.mark.asyncio
    async def test_scenario_a_commit_and_progress(self, engine, mock_store):
        """Перетаскивание T1 в Done: один запрос и прогресс 100"""
        progress = MagicMock()
        engine.aggregator.on_progress_update(progress)

        engine.on_drag_start("t1")
        engine.on_drag_over("t1", "done")
        committed = await engine.on_drag_end("t1", "done")

        assert committed is True
        assert engine.state == DragState.IDLE
        assert engine.session is None
        mock_store.update.assert_called_once_with("tasks", "t1", {"status_id": "done"})
        progress.assert_called_once_with(100)
        assert engine.notifier.history[-1].title == "Task status updated"

    @pytest.mark.asyncio
    async def test_scenario_b_cancel_restores_origin(self, engine, mock_store):
        """Отмена без drop: откат локально, без запросов"""
        before = engine.cache.snapshot.column_mapping()

        engine.on_drag_start("t1")
        engine.on_drag_over("t1", "progress")
        assert engine.cache.get_card("t1").column_id == "progress"
        engine.cancel()

        assert engine.cache.snapshot.column_mapping() == before
        assert engine.state == DragState.IDLE
        mock_store.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_drop_on_nothing_is_cancel(self, engine, mock_store):
        engine.on_drag_start("t1")
        engine.on_drag_over("t1", "done")

        assert await engine.on_drag_end("t1", None) is False

        assert engine.cache.get_card("t1").column_id == "new"
        assert engine.state == DragState.IDLE
        mock_store.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_drop_on_same_column_still_commits(self, engine, mock_store):
        engine.on_drag_start("t2")

        assert await engine.on_drag_end("t2", "t2") is True

        mock_store.update.assert_called_once_with("tasks", "t2", {"status_id": "done"})

    @pytest.mark.asyncio
    async def test_commit_failure_reloads_snapshot(self, engine, mock_store):
        mock_store.update.side_effect = StoreError("timeout", table="tasks")
        mock_store.select.side_effect = [
            [
                {"id": "new", "project_id": "p1", "name": "New", "display_order": 1},
                {"id": "done", "project_id": "p1", "name": "Done", "display_order": 2},
            ],
            [{"id": "t1", "project_id": "p1", "title": "T1", "priority": "Must", "status_id": "new"}],
        ]

        engine.on_drag_start("t1")
        engine.on_drag_over("t1", "done")
        committed = await engine.on_drag_end("t1", "done")

        assert committed is False
        assert engine.state == DragState.IDLE
        assert engine.cache.get_card("t1").column_id == "new"
        assert engine.notifier.history[-1].variant == ToastVariant.DESTRUCTIVE

    @pytest.mark.asyncio
    async def test_reload_failure_still_returns_to_idle(self, engine, mock_store):
        mock_store.update.side_effect = StoreError("timeout", table="tasks")
        mock_store.select.side_effect = StoreError("offline", table="statuses")

        engine.on_drag_start("t1")
        engine.on_drag_over("t1", "done")
        assert await engine.on_drag_end("t1", "done") is False

        assert engine.state == DragState.IDLE
        assert [toast.title for toast in engine.notifier.history] == [
            "Failed to update task status",
            "Failed to load board data",
        ]

    @pytest.mark.asyncio
    async def test_progress_write_failure_does_not_undo_move(self, engine, mock_store):
        mock_store.upsert.side_effect = StoreError("progress table locked", table="project_progress")

        engine.on_drag_start("t1")
        assert await engine.on_drag_end("t1", "done") is True

        assert engine.cache.get_card("t1").column_id == "done"
        mock_store.select.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_commit_in_flight(self, engine, mock_store):
        """Повторный drop до завершения коммита не дает второго запроса"""
        release = asyncio.Event()

        async def slow_update(*args, **kwargs):
            await release.wait()
            return {}

        mock_store.update.side_effect = slow_update

        engine.on_drag_start("t1")
        first = asyncio.create_task(engine.on_drag_end("t1", "done"))
        await asyncio.sleep(0)
        assert engine.state == DragState.COMMITTING

        assert await engine.on_drag_end("t1", "done") is False
        assert engine.on_drag_start("t1") is False

        release.set()
        assert await first is True
        assert mock_store.update.call_count == 1
        assert engine.in_flight == set()


class TestDragAgainstStore:
    """Сценарии на реальном хранилище (SQLite в памяти)"""

    @pytest.mark.asyncio
    async def test_commit_then_reload_is_idempotent(self, store, board):
        cache = BoardStateCache(store, board["project_id"])
        await cache.load_snapshot()
        engine = DragReconciliationEngine(store, cache, ProgressAggregator(store), Notifier())

        engine.on_drag_start(board["t1"])
        engine.on_drag_over(board["t1"], board["done"])
        assert await engine.on_drag_end(board["t1"], board["done"]) is True
        mapping = cache.snapshot.column_mapping()

        reloaded = await cache.load_snapshot()

        assert reloaded.column_mapping() == mapping
        progress = await store.select("project_progress", {"project_id": board["project_id"]})
        assert progress[0]["percentage"] == 100

    @pytest.mark.asyncio
    async def test_scenario_c_card_deleted_during_drag(self, store, board):
        cache = BoardStateCache(store, board["project_id"])
        await cache.load_snapshot()
        notifier = Notifier()
        engine = DragReconciliationEngine(store, cache, ProgressAggregator(store), notifier)

        engine.on_drag_start(board["t1"])
        engine.on_drag_over(board["t1"], board["done"])
        await store.delete("tasks", board["t1"])

        assert await engine.on_drag_end(board["t1"], board["done"]) is False

        assert cache.get_card(board["t1"]) is None
        assert cache.get_card(board["t2"]) is not None
        assert engine.state == DragState.IDLE
        assert notifier.history[-1].title == "Failed to update task status"

    @pytest.mark.asyncio
    async def test_drop_on_itself_after_remote_delete_notifies(self, store, board):
        cache = BoardStateCache(store, board["project_id"])
        await cache.load_snapshot()
        notifier = Notifier()
        engine = DragReconciliationEngine(store, cache, ProgressAggregator(store), notifier)

        engine.on_drag_start(board["t1"])
        await store.delete("tasks", board["t1"])
        # Перезагрузка другим клиентом убрала карточку из кэша
        await cache.load_snapshot()

        assert await engine.on_drag_end(board["t1"], board["t1"]) is False

        assert engine.state == DragState.IDLE
        assert engine.in_flight == set()
        assert notifier.history[-1].title == "Failed to update task status"

    @pytest.mark.asyncio
    async def test_update_of_missing_card_raises_not_found(self, store, board):
        with pytest.raises(RecordNotFoundError):
            await store.update("tasks", "no-such-task", {"status_id": board["done"]})


class TestPointerSensor:
    """Тесты порога активации перетаскивания"""

    def test_click_does_not_start_drag(self, engine):
        sensor = PointerSensor(engine, activation_distance=10)

        sensor.pointer_down("t1", 0, 0)
        sensor.pointer_move(6, 8, over_id="done")

        assert engine.state == DragState.IDLE
        assert engine.cache.get_card("t1").column_id == "new"

    @pytest.mark.asyncio
    async def test_movement_past_threshold_starts_drag(self, engine, mock_store):
        sensor = PointerSensor(engine, activation_distance=10)

        sensor.pointer_down("t1", 0, 0)
        sensor.pointer_move(0, 11, over_id="progress")

        assert engine.state == DragState.DRAGGING
        assert engine.cache.get_card("t1").column_id == "progress"

        assert await sensor.pointer_up(over_id="progress") is True
        mock_store.update.assert_called_once_with("tasks", "t1", {"status_id": "progress"})

    @pytest.mark.asyncio
    async def test_release_without_drag_is_click(self, engine, mock_store):
        sensor = PointerSensor(engine, activation_distance=10)

        sensor.pointer_down("t1", 0, 0)
        assert await sensor.pointer_up(over_id="done") is False
        mock_store.update.assert_not_called()

    def test_leaving_viewport_cancels(self, engine):
        sensor = PointerSensor(engine, activation_distance=10)

        sensor.pointer_down("t1", 0, 0)
        sensor.pointer_move(50, 0, over_id="progress")
        sensor.pointer_leave()

        assert engine.state == DragState.IDLE
        assert engine.cache.get_card("t1").column_id == "new"
        assert sensor.active is False
