import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import HTTPException, status

from taskboard.api.v1.projects import get_board, get_progress, check_project_exists
from taskboard.api.v1.tasks import move_task, create_task, delete_task, update_task
from taskboard.api.v1.realtime import RealtimeConnection
from taskboard.core.exceptions import FetchError, InvalidReferenceError, RecordNotFoundError
from taskboard.schemas.task import TaskCreate, TaskMove, TaskUpdate
from taskboard.services.remote_store import RemoteStore


@pytest.fixture
def mock_store():
    return AsyncMock(spec=RemoteStore)


class TestProjectRoutes:
    """Тесты эндпоинтов проектов"""

    @pytest.mark.asyncio
    async def test_missing_project(self, mock_store):
        with patch('taskboard.api.v1.projects.ProjectService.get_by_id', return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await check_project_exists("p404", mock_store)

        assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND
        assert "Project not found" in str(exc_info.value.detail)

    @pytest.mark.asyncio
    async def test_board_fetch_failure(self, mock_store):
        with patch('taskboard.api.v1.projects.check_project_exists', return_value={"id": "p1"}), \
             patch('taskboard.api.v1.projects.BoardStateCache.load_snapshot', side_effect=FetchError("p1")):
            with pytest.raises(HTTPException) as exc_info:
                await get_board("p1", mock_store)

        assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc_info.value.detail == "Failed to load board data"

    @pytest.mark.asyncio
    async def test_board_from_store(self, store, board):
        snapshot = await get_board(board["project_id"], store)

        assert [column.name for column in snapshot.columns] == ["New", "InProgress", "Done"]

    @pytest.mark.asyncio
    async def test_progress_not_found(self, mock_store):
        mock_store.select.return_value = []

        with pytest.raises(HTTPException) as exc_info:
            await get_progress("p1", mock_store)

        assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND


class TestTaskRoutes:
    """Тесты эндпоинтов задач"""

    @pytest.mark.asyncio
    async def test_move_missing_task(self, mock_store):
        with patch('taskboard.api.v1.tasks.TaskService.get_by_id', return_value={"id": "t1", "project_id": "p1"}), \
             patch('taskboard.api.v1.tasks.TaskService.move', side_effect=RecordNotFoundError("tasks", "t1")):
            with pytest.raises(HTTPException) as exc_info:
                await move_task("p1", "t1", TaskMove(status_id="done"), mock_store)

        assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_move_recalculates_progress(self, store, board):
        task = await move_task(board["project_id"], board["t1"], TaskMove(status_id=board["done"]), store)

        assert task["status_id"] == board["done"]
        progress = await get_progress(board["project_id"], store)
        assert progress == {"project_id": board["project_id"], "percentage": 100}

    @pytest.mark.asyncio
    async def test_task_of_other_project_is_not_found(self, store, board):
        other = await store.insert("projects", {"name": "Other"})

        for call in (
            delete_task(other["id"], board["t1"], store),
            update_task(other["id"], board["t1"], TaskUpdate(title="hijacked"), store),
            move_task(other["id"], board["t1"], TaskMove(status_id=board["done"]), store),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await call
            assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND

        task = await store.get("tasks", board["t1"])
        assert task is not None
        assert task["title"] == "T1"
        assert task["status_id"] == board["new"]

    @pytest.mark.asyncio
    async def test_delete_recalculates_own_project(self, store, board):
        await delete_task(board["project_id"], board["t1"], store)

        progress = await get_progress(board["project_id"], store)
        assert progress["percentage"] == 100

    @pytest.mark.asyncio
    async def test_create_with_foreign_status(self, mock_store):
        with patch('taskboard.api.v1.tasks.check_project_exists', return_value={"id": "p1"}), \
             patch('taskboard.api.v1.tasks.TaskService.create',
                   side_effect=InvalidReferenceError("Status s9 does not belong to project p1", table="statuses")):
            with pytest.raises(HTTPException) as exc_info:
                await create_task("p1", TaskCreate(title="x", status_id="s9"), mock_store)

        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST


class TestRealtimeConnection:
    """Тесты websocket канала изменений"""

    @pytest.fixture
    def websocket(self):
        websocket = MagicMock()
        websocket.send_text = AsyncMock()
        return websocket

    def sent(self, websocket):
        return [json.loads(call.args[0]) for call in websocket.send_text.call_args_list]

    @pytest.mark.asyncio
    async def test_subscribe_and_forward_changes(self, websocket, store, board):
        connection = RealtimeConnection(websocket, store)

        await connection.handle(json.dumps(
            {"command": "subscribe", "data": {"table": "tasks", "project_id": board["project_id"]}}
        ))
        await store.update("tasks", board["t1"], {"status_id": board["done"]})

        messages = self.sent(websocket)
        assert messages[0]["event"] == "subscribed"
        assert messages[1]["event"] == "change"
        assert messages[1]["data"]["event_type"] == "UPDATE"
        assert messages[1]["data"]["new"]["status_id"] == board["done"]

        connection.close()
        assert store.feed.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_ping_and_errors(self, websocket, mock_store):
        connection = RealtimeConnection(websocket, mock_store)

        await connection.handle(json.dumps({"command": "ping", "data": {}}))
        await connection.handle(json.dumps({"command": "shout", "data": {}}))
        await connection.handle("not json")
        await connection.handle(json.dumps({"command": "subscribe", "data": {}}))

        events = [message["event"] for message in self.sent(websocket)]
        assert events == ["pong", "error", "error", "error"]
        mock_store.subscribe.assert_not_called()
