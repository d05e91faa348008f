from typing import Any, Dict, List, Optional

from taskboard.core.exceptions import InvalidReferenceError, RecordNotFoundError
from taskboard.schemas.task import TaskCreate, TaskUpdate
from taskboard.logs import debug_logger, log_function


class TaskService:
    """CRUD operations for tasks, issued through the Remote Store so the change feed fires"""

    @staticmethod
    async def get_by_project(store, project_id: str) -> List[Dict[str, Any]]:
        return await store.select("tasks", {"project_id": project_id}, order_by=["created_at", "id"])

    @staticmethod
    async def get_by_id(store, task_id: str) -> Optional[Dict[str, Any]]:
        return await store.get("tasks", task_id)

    @staticmethod
    async def _check_status(store, project_id: str, status_id: str):
        status = await store.get("statuses", status_id)
        if status is None:
            raise RecordNotFoundError("statuses", status_id)
        if status["project_id"] != project_id:
            raise InvalidReferenceError(f"Status {status_id} does not belong to project {project_id}", table="statuses")

    @staticmethod
    @log_function()
    async def create(store, project_id: str, data: TaskCreate) -> Dict[str, Any]:
        """Create a task in a status column of the project"""
        await TaskService._check_status(store, project_id, data.status_id)
        row = data.model_dump()
        row["project_id"] = project_id
        task = await store.insert("tasks", row)
        debug_logger.info(f"Создана задача {task['id']} в статусе {data.status_id}")
        return task

    @staticmethod
    @log_function()
    async def update(store, task_id: str, data: TaskUpdate) -> Dict[str, Any]:
        patch = data.model_dump(exclude_unset=True)
        if "status_id" in patch:
            current = await store.get("tasks", task_id)
            if current is None:
                raise RecordNotFoundError("tasks", task_id)
            await TaskService._check_status(store, current["project_id"], patch["status_id"])
        if not patch:
            task = await store.get("tasks", task_id)
            if task is None:
                raise RecordNotFoundError("tasks", task_id)
            return task
        return await store.update("tasks", task_id, patch)

    @staticmethod
    async def move(store, task_id: str, status_id: str) -> Dict[str, Any]:
        """Set the task's status column (same write a board drop issues)"""
        return await TaskService.update(store, task_id, TaskUpdate(status_id=status_id))

    @staticmethod
    async def delete(store, task_id: str) -> Dict[str, Any]:
        debug_logger.debug(f"Удаление задачи ID: {task_id}")
        return await store.delete("tasks", task_id)
