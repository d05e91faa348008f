from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from taskboard.api.dependencies.store import get_store, raise_store_http_error
from taskboard.api.v1.projects import check_project_exists
from taskboard.core.exceptions import FetchError, StoreError
from taskboard.schemas.task import TaskCreate, TaskMove, TaskResponse, TaskUpdate
from taskboard.services.board_cache import BoardStateCache
from taskboard.services.progress_service import ProgressAggregator
from taskboard.services.remote_store import RemoteStore
from taskboard.services.task_service import TaskService
from taskboard.logs import api_logger

router = APIRouter(
    prefix="/projects/{project_id}/tasks",
    tags=["tasks"],
)


async def recalculate_progress(store: RemoteStore, project_id: str):
    """Best-effort progress refresh after a task mutation"""
    try:
        snapshot = await BoardStateCache(store, project_id).load_snapshot()
    except FetchError as e:
        api_logger.warning(f"Progress not recalculated for project {project_id}: {str(e)}")
        return
    await ProgressAggregator(store).recompute(snapshot)


async def check_task_in_project(project_id: str, task_id: str, store: RemoteStore) -> dict:
    try:
        task = await TaskService.get_by_id(store, task_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to load task")
    # Задача чужого проекта для этого пути не существует
    if task is None or task["project_id"] != project_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
    return task


@router.get("", response_model=List[TaskResponse])
async def get_tasks(project_id: str, store: RemoteStore = Depends(get_store)):
    await check_project_exists(project_id, store)
    try:
        return await TaskService.get_by_project(store, project_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to load tasks")


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    project_id: str,
    task_data: TaskCreate,
    store: RemoteStore = Depends(get_store),
):
    """Create a task in one of the project's status columns"""
    await check_project_exists(project_id, store)
    try:
        task = await TaskService.create(store, project_id, task_data)
    except StoreError as e:
        raise_store_http_error(e, "Failed to save task")
    await recalculate_progress(store, project_id)
    return task


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    project_id: str,
    task_id: str,
    task_data: TaskUpdate,
    store: RemoteStore = Depends(get_store),
):
    current = await check_task_in_project(project_id, task_id, store)
    try:
        task = await TaskService.update(store, task_id, task_data)
    except StoreError as e:
        raise_store_http_error(e, "Failed to save task")
    await recalculate_progress(store, current["project_id"])
    return task


@router.put("/{task_id}/move", response_model=TaskResponse)
async def move_task(
    project_id: str,
    task_id: str,
    move_data: TaskMove,
    store: RemoteStore = Depends(get_store),
):
    """Move a task to another status column"""
    current = await check_task_in_project(project_id, task_id, store)
    try:
        task = await TaskService.move(store, task_id, move_data.status_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to update task status")
    await recalculate_progress(store, current["project_id"])
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    project_id: str,
    task_id: str,
    store: RemoteStore = Depends(get_store),
):
    current = await check_task_in_project(project_id, task_id, store)
    try:
        await TaskService.delete(store, task_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to delete task")
    await recalculate_progress(store, current["project_id"])
