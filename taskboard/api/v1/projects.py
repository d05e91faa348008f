from fastapi import APIRouter, Depends, HTTPException, status

from taskboard.api.dependencies.store import get_store, raise_store_http_error
from taskboard.core.exceptions import FetchError, StoreError
from taskboard.schemas.board import BoardSnapshot
from taskboard.schemas.progress import ProgressResponse
from taskboard.schemas.project import ProjectCreate, ProjectList, ProjectResponse, ProjectUpdate
from taskboard.services.board_cache import BoardStateCache
from taskboard.services.progress_service import ProgressAggregator
from taskboard.services.project_service import ProjectService
from taskboard.services.remote_store import RemoteStore
from taskboard.logs import api_logger

router = APIRouter(
    prefix="/projects",
    tags=["projects"],
)


async def check_project_exists(project_id: str, store: RemoteStore) -> dict:
    try:
        project = await ProjectService.get_by_id(store, project_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to load project")
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    return project


@router.get("", response_model=ProjectList)
async def get_projects(store: RemoteStore = Depends(get_store)):
    """List projects ordered by name"""
    try:
        projects = await ProjectService.get_all(store)
    except StoreError as e:
        raise_store_http_error(e, "Failed to load projects")
    return {"projects": projects}


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    store: RemoteStore = Depends(get_store),
):
    """Create a project with the default status columns"""
    try:
        return await ProjectService.create(store, project_data)
    except StoreError as e:
        raise_store_http_error(e, "Failed to create project")


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, store: RemoteStore = Depends(get_store)):
    return await check_project_exists(project_id, store)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    store: RemoteStore = Depends(get_store),
):
    try:
        return await ProjectService.update(store, project_id, project_data)
    except StoreError as e:
        raise_store_http_error(e, "Failed to update project")


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, store: RemoteStore = Depends(get_store)):
    try:
        await ProjectService.delete(store, project_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to delete project")
    api_logger.info(f"Project {project_id} deleted")


@router.get("/{project_id}/board", response_model=BoardSnapshot, response_model_by_alias=False)
async def get_board(project_id: str, store: RemoteStore = Depends(get_store)):
    """Current columns and cards of the project"""
    await check_project_exists(project_id, store)
    cache = BoardStateCache(store, project_id)
    try:
        return await cache.load_snapshot()
    except FetchError as e:
        api_logger.error(str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load board data"
        )


@router.get("/{project_id}/progress", response_model=ProgressResponse)
async def get_progress(project_id: str, store: RemoteStore = Depends(get_store)):
    try:
        percentage = await ProgressAggregator(store).fetch(project_id)
    except StoreError as e:
        raise_store_http_error(e, "Failed to load project progress")
    if percentage is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Progress not found"
        )
    return {"project_id": project_id, "percentage": percentage}
