from fastapi import APIRouter
from taskboard.api.v1.projects import router as projects_router
from taskboard.api.v1.tasks import router as tasks_router
from taskboard.api.v1.realtime import router as realtime_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include routers
api_router.include_router(projects_router)
api_router.include_router(tasks_router)
api_router.include_router(realtime_router)
