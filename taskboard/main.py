from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskboard.db import init_db
from taskboard.core import get_settings
from taskboard.api.v1 import api_router
from taskboard.core.middleware import RequestLoggingMiddleware
from taskboard.logs.server_log import api_logger

# Get application settings
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        await init_db()
        api_logger.info("Database initialized")
    except Exception as e:
        api_logger.error(f"Error initializing database: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Project boards with realtime change feed and progress tracking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"message": f"{settings.PROJECT_NAME} is running"}


if __name__ == "__main__":
    import uvicorn

    api_logger.info("Сервер запускается на http://0.0.0.0:8000")
    uvicorn.run(
        "taskboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
