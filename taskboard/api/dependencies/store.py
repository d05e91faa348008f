from functools import lru_cache

from fastapi import HTTPException, status

from taskboard.core.exceptions import InvalidReferenceError, RecordNotFoundError, StoreError, UnknownTableError
from taskboard.db.database import async_session_factory
from taskboard.services.remote_store import RemoteStore


@lru_cache
def get_store() -> RemoteStore:
    """Process-wide Remote Store; its change feed backs the websocket channel"""
    return RemoteStore(async_session_factory)


def raise_store_http_error(error: StoreError, detail: str):
    """Translate a store failure into the matching HTTP error"""
    if isinstance(error, RecordNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{error.table.capitalize()} record not found"
        ) from error
    if isinstance(error, (UnknownTableError, InvalidReferenceError)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(error)
        ) from error
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    ) from error
