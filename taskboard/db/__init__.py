from taskboard.db.database import init_db, get_async_session, async_session_factory

__all__ = ["init_db", "get_async_session", "async_session_factory"]
