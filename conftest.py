import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from taskboard.db.database import init_db, make_session_factory
from taskboard.schemas.board import BoardSnapshot, CardSchema, ColumnSchema
from taskboard.services.remote_store import RemoteStore


def make_snapshot(project_id="p1", columns=None, cards=None) -> BoardSnapshot:
    """columns: [(id, name)], cards: [(id, column_id)]"""
    columns = columns if columns is not None else [("new", "New"), ("progress", "InProgress"), ("done", "Done")]
    cards = cards if cards is not None else [("t1", "new"), ("t2", "done")]
    return BoardSnapshot(
        project_id=project_id,
        columns=tuple(
            ColumnSchema(id=column_id, project_id=project_id, name=name, display_order=index)
            for index, (column_id, name) in enumerate(columns, start=1)
        ),
        cards=tuple(
            CardSchema(id=card_id, project_id=project_id, title=card_id.upper(), column_id=column_id)
            for card_id, column_id in cards
        ),
    )


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest_asyncio.fixture
async def store():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield RemoteStore(make_session_factory(engine))
    await engine.dispose()


@pytest_asyncio.fixture
async def board(store):
    """Project with columns [New, InProgress, Done] and tasks T1 -> New, T2 -> Done"""
    project = await store.insert("projects", {"name": "Board"})
    new = await store.insert("statuses", {"project_id": project["id"], "name": "New", "display_order": 1})
    progress = await store.insert("statuses", {"project_id": project["id"], "name": "InProgress", "display_order": 2})
    done = await store.insert("statuses", {"project_id": project["id"], "name": "Done", "display_order": 3})
    t1 = await store.insert(
        "tasks", {"project_id": project["id"], "status_id": new["id"], "title": "T1", "priority": "Must"}
    )
    t2 = await store.insert(
        "tasks", {"project_id": project["id"], "status_id": done["id"], "title": "T2", "priority": "Tiny"}
    )
    return {
        "project_id": project["id"],
        "new": new["id"],
        "progress": progress["id"],
        "done": done["id"],
        "t1": t1["id"],
        "t2": t2["id"],
    }
