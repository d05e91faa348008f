import time
from typing import Any, Callable, Dict, List, Optional

from taskboard.core import get_settings
from taskboard.core.exceptions import RecordNotFoundError
from taskboard.schemas.project import ProjectCreate, ProjectDetails, ProjectUpdate
from taskboard.schemas.realtime import ChangeEvent
from taskboard.logs import debug_logger, api_logger, log_function

DEFAULT_STATUSES = ("New", "In progress", "Review", "Done")


class ProjectService:
    """CRUD operations for projects"""

    @staticmethod
    async def get_all(store) -> List[Dict[str, Any]]:
        return await store.select("projects", order_by="name")

    @staticmethod
    async def get_by_id(store, project_id: str) -> Optional[Dict[str, Any]]:
        return await store.get("projects", project_id)

    @staticmethod
    @log_function()
    async def create(store, data: ProjectCreate) -> Dict[str, Any]:
        """Create a project with the default workflow columns and a zero progress row"""
        project = await store.insert("projects", data.model_dump())

        for display_order, name in enumerate(DEFAULT_STATUSES, start=1):
            await store.insert(
                "statuses",
                {"project_id": project["id"], "name": name, "display_order": display_order},
            )

        await store.upsert(
            "project_progress",
            {"project_id": project["id"], "percentage": 0},
            conflict_key="project_id",
        )
        debug_logger.info(f"Создан проект {project['id']} со статусами {', '.join(DEFAULT_STATUSES)}")
        return project

    @staticmethod
    async def update(store, project_id: str, data: ProjectUpdate) -> Dict[str, Any]:
        patch = data.model_dump(exclude_unset=True)
        if not patch:
            project = await store.get("projects", project_id)
            if project is None:
                raise RecordNotFoundError("projects", project_id)
            return project
        return await store.update("projects", project_id, patch)

    @staticmethod
    async def delete(store, project_id: str) -> Dict[str, Any]:
        return await store.delete("projects", project_id)

    @staticmethod
    async def get_statuses(store, project_id: str) -> List[Dict[str, Any]]:
        return await store.select("statuses", {"project_id": project_id}, order_by="display_order")


class ProjectCache:
    """
    Project list with per-project progress, kept fresh by the change feed.

    Entries older than the TTL are reported as missing so callers refetch.
    """

    def __init__(self, store, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.store = store
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_settings().PROJECT_CACHE_TTL_SECONDS
        self._clock = clock
        self.projects: List[Dict[str, Any]] = []
        self._entries: Dict[str, ProjectDetails] = {}
        self._unsubscribes: List[Callable[[], None]] = []

    async def start(self):
        """Initial fetch and subscriptions to project and progress changes"""
        if not self._unsubscribes:
            self._unsubscribes.append(self.store.subscribe("projects", None, self._on_projects_change))
            self._unsubscribes.append(self.store.subscribe("project_progress", None, self._on_progress_change))
        await self.refresh()

    def stop(self):
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []

    async def refresh(self) -> List[Dict[str, Any]]:
        self.projects = await ProjectService.get_all(self.store)
        now = self._clock()
        # Кэш строится заново по полученному списку
        known = {project["id"] for project in self.projects}
        for project_id in [key for key in self._entries if key not in known]:
            del self._entries[project_id]
        for project in self.projects:
            existing = self._entries.get(project["id"])
            self._entries[project["id"]] = ProjectDetails(
                **project,
                progress=existing.progress if existing else None,
                last_fetched=now,
            )
        return self.projects

    def get(self, project_id: str) -> Optional[ProjectDetails]:
        entry = self._entries.get(project_id)
        if entry is None:
            return None
        if self._clock() - entry.last_fetched > self.ttl_seconds:
            return None
        return entry

    def get_progress(self, project_id: str) -> int:
        entry = self.get(project_id)
        if entry is None or entry.progress is None:
            return 0
        return entry.progress

    def invalidate(self, project_id: str):
        self._entries.pop(project_id, None)

    async def load_progress(self, project_id: str) -> Optional[int]:
        rows = await self.store.select("project_progress", {"project_id": project_id})
        if not rows:
            return None
        self._set_progress(project_id, rows[0]["percentage"])
        return rows[0]["percentage"]

    def _set_progress(self, project_id: str, percentage: int):
        entry = self._entries.get(project_id)
        if entry is None:
            return
        self._entries[project_id] = entry.model_copy(
            update={"progress": percentage, "last_fetched": self._clock()}
        )

    async def update(self, project_id: str, data: ProjectUpdate) -> Dict[str, Any]:
        project = await ProjectService.update(self.store, project_id, data)
        self.invalidate(project_id)
        await self.refresh()
        return project

    async def delete(self, project_id: str) -> Dict[str, Any]:
        project = await ProjectService.delete(self.store, project_id)
        self.invalidate(project_id)
        await self.refresh()
        return project

    async def _on_projects_change(self, event: ChangeEvent):
        api_logger.info(f"ProjectCache: {event.event_type.value} on projects, refetching")
        await self.refresh()

    def _on_progress_change(self, event: ChangeEvent):
        if event.new and isinstance(event.new.get("percentage"), int):
            self._set_progress(event.new["project_id"], event.new["percentage"])
