"""
Project storage.

Two adapters share the ProjectStore interface:
    - RedisProjectStore: JSON documents in a single Redis hash (persistent)
    - InMemoryProjectStore: dict owned by the store instance (process-local)

create_project_store() picks one at startup. Callers that need to know which
one they got check ``store.mode`` instead of the concrete class.
"""

import abc
from enum import Enum

from pydantic import ValidationError

from impactlens.config import Settings
from impactlens.infrastructure.observability.logging import get_logger
from impactlens.models.domain.project_domain import Project
from impactlens.services.redis_client import FastRedisClient

logger = get_logger(__name__)


class StorageMode(str, Enum):
    PERSISTENT = "persistent"
    MEMORY = "memory"


class StorageError(Exception):
    """Raised when the backing store cannot complete an operation."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class ProjectStore(abc.ABC):
    """Capability set every project store provides."""

    mode: StorageMode

    @abc.abstractmethod
    async def find(self) -> list[Project]:
        """All projects, newest first."""

    @abc.abstractmethod
    async def find_by_id(self, project_id: str) -> Project | None: ...

    @abc.abstractmethod
    async def insert(self, project: Project) -> Project: ...

    @abc.abstractmethod
    async def update(self, project: Project) -> Project | None:
        """Replace a stored project. Returns None when the id is unknown."""

    @abc.abstractmethod
    async def delete(self, project_id: str) -> bool: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def _newest_first(projects: list[Project]) -> list[Project]:
    return sorted(projects, key=lambda p: p.created_at, reverse=True)


class InMemoryProjectStore(ProjectStore):
    """Process-local fallback. Contents are lost on restart."""

    mode = StorageMode.MEMORY

    def __init__(self):
        self._projects: dict[str, Project] = {}

    async def find(self) -> list[Project]:
        return _newest_first([p.model_copy(deep=True) for p in self._projects.values()])

    async def find_by_id(self, project_id: str) -> Project | None:
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    async def insert(self, project: Project) -> Project:
        if project.id in self._projects:
            raise StorageError(f"Project {project.id} already exists", operation="insert")
        self._projects[project.id] = project.model_copy(deep=True)
        return project

    async def update(self, project: Project) -> Project | None:
        if project.id not in self._projects:
            return None
        self._projects[project.id] = project.model_copy(deep=True)
        return project

    async def delete(self, project_id: str) -> bool:
        return self._projects.pop(project_id, None) is not None


class RedisProjectStore(ProjectStore):
    """Projects stored as JSON documents in one Redis hash keyed by project id."""

    mode = StorageMode.PERSISTENT

    def __init__(self, client, key: str, owner: FastRedisClient | None = None):
        self.client = client
        self.key = key
        self._owner = owner

    def _decode(self, raw: str) -> Project | None:
        try:
            return Project.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Skipping unreadable project document", key=self.key, error=str(e))
            return None

    async def find(self) -> list[Project]:
        try:
            documents = await self.client.hgetall(self.key)
        except Exception as e:
            raise StorageError(f"Failed to list projects: {e}", operation="find") from e

        projects = [self._decode(raw) for raw in documents.values()]
        return _newest_first([p for p in projects if p is not None])

    async def find_by_id(self, project_id: str) -> Project | None:
        try:
            raw = await self.client.hget(self.key, project_id)
        except Exception as e:
            raise StorageError(f"Failed to load project: {e}", operation="find_by_id") from e
        return self._decode(raw) if raw else None

    async def insert(self, project: Project) -> Project:
        try:
            created = await self.client.hsetnx(self.key, project.id, project.model_dump_json())
        except Exception as e:
            raise StorageError(f"Failed to insert project: {e}", operation="insert") from e
        if not created:
            raise StorageError(f"Project {project.id} already exists", operation="insert")
        return project

    async def update(self, project: Project) -> Project | None:
        try:
            if not await self.client.hexists(self.key, project.id):
                return None
            await self.client.hset(self.key, project.id, project.model_dump_json())
        except Exception as e:
            raise StorageError(f"Failed to update project: {e}", operation="update") from e
        return project

    async def delete(self, project_id: str) -> bool:
        try:
            removed = await self.client.hdel(self.key, project_id)
        except Exception as e:
            raise StorageError(f"Failed to delete project: {e}", operation="delete") from e
        return bool(removed)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Project store ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._owner:
            await self._owner.close()


async def create_project_store(settings: Settings) -> ProjectStore:
    """
    Select the project store once at startup.

    "redis" requires a reachable REDIS_URL, "memory" always uses the
    process-local store, and "auto" prefers Redis and falls back to memory.

    Raises:
        StorageError: STORAGE_BACKEND is "redis" and Redis is unavailable
    """
    backend = settings.STORAGE_BACKEND

    if backend == "memory":
        logger.info("Using in-memory project store", reason="configured")
        return InMemoryProjectStore()

    if not settings.REDIS_URL:
        if backend == "redis":
            raise StorageError("STORAGE_BACKEND=redis but REDIS_URL is not set", operation="init")
        logger.warning("REDIS_URL not set, using in-memory project store")
        return InMemoryProjectStore()

    redis_client = FastRedisClient(settings.REDIS_URL)
    try:
        await redis_client.initialize()
    except RuntimeError as e:
        if backend == "redis":
            raise StorageError("Redis project store unavailable", operation="init") from e
        logger.warning(
            "Redis unavailable, using in-memory project store",
            redis_host=settings.redis_host(),
            error=str(e.__cause__ or e),
        )
        return InMemoryProjectStore()

    logger.info("Using Redis project store", redis_host=settings.redis_host(), key=settings.REDIS_PROJECTS_KEY)
    return RedisProjectStore(redis_client.client, settings.REDIS_PROJECTS_KEY, owner=redis_client)
