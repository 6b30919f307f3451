"""Reference data (projects, tasks) cached in memory with a fixed TTL."""
import logging
import time
from collections.abc import Callable
from typing import Generic, TypeVar

import config
from models import Project, Task
from repository import get_repository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CachedList(Generic[T]):
    """A list loaded on demand and reloaded once older than ``ttl`` seconds.

    Expiry is checked on read; there is no background refresh. Reads are not
    locked, so two requests may reload at the same time.
    """

    def __init__(
        self,
        loader: Callable[[], list[T]],
        ttl: float = config.DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self._items: list[T] | None = None
        self._loaded_at = 0.0

    @property
    def expired(self) -> bool:
        return self._items is None or self._clock() - self._loaded_at >= self._ttl

    def get(self) -> list[T]:
        if self.expired:
            items = self._loader()
            self._items = items
            self._loaded_at = self._clock()
        return self._items

    def clear(self) -> None:
        self._items = None
        self._loaded_at = 0.0


class ReferenceCache:
    """Projects and tasks from the spreadsheet, each with its own expiry."""

    def __init__(
        self,
        repository,
        ttl: float = config.DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._projects: CachedList[Project] = CachedList(repository.list_projects, ttl, clock)
        self._tasks: CachedList[Task] = CachedList(repository.list_tasks, ttl, clock)

    def projects(self) -> list[Project]:
        return self._projects.get()

    def tasks(self) -> list[Task]:
        return self._tasks.get()

    def project_map(self) -> dict[str, Project]:
        return {p.id: p for p in self.projects()}

    def task_map(self) -> dict[str, Task]:
        return {t.id: t for t in self.tasks()}

    def clear(self) -> None:
        self._projects.clear()
        self._tasks.clear()


_reference_cache: ReferenceCache | None = None


def get_reference_cache() -> ReferenceCache:
    global _reference_cache
    if _reference_cache is None:
        _reference_cache = ReferenceCache(get_repository(), ttl=config.cache_ttl_seconds())
    return _reference_cache
