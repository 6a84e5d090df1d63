from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .errors import NotFoundError
from .models import CategoryEntity, TaskEntity
from .schemas import TaskDraft
from .settings import Settings, get_settings
from .utils import clean_text, normalize_color, require_text

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def new_id() -> str:
    return str(uuid.uuid4())


def copy_name(name: str, suffix: str) -> str:
    """Name given to a duplicated category, e.g. 'Work (copy)'."""
    return f"{name} ({suffix})"


def sort_tasks(tasks: Iterable[TaskEntity]) -> List[TaskEntity]:
    """Oldest first; sorted() is stable so ties keep insertion order."""
    return sorted(tasks, key=lambda t: t["creation_date"])


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for category/task storage backends.

    Every mutating method is a single unit of work: it either fully takes
    effect or leaves the stored state unchanged. Returned entities are
    copies; mutating them does not affect the store.
    """

    @abstractmethod
    def list_visible_categories(self) -> List[CategoryEntity]:
        """Return all non-hidden categories in creation order, each with its tasks oldest first."""

    @abstractmethod
    def get_category(self, category_id: str) -> CategoryEntity:
        """Return a category (hidden or not). Raises NotFoundError."""

    @abstractmethod
    def get_task(self, task_id: str) -> TaskEntity:
        """Return a task. Raises NotFoundError."""

    @abstractmethod
    def create_category(self, name: str, color: str, task_titles: Sequence[str] = ()) -> CategoryEntity:
        """
        Persist a new visible category, plus one task per non-blank title.
        Raises ValidationError for a blank name or a malformed color.
        """

    @abstractmethod
    def set_category_hidden(self, category_id: str, hidden: bool) -> None:
        """Set the hidden flag. Idempotent. Raises NotFoundError."""

    @abstractmethod
    def duplicate_category(self, category_id: str, copy_suffix: str = "copy") -> CategoryEntity:
        """
        Create a deep copy of a category: fresh ids, name suffixed with
        '(<copy_suffix>)', same color and hidden flag, tasks with the same
        title, completion and creation date. Raises NotFoundError.
        """

    @abstractmethod
    def create_task(self, category_id: str, title: str) -> TaskEntity:
        """
        Persist a new open task created now. Raises ValidationError for a blank
        title and NotFoundError for an unknown category.
        """

    @abstractmethod
    def update_task_title(self, task_id: str, new_title: str) -> TaskEntity:
        """Rename a task. Raises ValidationError (title unchanged) or NotFoundError."""

    @abstractmethod
    def toggle_task_completion(self, task_id: str) -> TaskEntity:
        """Flip is_completed and return the task. Raises NotFoundError."""

    @abstractmethod
    def move_task(self, task_id: str, category_id: str) -> TaskEntity:
        """Reassign a task to another category. Raises NotFoundError."""

    @abstractmethod
    def remove_task(self, task_id: str, category_id: str) -> None:
        """
        Delete a task owned by the given category. Raises NotFoundError if either
        id is unknown or the task belongs to a different category.
        """

    @abstractmethod
    def save_category_edits(
        self,
        category_id: str,
        new_name: str,
        new_color: str,
        new_tasks: Sequence[TaskDraft],
    ) -> CategoryEntity:
        """
        Replace name, color and the whole task collection of a category.

        Drafts naming an existing task keep its id and creation date (moving it
        here if it belonged elsewhere), drafts without a known id become new
        tasks, blank drafts are skipped, and tasks not named are deleted.
        """

    @abstractmethod
    def list_tasks(self) -> List[TaskEntity]:
        """Return every task of every visible category, oldest first."""

    @abstractmethod
    def purge_completed_tasks(self, cutoff: datetime) -> List[str]:
        """Delete completed tasks created before cutoff (any category). Return removed ids."""

    def close(self) -> None:
        """Release backend resources."""
        return None


def plan_edits(
    category_id: str,
    drafts: Sequence[TaskDraft],
    existing: Dict[str, TaskEntity],
    now: datetime,
) -> List[TaskEntity]:
    """
    Resolve bulk-edit drafts into the category's final task list.

    existing maps every known task id (any category) to its current state. A
    draft id that is unknown, or repeated, is treated as a new task.
    """
    result: List[TaskEntity] = []
    seen: set[str] = set()
    for draft in drafts:
        title = clean_text(draft.title)
        if not title:
            continue
        current = existing.get(draft.id) if draft.id else None
        if current is not None and current["id"] not in seen:
            seen.add(current["id"])
            result.append(
                {
                    "id": current["id"],
                    "title": title,
                    "is_completed": draft.is_completed,
                    "creation_date": current["creation_date"],
                    "category_id": category_id,
                }
            )
        else:
            result.append(
                {
                    "id": new_id(),
                    "title": title,
                    "is_completed": draft.is_completed,
                    "creation_date": now,
                    "category_id": category_id,
                }
            )
    return result


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.

    Categories and tasks live in two id-keyed arenas; a task refers to its
    owner through category_id only.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._lock = RLock()
        self._clock: Clock = clock or datetime.now
        self._categories: Dict[str, Dict[str, object]] = {}
        self._tasks: Dict[str, TaskEntity] = {}

    def _now(self) -> datetime:
        return self._clock()

    def _require_category(self, category_id: str) -> Dict[str, object]:
        record = self._categories.get(category_id)
        if record is None:
            raise NotFoundError("Category", category_id)
        return record

    def _require_task(self, task_id: str) -> TaskEntity:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def _view(self, category_id: str) -> CategoryEntity:
        record = self._categories[category_id]
        tasks = [t.copy() for t in self._tasks.values() if t["category_id"] == category_id]
        return {
            "id": category_id,
            "name": str(record["name"]),
            "color": str(record["color"]),
            "is_hidden": bool(record["is_hidden"]),
            "tasks": sort_tasks(tasks),
        }

    def list_visible_categories(self) -> List[CategoryEntity]:
        with self._lock:
            return [self._view(cid) for cid, rec in self._categories.items() if not rec["is_hidden"]]

    def get_category(self, category_id: str) -> CategoryEntity:
        with self._lock:
            self._require_category(category_id)
            return self._view(category_id)

    def get_task(self, task_id: str) -> TaskEntity:
        with self._lock:
            return self._require_task(task_id).copy()

    def create_category(self, name: str, color: str, task_titles: Sequence[str] = ()) -> CategoryEntity:
        clean_name = require_text(name, "name")
        clean_color = normalize_color(color)
        titles = [t for t in (clean_text(x) for x in task_titles) if t]
        now = self._now()
        category_id = new_id()
        with self._lock:
            self._categories[category_id] = {"name": clean_name, "color": clean_color, "is_hidden": False}
            for title in titles:
                task_id = new_id()
                self._tasks[task_id] = {
                    "id": task_id,
                    "title": title,
                    "is_completed": False,
                    "creation_date": now,
                    "category_id": category_id,
                }
            return self._view(category_id)

    def set_category_hidden(self, category_id: str, hidden: bool) -> None:
        with self._lock:
            self._require_category(category_id)["is_hidden"] = bool(hidden)

    def duplicate_category(self, category_id: str, copy_suffix: str = "copy") -> CategoryEntity:
        with self._lock:
            self._require_category(category_id)
            source = self._view(category_id)
            copy_id = new_id()
            self._categories[copy_id] = {
                "name": copy_name(source["name"], copy_suffix),
                "color": source["color"],
                "is_hidden": source["is_hidden"],
            }
            for task in source["tasks"]:
                task_id = new_id()
                self._tasks[task_id] = {
                    "id": task_id,
                    "title": task["title"],
                    "is_completed": task["is_completed"],
                    "creation_date": task["creation_date"],
                    "category_id": copy_id,
                }
            return self._view(copy_id)

    def create_task(self, category_id: str, title: str) -> TaskEntity:
        clean_title = require_text(title, "title")
        with self._lock:
            self._require_category(category_id)
            task: TaskEntity = {
                "id": new_id(),
                "title": clean_title,
                "is_completed": False,
                "creation_date": self._now(),
                "category_id": category_id,
            }
            self._tasks[task["id"]] = task
            return task.copy()

    def update_task_title(self, task_id: str, new_title: str) -> TaskEntity:
        clean_title = require_text(new_title, "title")
        with self._lock:
            task = self._require_task(task_id)
            task["title"] = clean_title
            return task.copy()

    def toggle_task_completion(self, task_id: str) -> TaskEntity:
        with self._lock:
            task = self._require_task(task_id)
            task["is_completed"] = not task["is_completed"]
            return task.copy()

    def move_task(self, task_id: str, category_id: str) -> TaskEntity:
        with self._lock:
            task = self._require_task(task_id)
            self._require_category(category_id)
            task["category_id"] = category_id
            return task.copy()

    def remove_task(self, task_id: str, category_id: str) -> None:
        with self._lock:
            self._require_category(category_id)
            task = self._require_task(task_id)
            if task["category_id"] != category_id:
                raise NotFoundError("Task", task_id)
            del self._tasks[task_id]

    def save_category_edits(
        self,
        category_id: str,
        new_name: str,
        new_color: str,
        new_tasks: Sequence[TaskDraft],
    ) -> CategoryEntity:
        clean_name = require_text(new_name, "name")
        clean_color = normalize_color(new_color)
        with self._lock:
            record = self._require_category(category_id)
            final = plan_edits(category_id, new_tasks, self._tasks, self._now())
            keep = {t["id"] for t in final}
            # Validation is done; apply everything below without raising.
            for task_id in [tid for tid, t in self._tasks.items() if t["category_id"] == category_id]:
                if task_id not in keep:
                    del self._tasks[task_id]
            for task in final:
                self._tasks[task["id"]] = task
            record["name"] = clean_name
            record["color"] = clean_color
            return self._view(category_id)

    def list_tasks(self) -> List[TaskEntity]:
        with self._lock:
            visible = {cid for cid, rec in self._categories.items() if not rec["is_hidden"]}
            return sort_tasks(t.copy() for t in self._tasks.values() if t["category_id"] in visible)

    def purge_completed_tasks(self, cutoff: datetime) -> List[str]:
        with self._lock:
            doomed = [
                tid
                for tid, t in self._tasks.items()
                if t["is_completed"] and t["creation_date"] < cutoff
            ]
            for tid in doomed:
                del self._tasks[tid]
            return doomed


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository stored at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        repo: Repository = SQLiteRepository(settings.sqlite_db_path, clock=clock)
    else:
        repo = InMemoryRepository(clock=clock)
    logger.info("Repository ready backend=%s", settings.persistence_backend)
    return repo
