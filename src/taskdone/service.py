from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from .errors import PersistenceError
from .models import CategoryEntity, TaskEntity
from .repositories import Clock, Repository
from .schemas import TaskDraft
from .settings import Settings
from .utils import clean_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

BUCKETS = ("upcoming", "overdue", "completed")


@dataclass(frozen=True)
class TaskPolicy:
    """
    Time rules for bucket classification and retention.

    - active_window: an open task older than this is overdue
    - retention: a completed task older than this is removed by the sweep
    - copy_suffix: marker appended to duplicated category names
    """

    active_window: timedelta = timedelta(days=1)
    retention: timedelta = timedelta(days=30)
    copy_suffix: str = "copy"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaskPolicy":
        return cls(
            active_window=settings.active_window,
            retention=settings.retention,
            copy_suffix=settings.copy_suffix,
        )


# PUBLIC_INTERFACE
class TaskService:
    """
    Operations used by the presentation layer.

    Mutations go straight to the repository handed in at construction; read
    models (category list, buckets) are recomputed from it on every call.
    Blank names/titles on the add paths are silent no-ops, missing entities
    raise NotFoundError, and persistence failures are logged and re-raised.
    """

    def __init__(
        self,
        repository: Repository,
        policy: Optional[TaskPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._repo = repository
        self.policy = policy or TaskPolicy()
        self._clock: Clock = clock or datetime.now

    @property
    def repository(self) -> Repository:
        return self._repo

    def _run(self, action: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except PersistenceError:
            logger.exception("Persistence failure during %s", action)
            raise

    # ---- categories ----

    def categories(self) -> List[CategoryEntity]:
        """Visible categories with their tasks, oldest task first."""
        return self._run("list categories", self._repo.list_visible_categories)

    def category(self, category_id: str) -> CategoryEntity:
        return self._run("get category", lambda: self._repo.get_category(category_id))

    def add_category(self, name: str, color: str, task_titles: Sequence[str] = ()) -> Optional[CategoryEntity]:
        """
        Create a category, optionally with initial tasks.

        Returns None without touching the store when the name is blank.
        A malformed color still raises ValidationError.
        """
        if not clean_text(name):
            logger.warning("Ignoring add_category with a blank name")
            return None
        created = self._run("add category", lambda: self._repo.create_category(name, color, task_titles))
        logger.debug("Category added id=%s tasks=%d", created["id"], len(created["tasks"]))
        return created

    def hide_category(self, category_id: str) -> None:
        self._run("hide category", lambda: self._repo.set_category_hidden(category_id, True))
        logger.debug("Category hidden id=%s", category_id)

    def show_category(self, category_id: str) -> None:
        self._run("show category", lambda: self._repo.set_category_hidden(category_id, False))
        logger.debug("Category shown id=%s", category_id)

    def duplicate_category(self, category_id: str) -> CategoryEntity:
        copy = self._run(
            "duplicate category",
            lambda: self._repo.duplicate_category(category_id, self.policy.copy_suffix),
        )
        logger.debug("Category duplicated source=%s copy=%s", category_id, copy["id"])
        return copy

    def save_category_edits(
        self,
        category_id: str,
        name: str,
        color: str,
        tasks: Sequence[TaskDraft],
    ) -> CategoryEntity:
        """Commit a bulk edit of name, color and the full task list."""
        return self._run(
            "save category edits",
            lambda: self._repo.save_category_edits(category_id, name, color, tasks),
        )

    # ---- tasks ----

    def task(self, task_id: str) -> TaskEntity:
        return self._run("get task", lambda: self._repo.get_task(task_id))

    def add_task(self, category_id: str, title: str) -> Optional[TaskEntity]:
        """Add an open task to a category; a blank title is a silent no-op (None)."""
        if not clean_text(title):
            logger.warning("Ignoring add_task with a blank title category=%s", category_id)
            return None
        created = self._run("add task", lambda: self._repo.create_task(category_id, title))
        logger.debug("Task added id=%s category=%s", created["id"], category_id)
        return created

    def toggle_task(self, task_id: str) -> TaskEntity:
        return self._run("toggle task", lambda: self._repo.toggle_task_completion(task_id))

    def rename_task(self, task_id: str, title: str) -> TaskEntity:
        """
        Rename a task. A blank title raises ValidationError and leaves the
        task untouched; deleting is a separate, explicit call.
        """
        return self._run("rename task", lambda: self._repo.update_task_title(task_id, title))

    def move_task(self, task_id: str, category_id: str) -> TaskEntity:
        return self._run("move task", lambda: self._repo.move_task(task_id, category_id))

    def remove_task(self, task_id: str, category_id: str) -> None:
        self._run("remove task", lambda: self._repo.remove_task(task_id, category_id))
        logger.debug("Task removed id=%s category=%s", task_id, category_id)

    # ---- derived views ----

    def bucket_of(self, task: TaskEntity, now: Optional[datetime] = None) -> str:
        """Classify a single task as 'upcoming', 'overdue' or 'completed'."""
        if task["is_completed"]:
            return "completed"
        now = now or self._clock()
        if now - task["creation_date"] > self.policy.active_window:
            return "overdue"
        return "upcoming"

    def buckets(self) -> Dict[str, List[TaskEntity]]:
        """All three buckets for tasks of visible categories, oldest first."""
        now = self._clock()
        result: Dict[str, List[TaskEntity]] = {name: [] for name in BUCKETS}
        for task in self._run("list tasks", self._repo.list_tasks):
            result[self.bucket_of(task, now)].append(task)
        return result

    def upcoming_tasks(self) -> List[TaskEntity]:
        return self.buckets()["upcoming"]

    def overdue_tasks(self) -> List[TaskEntity]:
        return self.buckets()["overdue"]

    def completed_tasks(self) -> List[TaskEntity]:
        return self.buckets()["completed"]

    def clean_old_tasks(self) -> int:
        """
        Delete completed tasks older than the retention period.

        Idempotent; returns how many tasks were removed.
        """
        try:
            cutoff = self._clock() - self.policy.retention
        except OverflowError:
            # Retention reaches past datetime.min: nothing can be old enough.
            logger.debug("Cleanup skipped; retention %s exceeds the calendar range", self.policy.retention)
            return 0
        removed = self._run("clean old tasks", lambda: self._repo.purge_completed_tasks(cutoff))
        if removed:
            logger.info("Cleanup removed %d completed task(s) created before %s", len(removed), cutoff)
        else:
            logger.debug("Cleanup found nothing older than %s", cutoff)
        return len(removed)
