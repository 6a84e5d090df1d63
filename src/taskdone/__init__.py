"""
TaskDone backend package.

Categories own tasks; TaskService exposes the mutations and the
upcoming/overdue/completed views over a pluggable Repository (in-memory or
SQLite). The FastAPI app lives in taskdone.main.
"""

from .errors import NotFoundError, PersistenceError, TaskDoneError, ValidationError
from .repositories import InMemoryRepository, Repository, get_repository
from .service import TaskPolicy, TaskService

__all__ = [
    "InMemoryRepository",
    "NotFoundError",
    "PersistenceError",
    "Repository",
    "TaskDoneError",
    "TaskPolicy",
    "TaskService",
    "ValidationError",
    "get_repository",
]
