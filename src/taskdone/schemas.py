from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .utils import clean_text, normalize_color, require_text


# PUBLIC_INTERFACE
class TaskDraft(BaseModel):
    """
    A task row submitted with a bulk category edit.

    When id names an existing task it is updated in place (and moved into the
    edited category if needed); otherwise a new task is created. Rows with a
    blank title are placeholders and are skipped by the repository.
    """

    id: Optional[str] = Field(default=None, description="Existing task id, omitted for new rows")
    title: str = Field(default="", description="Task title; blank rows are ignored")
    is_completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Strip whitespace; blank is allowed here and means 'placeholder row'."""
        return clean_text(v)


# PUBLIC_INTERFACE
class CategoryCreate(BaseModel):
    """
    Schema for creating a category, optionally with an initial task set.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Work",
                "color": "#FF0000",
                "tasks": ["Write spec", "Review PR"],
            }
        }
    )

    name: str = Field(..., description="Display name of the category", min_length=1, max_length=200)
    color: str = Field(..., description="Hex color, '#RRGGBB' or '#RRGGBBAA'")
    tasks: List[str] = Field(default_factory=list, description="Initial task titles")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip whitespace and reject blank names."""
        return require_text(v, "name")

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Normalize to upper-case '#RRGGBB' / '#RRGGBBAA'."""
        return normalize_color(v)


# PUBLIC_INTERFACE
class CategoryEdits(BaseModel):
    """
    Schema for committing edits to a category: name, color and the full task list.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Work",
                "color": "#00AAFF",
                "tasks": [
                    {"id": "5d0c...", "title": "Write spec", "is_completed": True},
                    {"title": "Plan sprint"},
                ],
            }
        }
    )

    name: str = Field(..., description="New display name", min_length=1, max_length=200)
    color: str = Field(..., description="New hex color")
    tasks: List[TaskDraft] = Field(default_factory=list, description="Complete task list after the edit")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return require_text(v, "name")

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        return normalize_color(v)


class HiddenUpdate(BaseModel):
    hidden: bool = Field(..., description="True to hide the category, False to show it again")


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for adding a task to a category.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"title": "Review PR"}})

    title: str = Field(..., description="Task title", min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce a non-empty title.
        """
        return require_text(v, "title")


# PUBLIC_INTERFACE
class TaskTitleUpdate(BaseModel):
    """
    Schema for renaming a task. A blank title is rejected rather than
    treated as a delete.
    """

    title: str = Field(..., description="New task title", min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return require_text(v, "title")


class TaskMove(BaseModel):
    category_id: str = Field(..., description="Id of the category that should own the task")


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b7c3f3e-3a55-4c1e-9f7c-1f2f6f0a9d11",
                "title": "Review PR",
                "is_completed": False,
                "creation_date": "2025-01-25T10:15:30.123456",
                "category_id": "6a1d0b52-8a8e-4f0e-b0a5-7f1c9d3e2b40",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Task title")
    is_completed: bool = Field(..., description="Completion status flag")
    creation_date: datetime = Field(..., description="Creation timestamp")
    category_id: str = Field(..., description="Id of the owning category")


# PUBLIC_INTERFACE
class CategoryOut(BaseModel):
    """
    Schema returned by the API for a category with its tasks, oldest first.
    """

    id: str = Field(..., description="Unique identifier of the category")
    name: str = Field(..., description="Display name")
    color: str = Field(..., description="Hex color")
    is_hidden: bool = Field(..., description="Whether the category is hidden from listings")
    tasks: List[TaskOut] = Field(default_factory=list, description="Owned tasks, oldest first")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completed_count(self) -> int:
        return sum(1 for t in self.tasks if t.is_completed)


# PUBLIC_INTERFACE
class TaskBucketsOut(BaseModel):
    """
    The three display buckets, each sorted by creation date ascending.
    """

    upcoming: List[TaskOut] = Field(default_factory=list, description="Open tasks within the active window")
    overdue: List[TaskOut] = Field(default_factory=list, description="Open tasks older than the active window")
    completed: List[TaskOut] = Field(default_factory=list, description="Completed tasks")


class CleanupResult(BaseModel):
    removed: int = Field(..., description="Number of completed tasks deleted by the sweep")
