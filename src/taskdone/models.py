from __future__ import annotations

from datetime import datetime
from typing import List, TypedDict


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A task as stored by the repository backends.

    Fields:
    - id: UUID4 string, immutable
    - title: Trimmed, non-empty title
    - is_completed: Completion flag
    - creation_date: Local timestamp set once at creation (copies keep it)
    - category_id: Back-reference to the owning category (lookup only)
    """

    id: str
    title: str
    is_completed: bool
    creation_date: datetime
    category_id: str


# PUBLIC_INTERFACE
class CategoryEntity(TypedDict):
    """
    A category with its owned tasks.

    Fields:
    - id: UUID4 string, immutable
    - name: Trimmed, non-empty display name
    - color: Normalized hex color (#RRGGBB or #RRGGBBAA)
    - is_hidden: Hidden categories are retained but excluded from listings
    - tasks: Owned tasks sorted by creation_date ascending
    """

    id: str
    name: str
    color: str
    is_hidden: bool
    tasks: List[TaskEntity]
