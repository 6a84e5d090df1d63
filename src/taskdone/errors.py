from __future__ import annotations

from typing import Any, Dict, List, Optional


class TaskDoneError(Exception):
    """Base class for errors raised by the repository and service layers."""


# PUBLIC_INTERFACE
class ValidationError(TaskDoneError, ValueError):
    """
    A caller supplied an empty or otherwise invalid field value.

    Subclasses ValueError so pydantic validators may raise it directly.

    Attributes:
        field: Name of the offending field (e.g. "title", "name", "color").
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message

    def errors(self) -> List[Dict[str, Any]]:
        """Error details in the same shape as request validation errors."""
        return [{"loc": [self.field], "msg": self.message, "type": "value_error"}]


# PUBLIC_INTERFACE
class NotFoundError(TaskDoneError):
    """An operation referenced an identifier that is no longer present."""

    def __init__(self, kind: str, identifier: Optional[str] = None) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.identifier = identifier


# PUBLIC_INTERFACE
class PersistenceError(TaskDoneError):
    """The underlying store failed to commit; the operation did not take effect."""
