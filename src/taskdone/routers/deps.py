from __future__ import annotations

from fastapi import Request

from ..service import TaskService


# PUBLIC_INTERFACE
def get_service(request: Request) -> TaskService:
    """
    Dependency returning the TaskService owned by the running app.

    The service (and its repository) is created once when the app starts and
    kept on app.state, so every request sees the same store.
    """
    return request.app.state.service
