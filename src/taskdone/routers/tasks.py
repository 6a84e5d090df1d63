from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..schemas import CleanupResult, TaskBucketsOut, TaskMove, TaskOut, TaskTitleUpdate
from ..service import BUCKETS, TaskService
from .deps import get_service

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


# PUBLIC_INTERFACE
@router.get(
    "/buckets",
    response_model=TaskBucketsOut,
    summary="Task Buckets",
    description="Upcoming, overdue and completed tasks of visible categories, each oldest first.",
)
def get_buckets(service: TaskService = Depends(get_service)) -> TaskBucketsOut:
    buckets = service.buckets()
    return TaskBucketsOut(
        **{name: [TaskOut(**t) for t in tasks] for name, tasks in buckets.items()}  # type: ignore[arg-type]
    )


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TaskOut],
    summary="List Tasks In Bucket",
    description="List the tasks of one bucket: upcoming, overdue or completed.",
    responses={400: {"description": "Unknown bucket"}},
)
def list_bucket(
    bucket: Optional[str] = Query("upcoming", description="One of: upcoming, overdue, completed"),
    service: TaskService = Depends(get_service),
) -> List[TaskOut]:
    name = (bucket or "upcoming").strip().lower()
    if name not in BUCKETS:
        raise HTTPException(status_code=400, detail="bucket must be 'upcoming', 'overdue' or 'completed'")
    return [TaskOut(**t) for t in service.buckets()[name]]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/cleanup",
    response_model=CleanupResult,
    summary="Run Cleanup",
    description="Delete completed tasks older than the retention period. Safe to call repeatedly.",
)
def run_cleanup(service: TaskService = Depends(get_service)) -> CleanupResult:
    return CleanupResult(removed=service.clean_old_tasks())


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={404: {"description": "Task not found"}},
)
def get_task(task_id: str, service: TaskService = Depends(get_service)) -> TaskOut:
    return TaskOut(**service.task(task_id))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Rename Task",
    description="Change a task's title. Blank titles are rejected; use the delete endpoint to remove a task.",
    responses={
        404: {"description": "Task not found"},
        422: {"description": "Validation error"},
    },
)
def rename_task(task_id: str, payload: TaskTitleUpdate, service: TaskService = Depends(get_service)) -> TaskOut:
    return TaskOut(**service.rename_task(task_id, payload.title))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/toggle",
    response_model=TaskOut,
    summary="Toggle Task Completion",
    responses={404: {"description": "Task not found"}},
)
def toggle_task(task_id: str, service: TaskService = Depends(get_service)) -> TaskOut:
    return TaskOut(**service.toggle_task(task_id))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/move",
    response_model=TaskOut,
    summary="Move Task",
    description="Reassign a task to another category.",
    responses={404: {"description": "Task or category not found"}},
)
def move_task(task_id: str, payload: TaskMove, service: TaskService = Depends(get_service)) -> TaskOut:
    return TaskOut(**service.move_task(task_id, payload.category_id))  # type: ignore[arg-type]
