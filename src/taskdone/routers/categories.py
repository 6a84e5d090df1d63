from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ..schemas import CategoryCreate, CategoryEdits, CategoryOut, HiddenUpdate, TaskCreate, TaskOut
from ..service import TaskService
from .deps import get_service

router = APIRouter(
    prefix="/api/v1/categories",
    tags=["categories"],
)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[CategoryOut],
    summary="List Categories",
    description="List visible categories in creation order, each with its tasks oldest first.",
)
def list_categories(service: TaskService = Depends(get_service)) -> List[CategoryOut]:
    return [CategoryOut(**c) for c in service.categories()]  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Category",
    description="Create a category, optionally with an initial list of task titles.",
    responses={
        201: {"description": "Category created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_category(payload: CategoryCreate, service: TaskService = Depends(get_service)) -> CategoryOut:
    """
    Create a new category. Blank entries in `tasks` are ignored.
    """
    created = service.add_category(payload.name, payload.color, payload.tasks)
    # The schema already rejected blank names, so the service never no-ops here.
    assert created is not None
    return CategoryOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{category_id}",
    response_model=CategoryOut,
    summary="Get Category",
    description="Get a single category (hidden ones included) by ID.",
    responses={404: {"description": "Category not found"}},
)
def get_category(category_id: str, service: TaskService = Depends(get_service)) -> CategoryOut:
    return CategoryOut(**service.category(category_id))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{category_id}",
    response_model=CategoryOut,
    summary="Save Category Edits",
    description=(
        "Replace the name, color and full task list of a category in one step.\n\n"
        "- tasks with an `id` keep their identity and creation date\n"
        "- tasks without an `id` are created\n"
        "- tasks with a blank title are ignored\n"
        "- existing tasks missing from the list are deleted"
    ),
    responses={
        404: {"description": "Category not found"},
        422: {"description": "Validation error"},
    },
)
def save_category_edits(
    category_id: str,
    payload: CategoryEdits,
    service: TaskService = Depends(get_service),
) -> CategoryOut:
    saved = service.save_category_edits(category_id, payload.name, payload.color, payload.tasks)
    return CategoryOut(**saved)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{category_id}/hidden",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Hide or Show Category",
    description="Set the hidden flag. Hidden categories keep their tasks but are left out of listings.",
    responses={
        204: {"description": "Flag updated"},
        404: {"description": "Category not found"},
    },
)
def set_hidden(category_id: str, payload: HiddenUpdate, service: TaskService = Depends(get_service)) -> Response:
    if payload.hidden:
        service.hide_category(category_id)
    else:
        service.show_category(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.post(
    "/{category_id}/duplicate",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate Category",
    description="Copy a category and all of its tasks under new identifiers.",
    responses={
        201: {"description": "Copy created"},
        404: {"description": "Category not found"},
    },
)
def duplicate_category(category_id: str, service: TaskService = Depends(get_service)) -> CategoryOut:
    return CategoryOut(**service.duplicate_category(category_id))  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "/{category_id}/tasks",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add Task",
    description="Add an open task to the category.",
    responses={
        201: {"description": "Task created"},
        404: {"description": "Category not found"},
        422: {"description": "Validation error"},
    },
)
def add_task(category_id: str, payload: TaskCreate, service: TaskService = Depends(get_service)) -> TaskOut:
    created = service.add_task(category_id, payload.title)
    assert created is not None
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{category_id}/tasks/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove Task",
    description="Delete a task from the category. 404 if the task is not in this category.",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Category or task not found"},
    },
)
def remove_task(category_id: str, task_id: str, service: TaskService = Depends(get_service)) -> Response:
    service.remove_task(task_id, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
