from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import NotFoundError, PersistenceError, ValidationError
from .logging_setup import setup_logging
from .repositories import Clock, Repository, get_repository
from .routers import categories as categories_router
from .routers import tasks as tasks_router
from .service import TaskPolicy, TaskService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "categories",
        "description": "Create, edit, hide and duplicate categories and manage their tasks.",
    },
    {
        "name": "tasks",
        "description": "Task buckets (upcoming, overdue, completed), task edits and the retention sweep.",
    },
]


def _validation_body(message: str, detail: list) -> dict:
    return {"error": "ValidationError", "message": message, "detail": jsonable_encoder(detail)}


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    clock: Optional[Clock] = None,
    configure_logging: bool = False,
) -> FastAPI:
    """
    Build the FastAPI application around a single TaskService.

    Args:
        settings: Configuration; read from the environment when omitted.
        repository: Store to use; built from settings when omitted.
        clock: Time source shared by the repository and the service.
        configure_logging: Install console/file handlers via setup_logging.

    Nothing is installed or opened until the app starts: logging, the
    repository and the service are set up in the lifespan, the retention sweep
    runs once when enabled in settings, and the repository is closed on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if configure_logging:
            setup_logging(console_level=settings.log_level, log_file=settings.log_file)
        repo = repository or get_repository(settings, clock=clock)
        service = TaskService(repo, policy=TaskPolicy.from_settings(settings), clock=clock)
        app.state.service = service
        try:
            if settings.cleanup_on_startup:
                try:
                    await run_in_threadpool(service.clean_old_tasks)
                except PersistenceError:
                    logger.warning("Startup cleanup did not complete; continuing with existing data")
            yield
        finally:
            repo.close()

    app = FastAPI(
        title="TaskDone Backend",
        description="Categories and tasks with upcoming/overdue/completed views and a retention sweep.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(status_code=422, content=_validation_body("Request validation failed", exc.errors()))

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_validation_body(exc.message, exc.errors()))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"error": "PersistenceError", "message": "The change could not be saved"},
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(categories_router.router)
    app.include_router(tasks_router.router)
    return app


app = create_app(configure_logging=True)
