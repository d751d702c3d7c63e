"""FastAPI application factory for the lead assignment API."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..assignment import AssignmentEngine, NotFoundError, ValidationError, create_engine
from .config import settings
from .routes.assignments import router as assignments_router
from .routes.health import router as health_router
from .routes.rules import router as rules_router
from .routes.team import router as team_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting lead assignment API")
    yield
    logger.info("Lead assignment API shutting down")


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "detail": detail},
    )


def create_app(engine: Optional[AssignmentEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The engine is built once here and shared by every request; pass one in
    to serve pre-populated or in-memory state.
    """
    app = FastAPI(
        title="Lead Assignment API",
        description="Routes incoming CRM leads to team members",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.engine = engine if engine is not None else create_engine(settings.data_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error(400, "validation_error", str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(404, "not_found", str(exc))

    app.include_router(health_router)
    app.include_router(assignments_router)
    app.include_router(rules_router)
    app.include_router(team_router)

    return app
