"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from attendance_payroll.api.routes import config_router, health_router, payroll_runs_router
from attendance_payroll.calculators.errors import (
    PayrollComputationError,
    StaleConfigurationError,
)
from attendance_payroll.calculators.rulesets import (
    RulesetCatalog,
    RulesetNotFoundError,
    build_default_catalog,
)
from attendance_payroll.config import Settings, get_settings
from attendance_payroll.database import create_tables, dispose_db, init_db
from attendance_payroll.services.locking_service import RunLockRegistry
from attendance_payroll.services.payroll_run_service import PayrollRunNotFoundError
from attendance_payroll.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    owns_db = app.state.session_factory is None
    if owns_db:
        engine, app.state.session_factory = init_db()
        if app.state.settings.create_tables:
            await create_tables(engine)

    problems = app.state.catalog.self_check()
    if problems:
        logger.error("Ruleset self-check failed for %s", ", ".join(sorted(problems)))
    else:
        logger.info(
            "Loaded rulesets %s", ", ".join(r.version for r in app.state.catalog.rulesets)
        )
    yield
    # Shutdown
    if owns_db:
        await dispose_db()


def _error(status_code: int, exc: Exception, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    catalog: RulesetCatalog | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Attendance Payroll API",
        description="Attendance-driven payroll computation with statutory contributions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or get_settings()
    app.state.session_factory = session_factory
    app.state.catalog = catalog or build_default_catalog()
    app.state.run_locks = RunLockRegistry()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollRunNotFoundError)
    async def not_found_handler(request: Request, exc: PayrollRunNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, exc, "NOT_FOUND")

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, exc, "INVALID_TRANSITION")

    @app.exception_handler(StaleConfigurationError)
    async def stale_handler(request: Request, exc: StaleConfigurationError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, exc, "STALE_CONFIGURATION")

    @app.exception_handler(RulesetNotFoundError)
    async def ruleset_handler(request: Request, exc: RulesetNotFoundError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, "RULESET_NOT_FOUND")

    @app.exception_handler(PayrollComputationError)
    async def computation_handler(request: Request, exc: PayrollComputationError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, exc.code)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")
    app.include_router(config_router, prefix="/api/v1")

    return app
