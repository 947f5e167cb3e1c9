"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.calculators.rulesets import RulesetCatalog
from attendance_payroll.config import Settings
from attendance_payroll.services.payroll_run_service import PayrollRunService


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_catalog(request: Request) -> RulesetCatalog:
    return request.app.state.catalog


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Catalog = Annotated[RulesetCatalog, Depends(get_catalog)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


def get_payroll_run_service(
    request: Request,
    db: DbSession,
    catalog: Catalog,
    settings: AppSettings,
) -> PayrollRunService:
    return PayrollRunService(db, catalog, settings, request.app.state.run_locks)


RunService = Annotated[PayrollRunService, Depends(get_payroll_run_service)]
