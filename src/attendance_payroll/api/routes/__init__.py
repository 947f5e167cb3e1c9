"""API routes."""

from attendance_payroll.api.routes.config import router as config_router
from attendance_payroll.api.routes.health import router as health_router
from attendance_payroll.api.routes.payroll_runs import router as payroll_runs_router

__all__ = ["payroll_runs_router", "health_router", "config_router"]
