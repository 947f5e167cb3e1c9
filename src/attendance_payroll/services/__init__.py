"""Payroll run services."""

from attendance_payroll.services.locking_service import LockingService, RunLockRegistry
from attendance_payroll.services.payroll_run_service import (
    PayrollRunNotFoundError,
    PayrollRunService,
)
from attendance_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

__all__ = [
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "InvalidTransitionError",
    "PayrollRunService",
    "PayrollRunNotFoundError",
    "LockingService",
    "RunLockRegistry",
]
