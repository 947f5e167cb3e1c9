"""ORM models."""

from attendance_payroll.models.base import Base, TimestampMixin
from attendance_payroll.models.payroll import (
    PayrollRun,
    PayrollRunEvent,
    PayrollRunIssue,
    Payslip,
    PayslipLine,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PayrollRun",
    "PayrollRunEvent",
    "PayrollRunIssue",
    "Payslip",
    "PayslipLine",
]
