"""Errors raised by the payroll computation pipeline."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID


class PayrollComputationError(Exception):
    """Base class for per-employee computation failures.

    These never abort a whole payroll run: the run controller records them
    against the employee so an operator can fix the upstream data and
    re-trigger computation for that employee alone.
    """

    code = "COMPUTATION_ERROR"

    def __init__(
        self,
        detail: str,
        employee_id: str | None = None,
        work_date: date | None = None,
    ):
        self.detail = detail
        self.employee_id = employee_id
        self.work_date = work_date
        super().__init__(self._format())

    def _format(self) -> str:
        msg = self.detail
        if self.work_date is not None:
            msg = f"{msg} (date {self.work_date.isoformat()})"
        if self.employee_id is not None:
            msg = f"Employee {self.employee_id}: {msg}"
        return msg

    def with_employee(self, employee_id: str) -> PayrollComputationError:
        """Attach the employee id after the fact and refresh the message."""
        self.employee_id = employee_id
        self.args = (self._format(),)
        return self


class ConfigurationIntegrityError(PayrollComputationError):
    """Rule or statutory configuration cannot produce a correct result."""

    code = "CONFIGURATION_INTEGRITY"


class MalformedShiftWindowError(ConfigurationIntegrityError):
    """Scheduled end does not fall after the scheduled start."""

    code = "MALFORMED_SHIFT_WINDOW"


class UnresolvedMultiplierError(ConfigurationIntegrityError):
    """No multiplier rule matches a (day type, OT, ND, rest day) key."""

    code = "UNRESOLVED_MULTIPLIER"

    def __init__(
        self,
        day_type: str,
        is_overtime: bool,
        is_night_diff: bool,
        is_rest_day: bool,
        employee_id: str | None = None,
        work_date: date | None = None,
    ):
        self.key = (day_type, is_overtime, is_night_diff, is_rest_day)
        super().__init__(
            f"No multiplier rule for day_type={day_type} overtime={is_overtime} "
            f"night_diff={is_night_diff} rest_day={is_rest_day}",
            employee_id=employee_id,
            work_date=work_date,
        )


class BracketLookupError(ConfigurationIntegrityError):
    """Income falls outside every bracket of a statutory table."""

    code = "BRACKET_LOOKUP_FAILURE"

    def __init__(
        self,
        table: str,
        amount: Decimal,
        reason: str | None = None,
        employee_id: str | None = None,
    ):
        self.table = table
        self.amount = amount
        detail = f"No {table} bracket contains {amount}"
        if reason:
            detail += f": {reason}"
        super().__init__(detail, employee_id=employee_id)


class MissingShiftWindowError(PayrollComputationError):
    """Clock events exist for a day with no assigned shift window."""

    code = "MISSING_SHIFT_WINDOW"

    def __init__(self, work_date: date, employee_id: str | None = None):
        super().__init__(
            "Attendance has clock events but no shift window is assigned",
            employee_id=employee_id,
            work_date=work_date,
        )


class InvalidAdjustmentError(PayrollComputationError):
    """A manual adjustment names a line type or category it cannot carry."""

    code = "INVALID_ADJUSTMENT"


class NegativeNetPayError(PayrollComputationError):
    """Net pay falls below the allowed minimum and needs HR review."""

    code = "NEGATIVE_NET_PAY"

    def __init__(self, net_pay: Decimal, minimum: Decimal, employee_id: str | None = None):
        self.net_pay = net_pay
        self.minimum = minimum
        super().__init__(
            f"Net pay {net_pay} is below the allowed minimum {minimum}",
            employee_id=employee_id,
        )


class StaleConfigurationError(Exception):
    """Raised when recomputing or editing payslips of a locked run."""

    def __init__(self, run_id: UUID | str | None, status: str, reason: str | None = None):
        self.run_id = run_id
        self.status = status
        self.reason = reason
        msg = f"Payroll run {run_id} is {status}; its payslips are frozen"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
