"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from attendance_payroll.calculators.errors import StaleConfigurationError

if TYPE_CHECKING:
    from attendance_payroll.models import PayrollRun


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "DRAFT"
    COMPUTING = "COMPUTING"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    RELEASED = "RELEASED"
    CANCELLED = "CANCELLED"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - DRAFT → COMPUTING
    - COMPUTING → REVIEW
    - REVIEW → APPROVED
    - APPROVED → RELEASED
    - REVIEW → COMPUTING (re-trigger after fixing upstream data)
    - DRAFT / COMPUTING / REVIEW → CANCELLED
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.COMPUTING, PayrollRunStatus.CANCELLED],
        PayrollRunStatus.COMPUTING: [PayrollRunStatus.REVIEW, PayrollRunStatus.CANCELLED],
        PayrollRunStatus.REVIEW: [
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.COMPUTING,
            PayrollRunStatus.CANCELLED,
        ],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.RELEASED],
        PayrollRunStatus.RELEASED: [],  # Terminal state
        PayrollRunStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses where payslips may be (re)computed
    RECOMPUTE_ALLOWED = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.COMPUTING,
    }

    # Statuses where payslips and lines are frozen
    RESULTS_IMMUTABLE = {
        PayrollRunStatus.APPROVED,
        PayrollRunStatus.RELEASED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_recompute(cls, status: str) -> bool:
        """Check if payslips may be computed in this status."""
        return status in cls.RECOMPUTE_ALLOWED

    @classmethod
    def are_results_immutable(cls, status: str) -> bool:
        """Check if payslips and lines are frozen."""
        return status in cls.RESULTS_IMMUTABLE

    @classmethod
    def ensure_recomputable(cls, run_id: object, status: str) -> None:
        """Raise StaleConfigurationError for frozen runs.

        Cancelled runs raise InvalidTransitionError instead.
        """
        if cls.are_results_immutable(status):
            raise StaleConfigurationError(
                run_id, status, "locked payslips cannot be recomputed"
            )
        if status == PayrollRunStatus.CANCELLED:
            raise InvalidTransitionError(status, PayrollRunStatus.COMPUTING, "run is cancelled")

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.get_next_statuses(status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_run_for_transition(
        cls,
        run: PayrollRun,
        to_status: str,
        payslip_count: int = 0,
        open_issue_count: int = 0,
    ) -> list[str]:
        """Validate a payroll run for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = run.status

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status == PayrollRunStatus.APPROVED:
            if not payslip_count:
                errors.append("Payroll run has no payslips")
            if open_issue_count:
                errors.append(f"{open_issue_count} employee(s) have unresolved computation errors")

        return errors
