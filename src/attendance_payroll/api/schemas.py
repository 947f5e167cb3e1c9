"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from attendance_payroll.calculators.engine import EmployeePayrollInput
from attendance_payroll.calculators.types import (
    Allowance,
    AllowanceKind,
    AttendanceDay,
    CalendarEvent,
    CalendarEventType,
    EmployeeWageProfile,
    LineCategory,
    LineType,
    ManualAdjustmentLine,
    PayFrequency,
    PriorYtd,
    ShiftWindow,
    WageType,
)


# ============================================================================
# Computation inputs
# ============================================================================


class ShiftWindowIn(BaseModel):
    """Scheduled shift for a day."""

    start_time: time
    end_time: time
    break_minutes: int = Field(default=60, ge=0)
    break_threshold_minutes: int = Field(default=300, ge=0)
    overnight: bool = False

    def to_domain(self) -> ShiftWindow:
        return ShiftWindow(
            start_time=self.start_time,
            end_time=self.end_time,
            break_minutes=self.break_minutes,
            break_threshold_minutes=self.break_threshold_minutes,
            overnight=self.overnight,
        )


class AttendanceDayIn(BaseModel):
    """Clock logs and approval flags for one work date."""

    work_date: date
    actual_in: datetime | None = None
    actual_out: datetime | None = None
    late_in_approved: bool = False
    early_out_approved: bool = False
    early_in_approved: bool = False
    late_out_approved: bool = False
    shift: ShiftWindowIn | None = None
    break_minutes_applied: int | None = Field(default=None, ge=0)
    daily_rate_override: Decimal | None = Field(default=None, gt=0)

    def to_domain(self, employee_id: str) -> AttendanceDay:
        return AttendanceDay(
            employee_id=employee_id,
            work_date=self.work_date,
            actual_in=self.actual_in,
            actual_out=self.actual_out,
            late_in_approved=self.late_in_approved,
            early_out_approved=self.early_out_approved,
            early_in_approved=self.early_in_approved,
            late_out_approved=self.late_out_approved,
            shift=self.shift.to_domain() if self.shift else None,
            break_minutes_applied=self.break_minutes_applied,
            daily_rate_override=self.daily_rate_override,
        )


class ManualAdjustmentIn(BaseModel):
    """Externally sourced earning or deduction."""

    line_type: LineType
    category: LineCategory
    amount: Decimal = Field(ge=0)
    description: str = ""
    taxable: bool = True

    @model_validator(mode="after")
    def _check_category(self) -> "ManualAdjustmentIn":
        problem = self.to_domain("").validation_error()
        if problem:
            raise ValueError(problem)
        return self

    def to_domain(self, employee_id: str) -> ManualAdjustmentLine:
        return ManualAdjustmentLine(
            employee_id=employee_id,
            line_type=self.line_type,
            category=self.category,
            amount=self.amount,
            description=self.description,
            taxable=self.taxable,
        )


class AllowanceIn(BaseModel):
    """Recurring monthly allowance."""

    kind: AllowanceKind
    monthly_amount: Decimal = Field(ge=0)
    name: str = ""

    def to_domain(self) -> Allowance:
        return Allowance(self.kind, self.monthly_amount, self.name)


class PriorYtdIn(BaseModel):
    year: int
    gross_pay: Decimal = Decimal("0")
    taxable_income: Decimal = Decimal("0")
    tax_withheld: Decimal = Decimal("0")

    def to_domain(self) -> PriorYtd:
        return PriorYtd(
            year=self.year,
            gross_pay=self.gross_pay,
            taxable_income=self.taxable_income,
            tax_withheld=self.tax_withheld,
        )


class EmployeeIn(BaseModel):
    """Wage profile plus the employee's inputs for the period."""

    employee_id: str = Field(min_length=1)
    wage_type: WageType
    base_rate: Decimal = Field(ge=0)
    regularization_date: date | None = None
    pay_frequency: PayFrequency | None = None
    default_shift: ShiftWindowIn | None = None
    rest_days: list[int] | None = None
    statutory_eligible: bool = True
    allowances: list[AllowanceIn] = Field(default_factory=list)
    attendance: list[AttendanceDayIn] = Field(default_factory=list)
    adjustments: list[ManualAdjustmentIn] = Field(default_factory=list)
    prior_ytd: PriorYtdIn | None = None

    @field_validator("rest_days")
    @classmethod
    def _check_weekdays(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(d < 0 or d > 6 for d in value):
            raise ValueError("rest_days are weekday numbers 0 (Monday) to 6 (Sunday)")
        return value

    def to_domain(self) -> EmployeePayrollInput:
        profile = EmployeeWageProfile(
            employee_id=self.employee_id,
            wage_type=self.wage_type,
            base_rate=self.base_rate,
            regularization_date=self.regularization_date,
            pay_frequency=self.pay_frequency,
            default_shift=self.default_shift.to_domain() if self.default_shift else None,
            rest_days=frozenset(self.rest_days) if self.rest_days is not None else None,
            statutory_eligible=self.statutory_eligible,
            allowances=tuple(a.to_domain() for a in self.allowances),
        )
        return EmployeePayrollInput(
            profile=profile,
            attendance_days=tuple(a.to_domain(self.employee_id) for a in self.attendance),
            manual_adjustments=tuple(a.to_domain(self.employee_id) for a in self.adjustments),
            prior_ytd=self.prior_ytd.to_domain() if self.prior_ytd else None,
        )


class CalendarEventIn(BaseModel):
    event_date: date
    event_type: CalendarEventType
    name: str = ""

    def to_domain(self) -> CalendarEvent:
        return CalendarEvent(self.event_date, self.event_type, self.name)


class ComputeRequest(BaseModel):
    """Inputs for computing a whole run."""

    employees: list[EmployeeIn]
    calendar_events: list[CalendarEventIn] = Field(default_factory=list)
    actor: str | None = None

    def calendar(self) -> list[CalendarEvent]:
        return [e.to_domain() for e in self.calendar_events]


class RecomputeRequest(BaseModel):
    """Inputs for re-triggering one employee."""

    employee: EmployeeIn
    calendar_events: list[CalendarEventIn] = Field(default_factory=list)
    actor: str | None = None

    def calendar(self) -> list[CalendarEvent]:
        return [e.to_domain() for e in self.calendar_events]


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    name: str = Field(min_length=1)
    period_start: date
    period_end: date
    pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY
    actor: str | None = None


class TransitionRequest(BaseModel):
    actor: str | None = None
    reason: str | None = None


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    name: str
    period_start: date
    period_end: date
    pay_frequency: str
    status: str
    ruleset_version: str | None = None
    ruleset_fingerprint: str | None = None
    engine_version: str | None = None
    computed_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    released_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRunListResponse(BaseModel):
    items: list[PayrollRunResponse]
    total: int


class PayslipLineResponse(BaseModel):
    """Schema for payslip line response."""

    model_config = ConfigDict(from_attributes=True)

    line_type: str
    category: str
    description: str
    quantity: Decimal | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    amount: Decimal
    sort_order: int
    line_hash: str


class PayslipResponse(BaseModel):
    """Schema for payslip response."""

    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    employee_id: str
    calculation_id: UUID
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    taxable_income: Decimal
    employer_contributions: Decimal
    ytd_gross_pay: Decimal
    ytd_taxable_income: Decimal
    ytd_tax_withheld: Decimal
    annualized_tax_due: Decimal
    inputs_fingerprint: str
    rules_fingerprint: str
    warnings: list[Any] | None = None
    locked_at: datetime | None = None
    lines: list[PayslipLineResponse]


class PayrollRunIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    issue_id: UUID
    employee_id: str
    code: str
    work_date: date | None = None
    message: str
    resolved_at: datetime | None = None
    created_at: datetime


class ComputeResponse(BaseModel):
    """Summary of a computation request."""

    run: PayrollRunResponse
    computed: int
    errors: int
    skipped: list[str]
    cancelled: bool
    total_gross: Decimal
    total_net: Decimal


class SelfCheckResponse(BaseModel):
    ok: bool
    rulesets: list[str]
    problems: dict[str, list[str]]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None


class PayrollRunEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: str
    from_status: str | None = None
    to_status: str | None = None
    actor: str | None = None
    details: dict[str, Any] | None = None
    created_at: datetime
