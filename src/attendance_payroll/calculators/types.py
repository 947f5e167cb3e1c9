"""Type definitions for the attendance-to-payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class DayType(str, Enum):
    """Legal classification of a calendar date."""

    WORKDAY = "WORKDAY"
    REST_DAY = "REST_DAY"
    REGULAR_HOLIDAY = "REGULAR_HOLIDAY"
    SPECIAL_HOLIDAY = "SPECIAL_HOLIDAY"


class CalendarEventType(str, Enum):
    """Calendar event tags supplied by the holiday calendar."""

    REGULAR_HOLIDAY = "REGULAR_HOLIDAY"
    SPECIAL_HOLIDAY = "SPECIAL_HOLIDAY"
    # Declared working day; overrides the weekly rest day
    SPECIAL_WORKING = "SPECIAL_WORKING"


class WageType(str, Enum):
    MONTHLY = "MONTHLY"
    DAILY = "DAILY"
    HOURLY = "HOURLY"


class PayFrequency(str, Enum):
    """Pay frequencies and how many pay periods fall in one month."""

    WEEKLY = "WEEKLY"
    SEMI_MONTHLY = "SEMI_MONTHLY"
    MONTHLY = "MONTHLY"

    @property
    def periods_per_month(self) -> Decimal:
        return {
            PayFrequency.WEEKLY: Decimal("52") / Decimal("12"),
            PayFrequency.SEMI_MONTHLY: Decimal("2"),
            PayFrequency.MONTHLY: Decimal("1"),
        }[self]


class LineType(str, Enum):
    """Payslip line sides.

    Amounts are always stored as non-negative magnitudes; the line type
    decides whether a line adds to gross, reduces net, or is an employer
    liability that never touches net.
    """

    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    EMPLOYER_CONTRIBUTION = "EMPLOYER_CONTRIBUTION"


class LineCategory(str, Enum):
    """Payslip line categories, used by registers and contribution reports."""

    BASIC_PAY = "BASIC_PAY"
    HOLIDAY_PAY = "HOLIDAY_PAY"
    PREMIUM_PAY = "PREMIUM_PAY"
    OT_REGULAR_DAY = "OT_REGULAR_DAY"
    OT_REST_DAY = "OT_REST_DAY"
    OT_REGULAR_HOLIDAY = "OT_REGULAR_HOLIDAY"
    OT_SPECIAL_HOLIDAY = "OT_SPECIAL_HOLIDAY"
    NIGHT_DIFFERENTIAL = "NIGHT_DIFFERENTIAL"
    ALLOWANCE = "ALLOWANCE"
    REIMBURSEMENT = "REIMBURSEMENT"
    INCENTIVE = "INCENTIVE"
    ADJUSTMENT_ADD = "ADJUSTMENT_ADD"
    LATE_UT_DEDUCTION = "LATE_UT_DEDUCTION"
    ABSENT_DEDUCTION = "ABSENT_DEDUCTION"
    SSS_EE = "SSS_EE"
    PHILHEALTH_EE = "PHILHEALTH_EE"
    PAGIBIG_EE = "PAGIBIG_EE"
    TAX_WITHHOLDING = "TAX_WITHHOLDING"
    CASH_ADVANCE_DEDUCTION = "CASH_ADVANCE_DEDUCTION"
    LOAN_DEDUCTION = "LOAN_DEDUCTION"
    ADJUSTMENT_DEDUCT = "ADJUSTMENT_DEDUCT"
    SSS_ER = "SSS_ER"
    PHILHEALTH_ER = "PHILHEALTH_ER"
    PAGIBIG_ER = "PAGIBIG_ER"


# Display order on the payslip
LINE_SORT_ORDER: dict[LineCategory, int] = {
    LineCategory.BASIC_PAY: 100,
    LineCategory.HOLIDAY_PAY: 110,
    LineCategory.PREMIUM_PAY: 120,
    LineCategory.OT_REGULAR_DAY: 200,
    LineCategory.OT_REST_DAY: 210,
    LineCategory.OT_REGULAR_HOLIDAY: 220,
    LineCategory.OT_SPECIAL_HOLIDAY: 230,
    LineCategory.NIGHT_DIFFERENTIAL: 300,
    LineCategory.ALLOWANCE: 400,
    LineCategory.REIMBURSEMENT: 500,
    LineCategory.INCENTIVE: 600,
    LineCategory.ADJUSTMENT_ADD: 800,
    LineCategory.LATE_UT_DEDUCTION: 1015,
    LineCategory.ABSENT_DEDUCTION: 1020,
    LineCategory.SSS_EE: 1100,
    LineCategory.PHILHEALTH_EE: 1110,
    LineCategory.PAGIBIG_EE: 1120,
    LineCategory.TAX_WITHHOLDING: 1200,
    LineCategory.CASH_ADVANCE_DEDUCTION: 1300,
    LineCategory.LOAN_DEDUCTION: 1310,
    LineCategory.ADJUSTMENT_DEDUCT: 1400,
    LineCategory.SSS_ER: 2100,
    LineCategory.PHILHEALTH_ER: 2110,
    LineCategory.PAGIBIG_ER: 2120,
}


# Categories a manual adjustment may carry, by side. Employer contributions
# and the attendance-driven categories only come from the engine.
MANUAL_ADJUSTMENT_CATEGORIES: dict[LineType, frozenset[LineCategory]] = {
    LineType.EARNING: frozenset(
        {
            LineCategory.ALLOWANCE,
            LineCategory.REIMBURSEMENT,
            LineCategory.INCENTIVE,
            LineCategory.ADJUSTMENT_ADD,
        }
    ),
    LineType.DEDUCTION: frozenset(
        {
            LineCategory.CASH_ADVANCE_DEDUCTION,
            LineCategory.LOAN_DEDUCTION,
            LineCategory.ADJUSTMENT_DEDUCT,
        }
    ),
}


class LateUndertimeBasis(str, Enum):
    """Multiplier basis for late/undertime deductions.

    FLAT deducts at 1.0 on every day type. DAY_MULTIPLIER deducts at the
    day's base multiplier (e.g. 2.0 on a regular holiday).
    """

    FLAT = "FLAT"
    DAY_MULTIPLIER = "DAY_MULTIPLIER"


class NegativeNetPayPolicy(str, Enum):
    """What to do when net pay falls below the configured minimum."""

    FLAG = "FLAG"
    ALLOW = "ALLOW"


class MonthlyPayBasis(str, Enum):
    """How monthly-rated employees earn basic pay.

    ATTENDANCE pays every worked minute at the derived minute rate.
    FIXED_SALARY pays the monthly rate spread over the pay periods, less
    an absence deduction for scheduled workdays without clock events.
    """

    ATTENDANCE = "ATTENDANCE"
    FIXED_SALARY = "FIXED_SALARY"


class AllowanceKind(str, Enum):
    """Recurring allowances; the first four are de minimis benefits."""

    RICE_SUBSIDY = "RICE_SUBSIDY"
    CLOTHING = "CLOTHING"
    LAUNDRY = "LAUNDRY"
    MEDICAL = "MEDICAL"
    TRANSPORTATION = "TRANSPORTATION"
    MEAL = "MEAL"
    COMMUNICATION = "COMMUNICATION"


class ContributionKind(str, Enum):
    SS = "SS"
    EC = "EC"
    MPF = "MPF"


# ===== Reference data =====


@dataclass(frozen=True)
class ShiftWindow:
    """Scheduled shift for one employee-day."""

    start_time: time
    end_time: time
    break_minutes: int = 60
    # Unpaid break only applies once the in-shift overlap exceeds this
    break_threshold_minutes: int = 300
    overnight: bool = False

    def scheduled_bounds(self, work_date: date) -> tuple[datetime, datetime]:
        """Anchor the window to a work date."""
        start = datetime.combine(work_date, self.start_time)
        end_date = work_date.toordinal() + (1 if self.overnight else 0)
        end = datetime.combine(date.fromordinal(end_date), self.end_time)
        return start, end


@dataclass(frozen=True)
class AttendanceDay:
    """Raw clock events for one employee on one date."""

    employee_id: str
    work_date: date
    actual_in: datetime | None = None
    actual_out: datetime | None = None
    late_in_approved: bool = False
    early_out_approved: bool = False
    early_in_approved: bool = False
    late_out_approved: bool = False
    # Batch-assigned shift; falls back to the employee's default shift
    shift: ShiftWindow | None = None
    # Approved break length for this day; replaces the shift break
    break_minutes_applied: int | None = None
    # Replaces the profile's derived daily rate for this day only
    daily_rate_override: Decimal | None = None

    @property
    def has_logs(self) -> bool:
        return self.actual_in is not None and self.actual_out is not None


@dataclass(frozen=True)
class CalendarEvent:
    """A holiday calendar entry."""

    event_date: date
    event_type: CalendarEventType
    name: str = ""


@dataclass(frozen=True)
class Allowance:
    """A recurring monthly allowance paid pro rata each period."""

    kind: AllowanceKind
    monthly_amount: Decimal
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.kind.value.replace("_", " ").title()

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "monthly_amount": str(self.monthly_amount),
            "name": self.name,
        }


@dataclass(frozen=True)
class EmployeeWageProfile:
    """Wage configuration supplied by the employee directory."""

    employee_id: str
    wage_type: WageType
    base_rate: Decimal
    regularization_date: date | None = None
    # When set, must match the run's pay frequency
    pay_frequency: PayFrequency | None = None
    default_shift: ShiftWindow | None = None
    # Overrides the company rest-day set (0=Monday .. 6=Sunday)
    rest_days: frozenset[int] | None = None
    statutory_eligible: bool = True
    allowances: tuple[Allowance, ...] = ()

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "wage_type": self.wage_type.value,
            "base_rate": str(self.base_rate),
            "regularization_date": (
                self.regularization_date.isoformat() if self.regularization_date else None
            ),
            "pay_frequency": self.pay_frequency.value if self.pay_frequency else None,
            "default_shift": _shift_canonical(self.default_shift),
            "rest_days": sorted(self.rest_days) if self.rest_days is not None else None,
            "statutory_eligible": self.statutory_eligible,
            "allowances": [a.to_canonical_dict() for a in self.allowances],
        }


@dataclass(frozen=True)
class PayPeriodRange:
    """Inclusive pay period date range."""

    start: date
    end: date
    pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY

    def dates(self) -> list[date]:
        return [
            date.fromordinal(o)
            for o in range(self.start.toordinal(), self.end.toordinal() + 1)
        ]

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


@dataclass(frozen=True)
class ManualAdjustmentLine:
    """Externally sourced earning or deduction attached to a run."""

    employee_id: str
    line_type: LineType
    category: LineCategory
    amount: Decimal
    description: str = ""
    taxable: bool = True

    def validation_error(self) -> str | None:
        """Describe why this adjustment cannot go on a payslip, if it cannot."""
        allowed = MANUAL_ADJUSTMENT_CATEGORIES.get(self.line_type)
        if allowed is None:
            return f"Manual adjustments cannot be {self.line_type.value} lines"
        if self.category not in allowed:
            return (
                f"Category {self.category.value} is not a manual "
                f"{self.line_type.value} category"
            )
        if self.amount < 0:
            return f"Adjustment amount {self.amount} is negative"
        return None

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "line_type": self.line_type.value,
            "category": self.category.value,
            "amount": str(self.amount),
            "description": self.description,
            "taxable": self.taxable,
        }


@dataclass(frozen=True)
class PriorYtd:
    """Year-to-date totals from the employee's previous payslip."""

    year: int
    gross_pay: Decimal = Decimal("0")
    taxable_income: Decimal = Decimal("0")
    tax_withheld: Decimal = Decimal("0")


@dataclass(frozen=True)
class PayrollPolicy:
    """Company-level computation policy."""

    working_days_per_month: Decimal = Decimal("26")
    hours_per_day: Decimal = Decimal("8")
    rest_days: frozenset[int] = frozenset({5, 6})
    night_start: time = time(22, 0)
    night_end: time = time(6, 0)
    late_undertime_basis: LateUndertimeBasis = LateUndertimeBasis.FLAT
    negative_net_pay_policy: NegativeNetPayPolicy = NegativeNetPayPolicy.FLAG
    minimum_net_pay: Decimal = Decimal("0")
    pay_unworked_regular_holidays: bool = True
    monthly_pay_basis: MonthlyPayBasis = MonthlyPayBasis.ATTENDANCE
    timezone: str = "Asia/Manila"

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "working_days_per_month": str(self.working_days_per_month),
            "hours_per_day": str(self.hours_per_day),
            "rest_days": sorted(self.rest_days),
            "night_start": self.night_start.isoformat(),
            "night_end": self.night_end.isoformat(),
            "late_undertime_basis": self.late_undertime_basis.value,
            "negative_net_pay_policy": self.negative_net_pay_policy.value,
            "minimum_net_pay": str(self.minimum_net_pay),
            "pay_unworked_regular_holidays": self.pay_unworked_regular_holidays,
            "monthly_pay_basis": self.monthly_pay_basis.value,
            "timezone": self.timezone,
        }


# ===== Intermediate results =====


@dataclass(frozen=True)
class ResolvedMinutes:
    """Minutes derived for one employee-day."""

    worked_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    early_ot_minutes: int = 0
    late_ot_minutes: int = 0
    night_minutes: int = 0
    night_ot_minutes: int = 0
    break_minutes_applied: int = 0
    # Shortened-break time worked beyond the regular schedule
    break_ot_minutes: int = 0

    @property
    def ot_minutes(self) -> int:
        return self.early_ot_minutes + self.late_ot_minutes + self.break_ot_minutes


@dataclass(frozen=True)
class DayClassification:
    """Day type plus the independent rest-day flag."""

    day_type: DayType
    is_rest_day: bool
    event_name: str | None = None


@dataclass(frozen=True)
class ContributionComponent:
    """One tagged piece of an SSS contribution."""

    kind: ContributionKind
    employee_share: Decimal
    employer_share: Decimal


@dataclass(frozen=True)
class ContributionBreakdown:
    """Monthly employee/employer amounts for one statutory program."""

    program: str
    employee_share: Decimal
    employer_share: Decimal
    components: tuple[ContributionComponent, ...] = ()


@dataclass
class LineCandidate:
    """A payslip line before persistence."""

    line_type: LineType
    category: LineCategory
    amount: Decimal  # Non-negative magnitude
    description: str = ""

    # Quantity (minutes or days) / rate / multiplier
    quantity: Decimal | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None

    sort_order: int = 0
    taxable: bool = False

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "line_type": self.line_type.value,
            "category": self.category.value,
            "description": self.description,
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "rate": str(self.rate) if self.rate is not None else None,
            "multiplier": str(self.multiplier) if self.multiplier is not None else None,
            "amount": str(self.amount),
            "sort_order": self.sort_order,
            "taxable": self.taxable,
        }


@dataclass
class PayslipResult:
    """A fully assembled payslip for one employee-period."""

    employee_id: str
    period: PayPeriodRange
    calculation_id: UUID
    lines: list[LineCandidate]
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    taxable_income: Decimal
    employer_contributions: Decimal
    ytd_gross_pay: Decimal
    ytd_taxable_income: Decimal
    ytd_tax_withheld: Decimal
    annualized_tax_due: Decimal
    contributions: list[ContributionBreakdown]
    inputs_fingerprint: str
    rules_fingerprint: str
    warnings: list[str] = field(default_factory=list)

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "period_start": self.period.start.isoformat(),
            "period_end": self.period.end.isoformat(),
            "calculation_id": str(self.calculation_id),
            "lines": [line.to_canonical_dict() for line in self.lines],
            "gross_pay": str(self.gross_pay),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
            "taxable_income": str(self.taxable_income),
            "employer_contributions": str(self.employer_contributions),
            "ytd_gross_pay": str(self.ytd_gross_pay),
            "ytd_taxable_income": str(self.ytd_taxable_income),
            "ytd_tax_withheld": str(self.ytd_tax_withheld),
            "annualized_tax_due": str(self.annualized_tax_due),
            "inputs_fingerprint": self.inputs_fingerprint,
            "rules_fingerprint": self.rules_fingerprint,
            "warnings": list(self.warnings),
        }


def _shift_canonical(shift: ShiftWindow | None) -> dict[str, Any] | None:
    if shift is None:
        return None
    return {
        "start_time": shift.start_time.isoformat(),
        "end_time": shift.end_time.isoformat(),
        "break_minutes": shift.break_minutes,
        "break_threshold_minutes": shift.break_threshold_minutes,
        "overnight": shift.overnight,
    }


def attendance_canonical(day: AttendanceDay) -> dict[str, Any]:
    """Canonical dict of an attendance day for fingerprinting."""
    return {
        "work_date": day.work_date.isoformat(),
        "actual_in": day.actual_in.isoformat() if day.actual_in else None,
        "actual_out": day.actual_out.isoformat() if day.actual_out else None,
        "late_in_approved": day.late_in_approved,
        "early_out_approved": day.early_out_approved,
        "early_in_approved": day.early_in_approved,
        "late_out_approved": day.late_out_approved,
        "shift": _shift_canonical(day.shift),
        "break_minutes_applied": day.break_minutes_applied,
        "daily_rate_override": (
            str(day.daily_rate_override) if day.daily_rate_override is not None else None
        ),
    }
