"""Payroll calculation engine - payslip assembly and run fan-out."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from attendance_payroll.calculators.allowances import allowance_lines
from attendance_payroll.calculators.attendance import AttendanceResolver, shift_for
from attendance_payroll.calculators.day_type import DayTypeClassifier
from attendance_payroll.calculators.earnings import EarningsCalculator, ResolvedDay
from attendance_payroll.calculators.errors import (
    ConfigurationIntegrityError,
    InvalidAdjustmentError,
    NegativeNetPayError,
    PayrollComputationError,
)
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.multipliers import MultiplierRule, MultiplierTable
from attendance_payroll.calculators.rulesets import Ruleset
from attendance_payroll.calculators.statutory import StatutoryCalculator, StatutoryTableSet
from attendance_payroll.calculators.types import (
    AttendanceDay,
    CalendarEvent,
    ContributionBreakdown,
    EmployeeWageProfile,
    LineCandidate,
    LineCategory,
    LineType,
    ManualAdjustmentLine,
    NegativeNetPayPolicy,
    PayPeriodRange,
    PayrollPolicy,
    PayslipResult,
    PriorYtd,
    ResolvedMinutes,
    attendance_canonical,
)

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_VERSION = "1.0.0"
ZERO = Decimal("0")

_STATUTORY_LINES: dict[str, tuple[LineCategory, LineCategory, str]] = {
    "SSS": (LineCategory.SSS_EE, LineCategory.SSS_ER, "SSS contribution"),
    "PHILHEALTH": (LineCategory.PHILHEALTH_EE, LineCategory.PHILHEALTH_ER, "PhilHealth contribution"),
    "PAGIBIG": (LineCategory.PAGIBIG_EE, LineCategory.PAGIBIG_ER, "Pag-IBIG contribution"),
}


# ===== Fingerprints =====


def compute_inputs_fingerprint(inputs_data: dict[str, Any]) -> str:
    """Compute fingerprint of all inputs used in calculation."""
    json_str = json.dumps(inputs_data, sort_keys=True)
    return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def compute_rules_fingerprint(
    multipliers: MultiplierTable,
    statutory_tables: StatutoryTableSet,
    policy: PayrollPolicy,
) -> str:
    """Compute fingerprint of the rule versions and policy used."""
    data = {
        "multipliers": multipliers.to_canonical_list(),
        "statutory": repr(statutory_tables),
        "policy": policy.to_canonical_dict(),
    }
    json_str = json.dumps(data, sort_keys=True)
    return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def generate_calculation_id(
    employee_id: str,
    period: PayPeriodRange,
    inputs_fingerprint: str,
    rules_fingerprint: str,
    engine_version: str,
) -> UUID:
    """Deterministic calculation id: identical inputs give the identical id."""
    data = (
        f"{employee_id}:{period.start.isoformat()}:{period.end.isoformat()}:"
        f"{inputs_fingerprint}:{rules_fingerprint}:{engine_version}"
    )
    digest = hashlib.sha256(data.encode()).digest()
    return UUID(bytes=digest[:16])


# ===== Single employee =====


def compute_payslip(
    profile: EmployeeWageProfile,
    period: PayPeriodRange,
    attendance_days: Sequence[AttendanceDay],
    calendar_events: Sequence[CalendarEvent],
    multiplier_rules: MultiplierTable | Sequence[MultiplierRule],
    statutory_tables: StatutoryTableSet,
    manual_adjustments: Sequence[ManualAdjustmentLine] = (),
    prior_ytd: PriorYtd | None = None,
    policy: PayrollPolicy | None = None,
    engine_version: str = DEFAULT_ENGINE_VERSION,
) -> PayslipResult:
    """Compute one employee's payslip for one period.

    Pipeline (stable order):
    1) Classify every period date and resolve its attendance
    2) Build earning, late/undertime and absence lines
    3) Add allowance and manual adjustment lines
    4) Statutory contributions (gated on regularization)
    5) Withholding tax on taxable income
    6) Totals, net pay check, YTD rollup

    Pure: no I/O and no shared state, so identical inputs give a
    byte-identical result.

    Raises:
        PayrollComputationError: any per-employee failure, tagged with
            the employee id
    """
    try:
        return _compute_payslip(
            profile,
            period,
            attendance_days,
            calendar_events,
            multiplier_rules,
            statutory_tables,
            manual_adjustments,
            prior_ytd,
            policy or PayrollPolicy(),
            engine_version,
        )
    except PayrollComputationError as exc:
        if exc.employee_id is None:
            exc.with_employee(profile.employee_id)
        raise


def _compute_payslip(
    profile: EmployeeWageProfile,
    period: PayPeriodRange,
    attendance_days: Sequence[AttendanceDay],
    calendar_events: Sequence[CalendarEvent],
    multiplier_rules: MultiplierTable | Sequence[MultiplierRule],
    statutory_tables: StatutoryTableSet,
    manual_adjustments: Sequence[ManualAdjustmentLine],
    prior_ytd: PriorYtd | None,
    policy: PayrollPolicy,
    engine_version: str,
) -> PayslipResult:
    multipliers = (
        multiplier_rules
        if isinstance(multiplier_rules, MultiplierTable)
        else MultiplierTable(multiplier_rules)
    )
    employee_id = profile.employee_id

    days: dict[date, AttendanceDay] = {}
    for day in attendance_days:
        if day.employee_id != employee_id or not period.contains(day.work_date):
            continue
        if day.work_date in days:
            raise PayrollComputationError(
                "Duplicate attendance records", employee_id, day.work_date
            )
        if day.daily_rate_override is not None and day.daily_rate_override <= 0:
            raise PayrollComputationError(
                f"Daily rate override {day.daily_rate_override} is not positive",
                employee_id,
                day.work_date,
            )
        days[day.work_date] = day

    adjustments = [a for a in manual_adjustments if a.employee_id == employee_id]
    for adj in adjustments:
        problem = adj.validation_error()
        if problem:
            raise InvalidAdjustmentError(problem, employee_id)

    if profile.pay_frequency is not None and profile.pay_frequency != period.pay_frequency:
        raise ConfigurationIntegrityError(
            f"Profile pay frequency {profile.pay_frequency.value} does not match "
            f"the run's {period.pay_frequency.value}",
            employee_id,
        )

    # 1) Classification and attendance
    classifier = DayTypeClassifier(
        [e for e in calendar_events if period.contains(e.event_date)],
        profile.rest_days if profile.rest_days is not None else policy.rest_days,
    )
    resolver = AttendanceResolver(policy)
    resolved: list[ResolvedDay] = []
    for work_date in period.dates():
        day = days.get(work_date)
        minutes = (
            resolver.resolve(day, shift_for(day, profile.default_shift))
            if day is not None
            else ResolvedMinutes()
        )
        resolved.append(
            ResolvedDay(
                work_date=work_date,
                classification=classifier.classify(work_date),
                minutes=minutes,
                has_logs=day is not None and day.has_logs,
                daily_rate_override=day.daily_rate_override if day is not None else None,
            )
        )

    # 2) Earnings
    earnings_calc = EarningsCalculator(multipliers, policy)
    earnings = earnings_calc.calculate(profile, resolved, period.pay_frequency)
    lines: list[LineCandidate] = list(earnings.lines)

    # 3) Allowances and manual adjustments
    lines.extend(
        allowance_lines(profile.allowances, statutory_tables.de_minimis, period.pay_frequency)
    )
    for adj in adjustments:
        if adj.line_type == LineType.EARNING:
            lines.append(
                LineItemBuilder.create_earning_line(
                    adj.category, adj.amount, adj.description or adj.category.value,
                    taxable=adj.taxable,
                )
            )
        else:
            lines.append(
                LineItemBuilder.create_deduction_line(
                    adj.category, adj.amount, adj.description or adj.category.value
                )
            )

    # 4) Statutory contributions
    statutory = StatutoryCalculator(statutory_tables)
    eligible = statutory.is_eligible(profile, period)
    periods_per_month = period.pay_frequency.periods_per_month
    contributions: list[ContributionBreakdown] = []
    employee_statutory = ZERO

    if eligible:
        monthly_salary = earnings_calc.monthly_basic_salary(profile)
        contributions = statutory.contributions(monthly_salary)

    by_program = {c.program: c for c in contributions}
    for program, (ee_category, er_category, label) in _STATUTORY_LINES.items():
        contribution = by_program.get(program)
        ee_share = contribution.employee_share / periods_per_month if contribution else ZERO
        ee_line = LineItemBuilder.create_deduction_line(ee_category, ee_share, label)
        lines.append(ee_line)
        employee_statutory += ee_line.amount
        if contribution is not None:
            lines.append(
                LineItemBuilder.create_employer_contribution_line(
                    er_category,
                    contribution.employer_share / periods_per_month,
                    f"{label} (employer)",
                )
            )

    # 5) Withholding tax
    taxable_earnings = sum(
        (line.amount for line in lines if line.line_type == LineType.EARNING and line.taxable),
        ZERO,
    )
    attendance_deductions = earnings.total(LineCategory.LATE_UT_DEDUCTION) + earnings.total(
        LineCategory.ABSENT_DEDUCTION
    )
    taxable_income = max(ZERO, taxable_earnings - attendance_deductions - employee_statutory)

    tax = statutory.withholding_tax(taxable_income, period.pay_frequency) if eligible else ZERO
    tax_line = LineItemBuilder.create_deduction_line(
        LineCategory.TAX_WITHHOLDING, tax, "Withholding tax"
    )
    lines.append(tax_line)

    # 6) Totals
    lines = LineItemBuilder.sort_lines(lines)
    line_errors = LineItemBuilder.validate_line_amounts(lines)
    if line_errors:
        raise PayrollComputationError("; ".join(line_errors), employee_id)

    gross = LineItemBuilder.calculate_gross_from_lines(lines)
    total_deductions = LineItemBuilder.calculate_deductions_from_lines(lines)
    net = LineItemBuilder.calculate_net_from_lines(lines)
    employer_total = LineItemBuilder.sum_by_type(lines)[LineType.EMPLOYER_CONTRIBUTION]

    warnings: list[str] = []
    if net < policy.minimum_net_pay:
        if policy.negative_net_pay_policy == NegativeNetPayPolicy.FLAG:
            raise NegativeNetPayError(net, policy.minimum_net_pay, employee_id)
        warnings.append(f"Net pay {net} is below the minimum {policy.minimum_net_pay}")

    prior = prior_ytd if prior_ytd is not None and prior_ytd.year == period.end.year else None
    ytd_gross = (prior.gross_pay if prior else ZERO) + gross
    ytd_taxable = (prior.taxable_income if prior else ZERO) + LineItemBuilder.round_to_centavos(
        taxable_income
    )
    ytd_tax = (prior.tax_withheld if prior else ZERO) + tax_line.amount
    annual_due = statutory.annual_tax_due(ytd_taxable)

    inputs_fp = compute_inputs_fingerprint(
        {
            "profile": profile.to_canonical_dict(),
            "period": [period.start.isoformat(), period.end.isoformat(), period.pay_frequency.value],
            "attendance": [attendance_canonical(days[d]) for d in sorted(days)],
            "calendar": sorted(
                [e.event_date.isoformat(), e.event_type.value, e.name]
                for e in calendar_events
                if period.contains(e.event_date)
            ),
            "adjustments": [a.to_canonical_dict() for a in adjustments],
            "prior_ytd": (
                [prior.year, str(prior.gross_pay), str(prior.taxable_income), str(prior.tax_withheld)]
                if prior
                else None
            ),
        }
    )
    rules_fp = compute_rules_fingerprint(multipliers, statutory_tables, policy)

    return PayslipResult(
        employee_id=employee_id,
        period=period,
        calculation_id=generate_calculation_id(
            employee_id, period, inputs_fp, rules_fp, engine_version
        ),
        lines=lines,
        gross_pay=gross,
        total_deductions=total_deductions,
        net_pay=net,
        taxable_income=LineItemBuilder.round_to_centavos(taxable_income),
        employer_contributions=employer_total,
        ytd_gross_pay=ytd_gross,
        ytd_taxable_income=ytd_taxable,
        ytd_tax_withheld=ytd_tax,
        annualized_tax_due=annual_due,
        contributions=contributions,
        inputs_fingerprint=inputs_fp,
        rules_fingerprint=rules_fp,
        warnings=warnings,
    )


# ===== Whole run =====


@dataclass(frozen=True)
class EmployeePayrollInput:
    """Everything the engine needs for one employee in a run."""

    profile: EmployeeWageProfile
    attendance_days: tuple[AttendanceDay, ...] = ()
    manual_adjustments: tuple[ManualAdjustmentLine, ...] = ()
    prior_ytd: PriorYtd | None = None

    @property
    def employee_id(self) -> str:
        return self.profile.employee_id


@dataclass
class RunComputationResult:
    """Result of computing every employee in a run."""

    period: PayPeriodRange
    results: dict[str, PayslipResult] = field(default_factory=dict)
    errors: dict[str, PayrollComputationError] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def total_gross(self) -> Decimal:
        return sum((r.gross_pay for r in self.results.values()), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((r.net_pay for r in self.results.values()), ZERO)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class PayrollEngine:
    """Computes payslips for a run against one ruleset.

    Employees share no mutable state, so each one is computed on its own
    worker thread. Setting the cancel event stops new employees from
    starting; employees already in flight finish and are returned so the
    caller can discard them as a whole.
    """

    def __init__(
        self,
        ruleset: Ruleset,
        policy: PayrollPolicy | None = None,
        engine_version: str = DEFAULT_ENGINE_VERSION,
        max_workers: int | None = None,
    ):
        self.ruleset = ruleset
        self.multipliers = ruleset.multiplier_table()
        self.policy = policy or PayrollPolicy()
        self.engine_version = engine_version
        self.max_workers = max_workers

    def compute_payslip(
        self,
        employee: EmployeePayrollInput,
        period: PayPeriodRange,
        calendar_events: Sequence[CalendarEvent] = (),
    ) -> PayslipResult:
        return compute_payslip(
            employee.profile,
            period,
            employee.attendance_days,
            calendar_events,
            self.multipliers,
            self.ruleset.statutory_tables,
            employee.manual_adjustments,
            employee.prior_ytd,
            self.policy,
            self.engine_version,
        )

    def compute_run(
        self,
        period: PayPeriodRange,
        employees: Sequence[EmployeePayrollInput],
        calendar_events: Sequence[CalendarEvent] = (),
        cancel_event: threading.Event | None = None,
    ) -> RunComputationResult:
        """Compute every employee; per-employee errors are collected, not raised."""
        run = RunComputationResult(period=period)
        cancel = cancel_event or threading.Event()

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {}
            for employee in employees:
                if cancel.is_set():
                    run.skipped.append(employee.employee_id)
                    continue
                future = pool.submit(self._compute_one, employee, period, calendar_events, cancel)
                futures[future] = employee.employee_id

            for future in as_completed(futures):
                employee_id = futures[future]
                try:
                    result = future.result()
                except PayrollComputationError as exc:
                    logger.warning("Payslip computation failed: %s", exc)
                    run.errors[employee_id] = exc
                    continue
                except Exception as exc:
                    logger.exception("Unexpected error computing employee %s", employee_id)
                    run.errors[employee_id] = PayrollComputationError(
                        f"Unexpected error: {exc}", employee_id
                    )
                    continue

                if result is None:
                    run.skipped.append(employee_id)
                else:
                    run.results[employee_id] = result

        run.cancelled = cancel.is_set()
        run.skipped.sort()
        logger.info(
            "Computed %d payslips for %s..%s (%d errors, %d skipped%s)",
            len(run.results),
            period.start,
            period.end,
            run.error_count,
            len(run.skipped),
            ", cancelled" if run.cancelled else "",
        )
        return run

    def _compute_one(
        self,
        employee: EmployeePayrollInput,
        period: PayPeriodRange,
        calendar_events: Sequence[CalendarEvent],
        cancel: threading.Event,
    ) -> PayslipResult | None:
        # Queued work that starts after cancellation does nothing
        if cancel.is_set():
            return None
        return self.compute_payslip(employee, period, calendar_events)
