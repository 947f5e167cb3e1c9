"""Earnings calculation from resolved minutes, day types, and multipliers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.multipliers import MultiplierTable
from attendance_payroll.calculators.types import (
    DayClassification,
    DayType,
    EmployeeWageProfile,
    LateUndertimeBasis,
    LineCandidate,
    LineCategory,
    MonthlyPayBasis,
    PayFrequency,
    PayrollPolicy,
    ResolvedMinutes,
    WageType,
)

# OT never merges across these buckets; rest-day holidays stay with their holiday
OT_BUCKETS: dict[DayType, LineCategory] = {
    DayType.WORKDAY: LineCategory.OT_REGULAR_DAY,
    DayType.REST_DAY: LineCategory.OT_REST_DAY,
    DayType.REGULAR_HOLIDAY: LineCategory.OT_REGULAR_HOLIDAY,
    DayType.SPECIAL_HOLIDAY: LineCategory.OT_SPECIAL_HOLIDAY,
}

_OT_DESCRIPTIONS = {
    LineCategory.OT_REGULAR_DAY: "Overtime - regular day",
    LineCategory.OT_REST_DAY: "Overtime - rest day",
    LineCategory.OT_REGULAR_HOLIDAY: "Overtime - regular holiday",
    LineCategory.OT_SPECIAL_HOLIDAY: "Overtime - special holiday",
}

ZERO = Decimal("0")


@dataclass(frozen=True)
class ResolvedDay:
    """One period date after attendance resolution and classification."""

    work_date: date
    classification: DayClassification
    minutes: ResolvedMinutes
    has_logs: bool = False
    daily_rate_override: Decimal | None = None


@dataclass
class _Bucket:
    minutes: int = 0
    amount: Decimal = ZERO
    multipliers: set[Decimal] = field(default_factory=set)
    rates: set[Decimal] = field(default_factory=set)

    def add(self, minutes: int, amount: Decimal, multiplier: Decimal, rate: Decimal) -> None:
        self.minutes += minutes
        self.amount += amount
        self.multipliers.add(multiplier)
        self.rates.add(rate)

    @property
    def multiplier(self) -> Decimal | None:
        # Only shown when every day in the bucket used the same multiplier
        if len(self.multipliers) == 1:
            return next(iter(self.multipliers))
        return None

    @property
    def rate(self) -> Decimal | None:
        if len(self.rates) == 1:
            return next(iter(self.rates))
        return None


@dataclass
class EarningsBreakdown:
    """Earnings calculator output."""

    minute_rate: Decimal
    lines: list[LineCandidate]

    def total(self, category: LineCategory) -> Decimal:
        return sum((line.amount for line in self.lines if line.category == category), ZERO)


class EarningsCalculator:
    """Converts per-day minutes into earning and deduction lines.

    Holiday and rest-day premiums live inside the multipliers, so basic pay
    on a regular holiday is worked minutes x rate x 2.0 rather than a
    separate premium line. Night differential is paid as the premium over
    the matching non-ND multiplier, since the base portion is already in
    basic or OT pay.

    Monthly-rated employees on the FIXED_SALARY basis get the period share
    of their monthly rate as basic pay instead. Their salary already covers
    every non-rest day at 1.0, so work on those days only earns the part
    of the multiplier above 1.0 (PREMIUM_PAY), rest-day work earns the full
    multiplier, and scheduled workdays without clock events are deducted
    at the daily rate (ABSENT_DEDUCTION).

    A day's daily_rate_override replaces the derived rates for that day in
    every line it contributes to.
    """

    def __init__(self, multipliers: MultiplierTable, policy: PayrollPolicy | None = None):
        self.multipliers = multipliers
        self.policy = policy or PayrollPolicy()

    def minute_rate(self, profile: EmployeeWageProfile) -> Decimal:
        """Per-minute rate at full Decimal precision."""
        minutes_per_day = self.policy.hours_per_day * 60
        if profile.wage_type == WageType.MONTHLY:
            return profile.base_rate / self.policy.working_days_per_month / minutes_per_day
        if profile.wage_type == WageType.DAILY:
            return profile.base_rate / minutes_per_day
        return profile.base_rate / Decimal("60")

    def daily_rate(self, profile: EmployeeWageProfile) -> Decimal:
        return self.minute_rate(profile) * self.policy.hours_per_day * 60

    def day_minute_rate(self, profile: EmployeeWageProfile, day: ResolvedDay) -> Decimal:
        if day.daily_rate_override is None:
            return self.minute_rate(profile)
        return day.daily_rate_override / (self.policy.hours_per_day * 60)

    def monthly_basic_salary(self, profile: EmployeeWageProfile) -> Decimal:
        """Monthly salary equivalent used for statutory bracket lookups."""
        if profile.wage_type == WageType.MONTHLY:
            return profile.base_rate
        return LineItemBuilder.round_to_centavos(
            self.daily_rate(profile) * self.policy.working_days_per_month
        )

    def is_fixed_salary(self, profile: EmployeeWageProfile) -> bool:
        return (
            profile.wage_type == WageType.MONTHLY
            and self.policy.monthly_pay_basis == MonthlyPayBasis.FIXED_SALARY
        )

    def calculate(
        self,
        profile: EmployeeWageProfile,
        days: list[ResolvedDay],
        pay_frequency: PayFrequency = PayFrequency.SEMI_MONTHLY,
    ) -> EarningsBreakdown:
        employee_id = profile.employee_id
        fixed = self.is_fixed_salary(profile)
        minutes_per_day = int(self.policy.hours_per_day * 60)

        basic = _Bucket()
        premium = _Bucket()
        late_ut = _Bucket()
        absent = _Bucket()
        night = _Bucket()
        holiday = _Bucket()
        ot_buckets: dict[LineCategory, _Bucket] = {}

        for day in sorted(days, key=lambda d: d.work_date):
            cls = day.classification
            m = day.minutes
            rd = cls.is_rest_day
            rate = self.day_minute_rate(profile, day)

            base_mult = self.multipliers.resolve(
                cls.day_type, False, False, rd, employee_id, day.work_date
            )

            if m.worked_minutes:
                if not fixed:
                    amount = m.worked_minutes * rate * base_mult
                    basic.add(m.worked_minutes, amount, base_mult, rate)
                else:
                    extra = base_mult if rd else base_mult - 1
                    if extra:
                        premium.add(m.worked_minutes, m.worked_minutes * rate * extra, extra, rate)

            penalized = m.late_minutes + m.undertime_minutes
            if penalized:
                basis = (
                    base_mult
                    if self.policy.late_undertime_basis == LateUndertimeBasis.DAY_MULTIPLIER
                    else Decimal("1.0")
                )
                late_ut.add(penalized, penalized * rate * basis, basis, rate)

            if m.ot_minutes:
                ot_mult = self.multipliers.resolve(
                    cls.day_type, True, False, rd, employee_id, day.work_date
                )
                bucket = ot_buckets.setdefault(OT_BUCKETS[cls.day_type], _Bucket())
                bucket.add(m.ot_minutes, m.ot_minutes * rate * ot_mult, ot_mult, rate)

            if m.night_minutes:
                nd_mult = self.multipliers.resolve(
                    cls.day_type, False, True, rd, employee_id, day.work_date
                )
                extra = nd_mult - base_mult
                night.add(m.night_minutes, m.night_minutes * rate * extra, extra, rate)

            if m.night_ot_minutes:
                ot_mult = self.multipliers.resolve(
                    cls.day_type, True, False, rd, employee_id, day.work_date
                )
                ot_nd_mult = self.multipliers.resolve(
                    cls.day_type, True, True, rd, employee_id, day.work_date
                )
                extra = ot_nd_mult - ot_mult
                night.add(m.night_ot_minutes, m.night_ot_minutes * rate * extra, extra, rate)

            daily = rate * minutes_per_day
            if fixed:
                if cls.day_type == DayType.WORKDAY and not rd and not day.has_logs:
                    absent.add(minutes_per_day, daily, Decimal("1.0"), daily)
            elif (
                self.policy.pay_unworked_regular_holidays
                and cls.day_type == DayType.REGULAR_HOLIDAY
                and not day.has_logs
            ):
                holiday.add(minutes_per_day, daily, Decimal("1.0"), daily)

        lines: list[LineCandidate] = []

        if fixed:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.BASIC_PAY,
                    profile.base_rate / pay_frequency.periods_per_month,
                    "Basic pay (fixed salary)",
                )
            )
        elif basic.minutes:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.BASIC_PAY,
                    basic.amount,
                    "Basic pay",
                    quantity=Decimal(basic.minutes),
                    rate=basic.rate,
                    multiplier=basic.multiplier,
                )
            )

        if holiday.minutes:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.HOLIDAY_PAY,
                    holiday.amount,
                    "Regular holiday pay (unworked)",
                    quantity=Decimal(holiday.minutes // minutes_per_day),
                    rate=holiday.rate,
                    multiplier=Decimal("1.0"),
                )
            )

        if premium.minutes:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.PREMIUM_PAY,
                    premium.amount,
                    "Rest day / holiday premium",
                    quantity=Decimal(premium.minutes),
                    rate=premium.rate,
                    multiplier=premium.multiplier,
                )
            )

        for category in sorted(ot_buckets, key=lambda c: c.value):
            bucket = ot_buckets[category]
            lines.append(
                LineItemBuilder.create_earning_line(
                    category,
                    bucket.amount,
                    _OT_DESCRIPTIONS[category],
                    quantity=Decimal(bucket.minutes),
                    rate=bucket.rate,
                    multiplier=bucket.multiplier,
                )
            )

        if night.minutes:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.NIGHT_DIFFERENTIAL,
                    night.amount,
                    "Night differential",
                    quantity=Decimal(night.minutes),
                    rate=night.rate,
                    multiplier=night.multiplier,
                )
            )

        if late_ut.minutes:
            lines.append(
                LineItemBuilder.create_deduction_line(
                    LineCategory.LATE_UT_DEDUCTION,
                    late_ut.amount,
                    "Late / undertime",
                    quantity=Decimal(late_ut.minutes),
                    rate=late_ut.rate,
                    multiplier=late_ut.multiplier,
                )
            )

        if absent.minutes:
            lines.append(
                LineItemBuilder.create_deduction_line(
                    LineCategory.ABSENT_DEDUCTION,
                    absent.amount,
                    "Absences",
                    quantity=Decimal(absent.minutes // minutes_per_day),
                    rate=absent.rate,
                )
            )

        return EarningsBreakdown(minute_rate=self.minute_rate(profile), lines=lines)
