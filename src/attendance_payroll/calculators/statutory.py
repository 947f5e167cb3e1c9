"""Statutory contributions (SSS, PhilHealth, Pag-IBIG) and withholding tax."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Protocol, Sequence, TypeVar

from attendance_payroll.calculators.errors import BracketLookupError
from attendance_payroll.calculators.types import (
    AllowanceKind,
    ContributionBreakdown,
    ContributionComponent,
    ContributionKind,
    EmployeeWageProfile,
    PayFrequency,
    PayPeriodRange,
)

CENTAVO = Decimal("0.01")
ZERO = Decimal("0")


def _centavos(amount: Decimal) -> Decimal:
    return amount.quantize(CENTAVO, rounding=ROUND_HALF_UP)


class TaxBasis(str, Enum):
    """Withholding tax table periodicity."""

    WEEKLY = "WEEKLY"
    SEMI_MONTHLY = "SEMI_MONTHLY"
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


TAX_BASIS_FOR_FREQUENCY: dict[PayFrequency, TaxBasis] = {
    PayFrequency.WEEKLY: TaxBasis.WEEKLY,
    PayFrequency.SEMI_MONTHLY: TaxBasis.SEMI_MONTHLY,
    PayFrequency.MONTHLY: TaxBasis.MONTHLY,
}


# ===== Table value objects =====


@dataclass(frozen=True)
class SSSBracket:
    """Pre-computed SSS contribution amounts for one salary range.

    The range is half-open: min_salary <= salary < max_salary. The top
    bracket has max_salary None.
    """

    min_salary: Decimal
    max_salary: Decimal | None
    monthly_salary_credit: Decimal
    ee_ss: Decimal
    er_ss: Decimal
    ee_ec: Decimal
    er_ec: Decimal
    ee_mpf: Decimal = ZERO
    er_mpf: Decimal = ZERO

    @property
    def lower(self) -> Decimal:
        return self.min_salary

    @property
    def upper(self) -> Decimal | None:
        return self.max_salary

    def components(self) -> tuple[ContributionComponent, ...]:
        return (
            ContributionComponent(ContributionKind.SS, self.ee_ss, self.er_ss),
            ContributionComponent(ContributionKind.EC, self.ee_ec, self.er_ec),
            ContributionComponent(ContributionKind.MPF, self.ee_mpf, self.er_mpf),
        )


@dataclass(frozen=True)
class SSSTable:
    version: str
    effective_date: date
    brackets: tuple[SSSBracket, ...]


@dataclass(frozen=True)
class PhilHealthTable:
    version: str
    effective_date: date
    premium_rate: Decimal
    income_floor: Decimal
    income_ceiling: Decimal
    min_contribution: Decimal
    max_contribution: Decimal


@dataclass(frozen=True)
class PagIbigBracket:
    """Rate row applying to salaries up to and including max_salary."""

    max_salary: Decimal | None
    employee_rate: Decimal
    employer_rate: Decimal


@dataclass(frozen=True)
class PagIbigTable:
    version: str
    effective_date: date
    brackets: tuple[PagIbigBracket, ...]
    max_fund_salary: Decimal
    max_employee_share: Decimal
    max_employer_share: Decimal


@dataclass(frozen=True)
class TaxBracket:
    """Withholding bracket: base_tax + (income - min_income) * rate."""

    min_income: Decimal
    max_income: Decimal | None  # exclusive; None = no upper limit
    base_tax: Decimal
    rate: Decimal

    @property
    def lower(self) -> Decimal:
        return self.min_income

    @property
    def upper(self) -> Decimal | None:
        return self.max_income


@dataclass(frozen=True)
class TaxTable:
    version: str
    effective_date: date
    basis: TaxBasis
    brackets: tuple[TaxBracket, ...]


@dataclass(frozen=True)
class DeMinimisTable:
    """Monthly ceilings of tax-exempt de minimis benefits.

    Allowance kinds without a ceiling are fully taxable.
    """

    version: str
    effective_date: date
    monthly_limits: tuple[tuple[AllowanceKind, Decimal], ...]

    def limit_for(self, kind: AllowanceKind) -> Decimal | None:
        for limit_kind, limit in self.monthly_limits:
            if limit_kind == kind:
                return limit
        return None


@dataclass(frozen=True)
class StatutoryTableSet:
    """The statutory schedules in force for one computation."""

    sss: SSSTable
    philhealth: PhilHealthTable
    pagibig: PagIbigTable
    tax_tables: tuple[TaxTable, ...]
    de_minimis: DeMinimisTable

    def tax_table(self, basis: TaxBasis) -> TaxTable:
        for table in self.tax_tables:
            if table.basis == basis:
                return table
        raise BracketLookupError(f"{basis.value} tax", ZERO, "no table for this basis")

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "sss": self.sss.version,
            "philhealth": self.philhealth.version,
            "pagibig": self.pagibig.version,
            "tax": sorted(f"{t.basis.value}:{t.version}" for t in self.tax_tables),
            "de_minimis": self.de_minimis.version,
        }


# ===== Bracket lookup and validation =====


class _Ranged(Protocol):
    @property
    def lower(self) -> Decimal: ...

    @property
    def upper(self) -> Decimal | None: ...


R = TypeVar("R", bound=_Ranged)


def find_bracket(brackets: Sequence[R], amount: Decimal, table: str) -> R:
    """Linear scan over ascending, half-open brackets.

    Raises:
        BracketLookupError: negative amount or no bracket contains it
    """
    if amount < 0:
        raise BracketLookupError(table, amount, "negative amount")
    for bracket in brackets:
        if amount >= bracket.lower and (bracket.upper is None or amount < bracket.upper):
            return bracket
    raise BracketLookupError(table, amount)


def validate_brackets(brackets: Sequence[_Ranged], table: str) -> list[str]:
    """Check brackets are ascending, contiguous, start at 0, end unbounded."""
    errors: list[str] = []
    if not brackets:
        return [f"{table}: table has no brackets"]

    if brackets[0].lower != 0:
        errors.append(f"{table}: first bracket starts at {brackets[0].lower}, not 0")

    for prev, cur in zip(brackets, brackets[1:]):
        if prev.upper is None:
            errors.append(f"{table}: unbounded bracket at {prev.lower} is not last")
        elif cur.lower != prev.upper:
            kind = "gap" if cur.lower > prev.upper else "overlap"
            errors.append(f"{table}: {kind} between {prev.upper} and {cur.lower}")
        if cur.upper is not None and cur.upper <= cur.lower:
            errors.append(f"{table}: empty bracket at {cur.lower}")

    if brackets[-1].upper is not None:
        errors.append(f"{table}: top bracket ends at {brackets[-1].upper}; must be unbounded")
    return errors


def validate_statutory_tables(tables: StatutoryTableSet) -> list[str]:
    """Self-check over every statutory schedule.

    Returns list of error messages (empty if valid).
    """
    errors = validate_brackets(tables.sss.brackets, f"SSS {tables.sss.version}")

    ph = tables.philhealth
    if ph.income_floor > ph.income_ceiling:
        errors.append(f"PhilHealth {ph.version}: floor above ceiling")
    if _centavos(ph.income_floor * ph.premium_rate) != ph.min_contribution:
        errors.append(f"PhilHealth {ph.version}: floor x rate != min contribution")
    if _centavos(ph.income_ceiling * ph.premium_rate) != ph.max_contribution:
        errors.append(f"PhilHealth {ph.version}: ceiling x rate != max contribution")

    pi = tables.pagibig
    if not pi.brackets or pi.brackets[-1].max_salary is not None:
        errors.append(f"Pag-IBIG {pi.version}: last row must be unbounded")
    thresholds = [b.max_salary for b in pi.brackets[:-1]]
    if any(t is None for t in thresholds) or thresholds != sorted(thresholds):  # type: ignore[type-var]
        errors.append(f"Pag-IBIG {pi.version}: rows must ascend by threshold")

    for basis in TaxBasis:
        try:
            table = tables.tax_table(basis)
        except BracketLookupError:
            errors.append(f"Tax: missing {basis.value} table")
            continue
        errors.extend(validate_brackets(table.brackets, f"Tax {basis.value} {table.version}"))

    dm = tables.de_minimis
    kinds = [kind for kind, _ in dm.monthly_limits]
    if len(kinds) != len(set(kinds)):
        errors.append(f"De minimis {dm.version}: duplicate allowance kind")
    if any(limit < 0 for _, limit in dm.monthly_limits):
        errors.append(f"De minimis {dm.version}: negative limit")
    return errors


# ===== Calculator =====


class StatutoryCalculator:
    """Computes statutory contributions and withholding tax.

    Contribution amounts are monthly; the payslip assembler splits them
    across the pay periods in a month. Eligibility is gated on
    regularization: before it, every contribution and the tax are zero.
    """

    def __init__(self, tables: StatutoryTableSet):
        self.tables = tables

    @staticmethod
    def is_eligible(profile: EmployeeWageProfile, period: PayPeriodRange) -> bool:
        if not profile.statutory_eligible or profile.regularization_date is None:
            return False
        return period.end >= profile.regularization_date

    def sss(self, monthly_salary: Decimal) -> ContributionBreakdown:
        bracket = find_bracket(self.tables.sss.brackets, monthly_salary, "SSS")
        components = bracket.components()
        return ContributionBreakdown(
            program="SSS",
            employee_share=sum((c.employee_share for c in components), ZERO),
            employer_share=sum((c.employer_share for c in components), ZERO),
            components=components,
        )

    def philhealth(self, monthly_salary: Decimal) -> ContributionBreakdown:
        if monthly_salary < 0:
            raise BracketLookupError("PhilHealth", monthly_salary, "negative amount")
        table = self.tables.philhealth
        base = min(max(monthly_salary, table.income_floor), table.income_ceiling)
        total = _centavos(base * table.premium_rate)
        total = min(max(total, table.min_contribution), table.max_contribution)
        employee = _centavos(total / 2)
        return ContributionBreakdown(
            program="PHILHEALTH",
            employee_share=employee,
            employer_share=total - employee,
        )

    def pagibig(self, monthly_salary: Decimal) -> ContributionBreakdown:
        if monthly_salary < 0:
            raise BracketLookupError("Pag-IBIG", monthly_salary, "negative amount")
        table = self.tables.pagibig
        row = next(
            (b for b in table.brackets if b.max_salary is None or monthly_salary <= b.max_salary),
            None,
        )
        if row is None:
            raise BracketLookupError("Pag-IBIG", monthly_salary)

        base = min(monthly_salary, table.max_fund_salary)
        return ContributionBreakdown(
            program="PAGIBIG",
            employee_share=min(_centavos(base * row.employee_rate), table.max_employee_share),
            employer_share=min(_centavos(base * row.employer_rate), table.max_employer_share),
        )

    def contributions(self, monthly_salary: Decimal) -> list[ContributionBreakdown]:
        """Monthly SSS, PhilHealth, and Pag-IBIG amounts, in that order."""
        return [
            self.sss(monthly_salary),
            self.philhealth(monthly_salary),
            self.pagibig(monthly_salary),
        ]

    def withholding_tax(self, taxable_income: Decimal, frequency: PayFrequency) -> Decimal:
        """Per-period withholding from the table matching the pay frequency."""
        return self._tax(taxable_income, TAX_BASIS_FOR_FREQUENCY[frequency])

    def annual_tax_due(self, annual_taxable_income: Decimal) -> Decimal:
        """Annual tax for year-end reconciliation against amounts withheld."""
        return self._tax(annual_taxable_income, TaxBasis.ANNUAL)

    def _tax(self, taxable_income: Decimal, basis: TaxBasis) -> Decimal:
        table = self.tables.tax_table(basis)
        bracket = find_bracket(table.brackets, taxable_income, f"{basis.value} tax")
        return _centavos(bracket.base_tax + (taxable_income - bracket.min_income) * bracket.rate)
