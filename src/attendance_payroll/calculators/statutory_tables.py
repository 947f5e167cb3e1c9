"""Published statutory schedules shipped with the engine.

Each builder returns a new immutable table; a newer schedule gets a new
builder and effective date instead of editing an existing one.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from attendance_payroll.calculators.statutory import (
    DeMinimisTable,
    PagIbigBracket,
    PagIbigTable,
    PhilHealthTable,
    SSSBracket,
    SSSTable,
    StatutoryTableSet,
    TaxBasis,
    TaxBracket,
    TaxTable,
)
from attendance_payroll.calculators.types import AllowanceKind

EFFECTIVE_2026 = date(2026, 1, 1)

_SSS_EE_RATE = Decimal("0.05")
_SSS_ER_RATE = Decimal("0.10")
_SSS_MSC_STEP = Decimal("500")
_SSS_MIN_MSC = Decimal("5000")
_SSS_MPF_THRESHOLD = Decimal("20000")
_SSS_MAX_MSC = Decimal("35000")
_SSS_EC_HIGH_FROM = Decimal("15000")


def build_sss_2026() -> SSSTable:
    """SSS schedule: regular SS up to MSC 20,000, MPF on the excess up to 35,000."""
    brackets: list[SSSBracket] = []
    msc = _SSS_MIN_MSC
    lower = Decimal("0")
    while msc <= _SSS_MAX_MSC:
        upper = None if msc == _SSS_MAX_MSC else msc + _SSS_MSC_STEP / 2
        regular_msc = min(msc, _SSS_MPF_THRESHOLD)
        mpf_msc = max(Decimal("0"), msc - _SSS_MPF_THRESHOLD)
        brackets.append(
            SSSBracket(
                min_salary=lower,
                max_salary=upper,
                monthly_salary_credit=msc,
                ee_ss=regular_msc * _SSS_EE_RATE,
                er_ss=regular_msc * _SSS_ER_RATE,
                ee_ec=Decimal("0"),
                er_ec=Decimal("30") if msc >= _SSS_EC_HIGH_FROM else Decimal("10"),
                ee_mpf=mpf_msc * _SSS_EE_RATE,
                er_mpf=mpf_msc * _SSS_ER_RATE,
            )
        )
        if upper is None:
            break
        lower = upper
        msc += _SSS_MSC_STEP
    return SSSTable(version="SSS-2026", effective_date=EFFECTIVE_2026, brackets=tuple(brackets))


def build_philhealth_2026() -> PhilHealthTable:
    return PhilHealthTable(
        version="PHIC-2026",
        effective_date=EFFECTIVE_2026,
        premium_rate=Decimal("0.05"),
        income_floor=Decimal("10000"),
        income_ceiling=Decimal("100000"),
        min_contribution=Decimal("500.00"),
        max_contribution=Decimal("5000.00"),
    )


def build_pagibig_2026() -> PagIbigTable:
    return PagIbigTable(
        version="HDMF-2026",
        effective_date=EFFECTIVE_2026,
        brackets=(
            PagIbigBracket(Decimal("1500"), Decimal("0.01"), Decimal("0.02")),
            PagIbigBracket(None, Decimal("0.02"), Decimal("0.02")),
        ),
        max_fund_salary=Decimal("10000"),
        max_employee_share=Decimal("200.00"),
        max_employer_share=Decimal("200.00"),
    )


def _tax_table(basis: TaxBasis, rows: list[tuple[str, str | None, str, str]]) -> TaxTable:
    return TaxTable(
        version=f"BIR-TRAIN-2023-{basis.value}",
        effective_date=date(2023, 1, 1),
        basis=basis,
        brackets=tuple(
            TaxBracket(
                min_income=Decimal(lo),
                max_income=Decimal(hi) if hi is not None else None,
                base_tax=Decimal(base),
                rate=Decimal(rate),
            )
            for lo, hi, base, rate in rows
        ),
    )


def build_tax_tables_2023() -> tuple[TaxTable, ...]:
    """Revised withholding tax tables in force from 2023 onward."""
    return (
        _tax_table(TaxBasis.WEEKLY, [
            ("0", "4808", "0", "0"),
            ("4808", "7692", "0", "0.15"),
            ("7692", "15385", "432.60", "0.20"),
            ("15385", "38462", "1971.20", "0.25"),
            ("38462", "153846", "7740.45", "0.30"),
            ("153846", None, "42355.65", "0.35"),
        ]),
        _tax_table(TaxBasis.SEMI_MONTHLY, [
            ("0", "10417", "0", "0"),
            ("10417", "16667", "0", "0.15"),
            ("16667", "33333", "937.50", "0.20"),
            ("33333", "83333", "4270.70", "0.25"),
            ("83333", "333333", "16770.70", "0.30"),
            ("333333", None, "91770.70", "0.35"),
        ]),
        _tax_table(TaxBasis.MONTHLY, [
            ("0", "20833", "0", "0"),
            ("20833", "33333", "0", "0.15"),
            ("33333", "66667", "1875.00", "0.20"),
            ("66667", "166667", "8541.80", "0.25"),
            ("166667", "666667", "33541.80", "0.30"),
            ("666667", None, "183541.80", "0.35"),
        ]),
        _tax_table(TaxBasis.ANNUAL, [
            ("0", "250000", "0", "0"),
            ("250000", "400000", "0", "0.15"),
            ("400000", "800000", "22500", "0.20"),
            ("800000", "2000000", "102500", "0.25"),
            ("2000000", "8000000", "402500", "0.30"),
            ("8000000", None, "2202500", "0.35"),
        ]),
    )


def build_de_minimis_2026() -> DeMinimisTable:
    """Monthly de minimis ceilings (uniform allowance is 6,000 a year)."""
    return DeMinimisTable(
        version="DM-2026",
        effective_date=EFFECTIVE_2026,
        monthly_limits=(
            (AllowanceKind.RICE_SUBSIDY, Decimal("2000")),
            (AllowanceKind.CLOTHING, Decimal("500")),
            (AllowanceKind.LAUNDRY, Decimal("300")),
            (AllowanceKind.MEDICAL, Decimal("250")),
        ),
    )


def build_statutory_tables_2026() -> StatutoryTableSet:
    return StatutoryTableSet(
        sss=build_sss_2026(),
        philhealth=build_philhealth_2026(),
        pagibig=build_pagibig_2026(),
        tax_tables=build_tax_tables_2023(),
        de_minimis=build_de_minimis_2026(),
    )
