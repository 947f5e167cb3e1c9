"""Tests for statutory contributions and withholding tax."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from attendance_payroll.calculators.errors import BracketLookupError
from attendance_payroll.calculators.statutory import (
    StatutoryCalculator,
    TaxBasis,
    TaxBracket,
    find_bracket,
    validate_brackets,
    validate_statutory_tables,
)
from attendance_payroll.calculators.statutory_tables import build_statutory_tables_2026
from attendance_payroll.calculators.types import (
    AllowanceKind,
    ContributionKind,
    EmployeeWageProfile,
    PayFrequency,
    PayPeriodRange,
    WageType,
)


@pytest.fixture
def calculator() -> StatutoryCalculator:
    return StatutoryCalculator(build_statutory_tables_2026())


class TestSSS:
    """Test SSS bracket lookup and components."""

    def test_at_mpf_threshold(self, calculator):
        """MSC 20,000: regular SS only, EC 30."""
        result = calculator.sss(Decimal("20000"))
        assert result.employee_share == Decimal("1000")
        assert result.employer_share == Decimal("2030")

    def test_above_mpf_threshold(self, calculator):
        """MSC 20,500 adds MPF on the 500 excess."""
        result = calculator.sss(Decimal("20500"))
        assert result.employee_share == Decimal("1025")
        assert result.employer_share == Decimal("2080")

        mpf = next(c for c in result.components if c.kind == ContributionKind.MPF)
        assert mpf.employee_share == Decimal("25")
        assert mpf.employer_share == Decimal("50")

    def test_bracket_boundaries_are_half_open(self, calculator):
        """20,249.99 is MSC 20,000; 20,250 is MSC 20,500."""
        assert calculator.sss(Decimal("20249.99")).employee_share == Decimal("1000")
        assert calculator.sss(Decimal("20250")).employee_share == Decimal("1025")

    def test_minimum_and_maximum(self, calculator):
        low = calculator.sss(Decimal("3000"))
        assert low.employee_share == Decimal("250")
        assert low.employer_share == Decimal("510")

        high = calculator.sss(Decimal("100000"))
        assert high.employee_share == Decimal("1750")
        assert high.employer_share == Decimal("3530")

    def test_negative_salary_rejected(self, calculator):
        with pytest.raises(BracketLookupError) as exc_info:
            calculator.sss(Decimal("-1"))
        assert exc_info.value.code == "BRACKET_LOOKUP_FAILURE"


class TestPhilHealth:
    """Test PhilHealth premium with floor and ceiling."""

    def test_floor(self, calculator):
        """Salaries below 10,000 pay the 500 minimum, split evenly."""
        result = calculator.philhealth(Decimal("5000"))
        assert result.employee_share == Decimal("250.00")
        assert result.employer_share == Decimal("250.00")

    def test_between_floor_and_ceiling(self, calculator):
        result = calculator.philhealth(Decimal("26000"))
        assert result.employee_share == Decimal("650.00")
        assert result.employer_share == Decimal("650.00")

    def test_ceiling(self, calculator):
        result = calculator.philhealth(Decimal("250000"))
        assert result.employee_share + result.employer_share == Decimal("5000.00")

    def test_shares_sum_to_total(self, calculator):
        """5% of 10,000.10 is 500.01; the employee half rounds up, the employer takes the rest."""
        result = calculator.philhealth(Decimal("10000.10"))
        assert result.employee_share == Decimal("250.01")
        assert result.employer_share == Decimal("250.00")


class TestPagIbig:
    """Test Pag-IBIG rate rows and caps."""

    def test_low_earner_row(self, calculator):
        result = calculator.pagibig(Decimal("1200"))
        assert result.employee_share == Decimal("12.00")
        assert result.employer_share == Decimal("24.00")

    def test_threshold_is_inclusive(self, calculator):
        """Exactly 1,500 still uses the 1% employee rate."""
        assert calculator.pagibig(Decimal("1500")).employee_share == Decimal("15.00")

    def test_standard_row(self, calculator):
        result = calculator.pagibig(Decimal("2000"))
        assert result.employee_share == Decimal("40.00")
        assert result.employer_share == Decimal("40.00")

    def test_capped(self, calculator):
        result = calculator.pagibig(Decimal("15000"))
        assert result.employee_share == Decimal("200.00")
        assert result.employer_share == Decimal("200.00")


class TestWithholdingTax:
    """Test graduated withholding tax."""

    def test_exempt_bracket(self, calculator):
        tax = calculator.withholding_tax(Decimal("10000"), PayFrequency.SEMI_MONTHLY)
        assert tax == Decimal("0.00")

    def test_semi_monthly(self, calculator):
        """937.50 + 20% over 16,667."""
        tax = calculator.withholding_tax(Decimal("20000"), PayFrequency.SEMI_MONTHLY)
        assert tax == Decimal("1604.10")

    def test_monthly(self, calculator):
        tax = calculator.withholding_tax(Decimal("30000"), PayFrequency.MONTHLY)
        assert tax == Decimal("1375.05")

    def test_weekly(self, calculator):
        tax = calculator.withholding_tax(Decimal("5808"), PayFrequency.WEEKLY)
        assert tax == Decimal("150.00")

    def test_annual_tax_due(self, calculator):
        assert calculator.annual_tax_due(Decimal("300000")) == Decimal("7500.00")
        assert calculator.annual_tax_due(Decimal("250000")) == Decimal("0.00")

    def test_negative_income_rejected(self, calculator):
        with pytest.raises(BracketLookupError):
            calculator.withholding_tax(Decimal("-0.01"), PayFrequency.SEMI_MONTHLY)


class TestEligibility:
    """Test regularization gating."""

    def _profile(self, **kwargs) -> EmployeeWageProfile:
        return EmployeeWageProfile("E1", WageType.MONTHLY, Decimal("26000"), **kwargs)

    def test_not_regularized(self):
        period = PayPeriodRange(date(2026, 3, 1), date(2026, 3, 15))
        assert StatutoryCalculator.is_eligible(self._profile(), period) is False

    def test_regularized_within_period(self):
        """Regularization on the last day of the period counts."""
        period = PayPeriodRange(date(2026, 3, 1), date(2026, 3, 15))
        profile = self._profile(regularization_date=date(2026, 3, 15))
        assert StatutoryCalculator.is_eligible(profile, period) is True

    def test_regularized_after_period(self):
        period = PayPeriodRange(date(2026, 3, 1), date(2026, 3, 15))
        profile = self._profile(regularization_date=date(2026, 3, 16))
        assert StatutoryCalculator.is_eligible(profile, period) is False

    def test_explicitly_ineligible(self):
        period = PayPeriodRange(date(2026, 3, 1), date(2026, 3, 15))
        profile = self._profile(regularization_date=date(2025, 1, 1), statutory_eligible=False)
        assert StatutoryCalculator.is_eligible(profile, period) is False


class TestTableValidation:
    """Test bracket contiguity checks."""

    def test_shipped_tables_are_valid(self):
        assert validate_statutory_tables(build_statutory_tables_2026()) == []

    def test_gap_detected(self):
        brackets = [
            TaxBracket(Decimal("0"), Decimal("100"), Decimal("0"), Decimal("0")),
            TaxBracket(Decimal("101"), None, Decimal("0"), Decimal("0.1")),
        ]
        errors = validate_brackets(brackets, "test")
        assert errors == ["test: gap between 100 and 101"]

    def test_bounded_top_bracket_detected(self):
        brackets = [TaxBracket(Decimal("0"), Decimal("100"), Decimal("0"), Decimal("0"))]
        assert validate_brackets(brackets, "test") == [
            "test: top bracket ends at 100; must be unbounded"
        ]

    def test_lookup_past_bounded_table_fails(self):
        brackets = [TaxBracket(Decimal("0"), Decimal("100"), Decimal("0"), Decimal("0"))]
        with pytest.raises(BracketLookupError):
            find_bracket(brackets, Decimal("100"), "test")

    def test_missing_tax_table_reported(self):
        tables = build_statutory_tables_2026()
        without_weekly = replace(
            tables,
            tax_tables=tuple(t for t in tables.tax_tables if t.basis != TaxBasis.WEEKLY),
        )
        assert "Tax: missing WEEKLY table" in validate_statutory_tables(without_weekly)

    def test_duplicate_de_minimis_kind_reported(self):
        tables = build_statutory_tables_2026()
        doubled = replace(
            tables,
            de_minimis=replace(
                tables.de_minimis,
                monthly_limits=tables.de_minimis.monthly_limits
                + ((AllowanceKind.RICE_SUBSIDY, Decimal("1500")),),
            ),
        )
        assert "De minimis DM-2026: duplicate allowance kind" in validate_statutory_tables(doubled)

    def test_negative_de_minimis_limit_reported(self):
        tables = build_statutory_tables_2026()
        negative = replace(
            tables,
            de_minimis=replace(
                tables.de_minimis,
                monthly_limits=((AllowanceKind.MEDICAL, Decimal("-1")),),
            ),
        )
        assert "De minimis DM-2026: negative limit" in validate_statutory_tables(negative)


class TestDeMinimis:
    """Test the shipped de minimis ceilings."""

    def test_monthly_ceilings(self):
        de_minimis = build_statutory_tables_2026().de_minimis
        assert de_minimis.limit_for(AllowanceKind.RICE_SUBSIDY) == Decimal("2000")
        assert de_minimis.limit_for(AllowanceKind.LAUNDRY) == Decimal("300")

    def test_kind_without_ceiling(self):
        de_minimis = build_statutory_tables_2026().de_minimis
        assert de_minimis.limit_for(AllowanceKind.TRANSPORTATION) is None
