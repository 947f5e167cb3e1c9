"""Tests for line item builder."""

from decimal import Decimal

from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.types import LineCandidate, LineCategory, LineType


def line(line_type: LineType, category: LineCategory, amount: str) -> LineCandidate:
    return LineCandidate(line_type=line_type, category=category, amount=Decimal(amount))


class TestLineItemBuilder:
    """Test line item builder functionality."""

    def test_round_to_centavos(self):
        """Test half-up rounding to 2 decimal places."""
        assert LineItemBuilder.round_to_centavos(Decimal("10.125")) == Decimal("10.13")
        assert LineItemBuilder.round_to_centavos(Decimal("10.124")) == Decimal("10.12")
        assert LineItemBuilder.round_to_centavos(Decimal("10.135")) == Decimal("10.14")
        assert LineItemBuilder.round_to_centavos(Decimal("0.005")) == Decimal("0.01")

    def test_create_earning_line(self):
        """Earning lines are rounded once and carry their display order."""
        rate = Decimal("1000") / Decimal("480")
        created = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY,
            rate * 450,
            "Basic pay",
            quantity=Decimal("450"),
            rate=rate,
            multiplier=Decimal("1.0"),
        )

        assert created.line_type == LineType.EARNING
        assert created.amount == Decimal("937.50")
        assert created.rate == Decimal("2.083333")
        assert created.sort_order == 100
        assert created.taxable is True

    def test_create_deduction_line_is_positive_magnitude(self):
        created = LineItemBuilder.create_deduction_line(
            LineCategory.LATE_UT_DEDUCTION, Decimal("-62.499"), "Late"
        )
        assert created.line_type == LineType.DEDUCTION
        assert created.amount == Decimal("62.50")
        assert created.taxable is False

    def test_create_employer_contribution_line(self):
        created = LineItemBuilder.create_employer_contribution_line(
            LineCategory.SSS_ER, Decimal("1315"), "SSS (employer)"
        )
        assert created.line_type == LineType.EMPLOYER_CONTRIBUTION
        assert created.amount == Decimal("1315.00")
        assert created.sort_order == 2100

    def test_totals_exclude_employer_contributions(self):
        """Net is gross less deductions; employer shares never touch it."""
        lines = [
            line(LineType.EARNING, LineCategory.BASIC_PAY, "10000.00"),
            line(LineType.EARNING, LineCategory.ALLOWANCE, "500.00"),
            line(LineType.DEDUCTION, LineCategory.SSS_EE, "650.00"),
            line(LineType.DEDUCTION, LineCategory.PHILHEALTH_EE, "325.00"),
            line(LineType.EMPLOYER_CONTRIBUTION, LineCategory.SSS_ER, "1315.00"),
        ]

        assert LineItemBuilder.calculate_gross_from_lines(lines) == Decimal("10500.00")
        assert LineItemBuilder.calculate_deductions_from_lines(lines) == Decimal("975.00")
        assert LineItemBuilder.calculate_net_from_lines(lines) == Decimal("9525.00")

    def test_net_can_be_negative(self):
        lines = [
            line(LineType.EARNING, LineCategory.BASIC_PAY, "100.00"),
            line(LineType.DEDUCTION, LineCategory.CASH_ADVANCE_DEDUCTION, "300.00"),
        ]
        assert LineItemBuilder.calculate_net_from_lines(lines) == Decimal("-200.00")

    def test_validate_line_amounts(self):
        valid = [line(LineType.EARNING, LineCategory.BASIC_PAY, "1000.00")]
        assert LineItemBuilder.validate_line_amounts(valid) == []

        invalid = [
            line(LineType.EARNING, LineCategory.BASIC_PAY, "-1.00"),
            line(LineType.DEDUCTION, LineCategory.LATE_UT_DEDUCTION, "62.499"),
        ]
        errors = LineItemBuilder.validate_line_amounts(invalid)
        assert len(errors) == 2
        assert "negative amount" in errors[0]
        assert "not rounded to centavos" in errors[1]

    def test_compute_line_hash_deterministic(self):
        """Identical lines hash identically."""
        first = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY, Decimal("1000"), "Basic pay", quantity=Decimal("480")
        )
        second = LineItemBuilder.create_earning_line(
            LineCategory.BASIC_PAY, Decimal("1000"), "Basic pay", quantity=Decimal("480")
        )

        assert LineItemBuilder.compute_line_hash(first) == LineItemBuilder.compute_line_hash(
            second
        )
        assert len(LineItemBuilder.compute_line_hash(first)) == 32

    def test_compute_line_hash_different_for_different_data(self):
        first = line(LineType.EARNING, LineCategory.BASIC_PAY, "1000.00")
        second = line(LineType.EARNING, LineCategory.BASIC_PAY, "1001.00")
        assert LineItemBuilder.compute_line_hash(first) != LineItemBuilder.compute_line_hash(
            second
        )

    def test_sort_lines(self):
        """Lines sort by display order, then description."""
        lines = [
            LineItemBuilder.create_deduction_line(LineCategory.SSS_EE, Decimal("1"), "SSS"),
            LineItemBuilder.create_earning_line(LineCategory.INCENTIVE, Decimal("1"), "B"),
            LineItemBuilder.create_earning_line(LineCategory.BASIC_PAY, Decimal("1"), "Basic"),
            LineItemBuilder.create_earning_line(LineCategory.INCENTIVE, Decimal("1"), "A"),
        ]

        ordered = LineItemBuilder.sort_lines(lines)

        assert [(x.category, x.description) for x in ordered] == [
            (LineCategory.BASIC_PAY, "Basic"),
            (LineCategory.INCENTIVE, "A"),
            (LineCategory.INCENTIVE, "B"),
            (LineCategory.SSS_EE, "SSS"),
        ]

    def test_sum_by_type(self):
        lines = [
            line(LineType.EARNING, LineCategory.BASIC_PAY, "800.00"),
            line(LineType.EARNING, LineCategory.HOLIDAY_PAY, "200.00"),
            line(LineType.DEDUCTION, LineCategory.SSS_EE, "50.00"),
            line(LineType.DEDUCTION, LineCategory.PAGIBIG_EE, "30.00"),
        ]

        totals = LineItemBuilder.sum_by_type(lines)

        assert totals[LineType.EARNING] == Decimal("1000.00")
        assert totals[LineType.DEDUCTION] == Decimal("80.00")
        assert totals[LineType.EMPLOYER_CONTRIBUTION] == Decimal("0")
