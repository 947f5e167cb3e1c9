"""Line item builder with idempotent hashing."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal

from attendance_payroll.calculators.types import (
    LINE_SORT_ORDER,
    LineCandidate,
    LineCategory,
    LineType,
)


class LineItemBuilder:
    """Builds payslip lines with deterministic hashing.

    Amount conventions:
    - every line amount is a non-negative magnitude
    - EARNING lines add to gross
    - DEDUCTION lines add to total deductions
    - EMPLOYER_CONTRIBUTION lines are liabilities and never touch net

    Rounding:
    - centavos (2 decimals), half-up, once per line at finalization
    - intermediate sums keep full Decimal precision
    """

    OUTPUT_PRECISION = Decimal("0.01")
    RATE_PRECISION = Decimal("0.000001")

    @staticmethod
    def round_to_centavos(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_rate(rate: Decimal) -> Decimal:
        """Round a per-minute rate for display on the line."""
        return rate.quantize(LineItemBuilder.RATE_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def compute_line_hash(line: LineCandidate) -> str:
        """Compute deterministic hash for a line item."""
        canonical = line.to_canonical_dict()
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def create_earning_line(
        category: LineCategory,
        amount: Decimal,
        description: str,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        multiplier: Decimal | None = None,
        taxable: bool = True,
    ) -> LineCandidate:
        """Create an earning line (positive amount)."""
        return LineCandidate(
            line_type=LineType.EARNING,
            category=category,
            amount=LineItemBuilder.round_to_centavos(abs(amount)),
            description=description,
            quantity=quantity,
            rate=LineItemBuilder.round_rate(rate) if rate is not None else None,
            multiplier=multiplier,
            sort_order=LINE_SORT_ORDER[category],
            taxable=taxable,
        )

    @staticmethod
    def create_deduction_line(
        category: LineCategory,
        amount: Decimal,
        description: str,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        multiplier: Decimal | None = None,
    ) -> LineCandidate:
        """Create a deduction line (positive amount, reduces net)."""
        return LineCandidate(
            line_type=LineType.DEDUCTION,
            category=category,
            amount=LineItemBuilder.round_to_centavos(abs(amount)),
            description=description,
            quantity=quantity,
            rate=LineItemBuilder.round_rate(rate) if rate is not None else None,
            multiplier=multiplier,
            sort_order=LINE_SORT_ORDER[category],
        )

    @staticmethod
    def create_employer_contribution_line(
        category: LineCategory,
        amount: Decimal,
        description: str,
    ) -> LineCandidate:
        """Create an employer contribution line (liability only)."""
        return LineCandidate(
            line_type=LineType.EMPLOYER_CONTRIBUTION,
            category=category,
            amount=LineItemBuilder.round_to_centavos(abs(amount)),
            description=description,
            sort_order=LINE_SORT_ORDER[category],
        )

    @staticmethod
    def calculate_gross_from_lines(lines: list[LineCandidate]) -> Decimal:
        """GROSS = Σ(EARNING)"""
        gross = Decimal("0")
        for line in lines:
            if line.line_type == LineType.EARNING:
                gross += line.amount
        return LineItemBuilder.round_to_centavos(gross)

    @staticmethod
    def calculate_deductions_from_lines(lines: list[LineCandidate]) -> Decimal:
        """DEDUCTIONS = Σ(DEDUCTION), statutory employee shares included."""
        total = Decimal("0")
        for line in lines:
            if line.line_type == LineType.DEDUCTION:
                total += line.amount
        return LineItemBuilder.round_to_centavos(total)

    @staticmethod
    def calculate_net_from_lines(lines: list[LineCandidate]) -> Decimal:
        """NET = GROSS - DEDUCTIONS; employer contributions are excluded."""
        return LineItemBuilder.calculate_gross_from_lines(
            lines
        ) - LineItemBuilder.calculate_deductions_from_lines(lines)

    @staticmethod
    def validate_line_amounts(lines: list[LineCandidate]) -> list[str]:
        """Validate that all line amounts are non-negative centavo values.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []
        for i, line in enumerate(lines):
            if line.amount < 0:
                errors.append(
                    f"Line {i} ({line.category.value}) has negative amount {line.amount}"
                )
            if line.amount != LineItemBuilder.round_to_centavos(line.amount):
                errors.append(
                    f"Line {i} ({line.category.value}) is not rounded to centavos: {line.amount}"
                )
        return errors

    @staticmethod
    def sort_lines(lines: list[LineCandidate]) -> list[LineCandidate]:
        """Stable payslip ordering: sort order, then description."""
        return sorted(lines, key=lambda line: (line.sort_order, line.description))

    @staticmethod
    def sum_by_type(lines: list[LineCandidate]) -> dict[LineType, Decimal]:
        """Sum line amounts by type."""
        totals: dict[LineType, Decimal] = {lt: Decimal("0") for lt in LineType}
        for line in lines:
            totals[line.line_type] += line.amount
        return totals
