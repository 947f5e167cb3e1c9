"""Recurring allowance lines with de minimis tax exemption."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from attendance_payroll.calculators.errors import PayrollComputationError
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.statutory import DeMinimisTable
from attendance_payroll.calculators.types import (
    Allowance,
    LineCandidate,
    LineCategory,
    PayFrequency,
)

ZERO = Decimal("0")


def allowance_lines(
    allowances: Sequence[Allowance],
    de_minimis: DeMinimisTable,
    pay_frequency: PayFrequency,
) -> list[LineCandidate]:
    """Build the period's allowance lines.

    Each allowance pays its monthly amount divided by the periods per month.
    The part within the de minimis ceiling is a non-taxable line; anything
    above the ceiling, and every allowance kind without one, is taxable.
    """
    periods = pay_frequency.periods_per_month
    lines: list[LineCandidate] = []

    for allowance in allowances:
        if allowance.monthly_amount < 0:
            raise PayrollComputationError(
                f"Allowance {allowance.label} has a negative amount {allowance.monthly_amount}"
            )
        amount = LineItemBuilder.round_to_centavos(allowance.monthly_amount / periods)
        if amount == ZERO:
            continue

        limit = de_minimis.limit_for(allowance.kind)
        exempt = ZERO
        if limit is not None:
            exempt = min(amount, LineItemBuilder.round_to_centavos(limit / periods))

        if exempt:
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.ALLOWANCE, exempt, allowance.label, taxable=False
                )
            )
        if amount > exempt:
            label = f"{allowance.label} (taxable excess)" if exempt else allowance.label
            lines.append(
                LineItemBuilder.create_earning_line(
                    LineCategory.ALLOWANCE, amount - exempt, label, taxable=True
                )
            )

    return lines
