"""Attendance-to-payroll calculation engine."""

from attendance_payroll.calculators.engine import (
    EmployeePayrollInput,
    PayrollEngine,
    RunComputationResult,
    compute_payslip,
)
from attendance_payroll.calculators.line_builder import LineItemBuilder
from attendance_payroll.calculators.multipliers import MultiplierTable
from attendance_payroll.calculators.rulesets import Ruleset, RulesetCatalog
from attendance_payroll.calculators.statutory import StatutoryCalculator

__all__ = [
    "EmployeePayrollInput",
    "PayrollEngine",
    "RunComputationResult",
    "compute_payslip",
    "LineItemBuilder",
    "MultiplierTable",
    "Ruleset",
    "RulesetCatalog",
    "StatutoryCalculator",
]
