"""Pay-rate multiplier lookup keyed by day type, OT, ND, and rest day."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from attendance_payroll.calculators.errors import (
    ConfigurationIntegrityError,
    UnresolvedMultiplierError,
)
from attendance_payroll.calculators.types import DayType

MultiplierKey = tuple[DayType, bool, bool, bool]


@dataclass(frozen=True)
class MultiplierRule:
    """One (day type, OT, ND, rest day) combination and its multiplier."""

    code: str
    day_type: DayType
    is_overtime: bool
    is_night_diff: bool
    is_rest_day: bool
    multiplier: Decimal
    priority: int

    @property
    def key(self) -> MultiplierKey:
        return (self.day_type, self.is_overtime, self.is_night_diff, self.is_rest_day)

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "day_type": self.day_type.value,
            "is_overtime": self.is_overtime,
            "is_night_diff": self.is_night_diff,
            "is_rest_day": self.is_rest_day,
            "multiplier": str(self.multiplier),
            "priority": self.priority,
        }


def _rule(code: str, day_type: DayType, ot: bool, nd: bool, rd: bool, mult: str, priority: int) -> MultiplierRule:
    return MultiplierRule(code, day_type, ot, nd, rd, Decimal(mult), priority)


# Labor Code premium schedule
DEFAULT_MULTIPLIER_RULES: tuple[MultiplierRule, ...] = (
    _rule("REG_BASIC", DayType.WORKDAY, False, False, False, "1.0", 1),
    _rule("REG_OT", DayType.WORKDAY, True, False, False, "1.25", 2),
    _rule("REG_ND", DayType.WORKDAY, False, True, False, "1.1", 3),
    _rule("REG_OT_ND", DayType.WORKDAY, True, True, False, "1.375", 4),
    _rule("RD_BASIC", DayType.REST_DAY, False, False, True, "1.3", 10),
    _rule("RD_OT", DayType.REST_DAY, True, False, True, "1.69", 11),
    _rule("RD_ND", DayType.REST_DAY, False, True, True, "1.43", 12),
    _rule("RD_OT_ND", DayType.REST_DAY, True, True, True, "1.859", 13),
    _rule("RH_BASIC", DayType.REGULAR_HOLIDAY, False, False, False, "2.0", 20),
    _rule("RH_OT", DayType.REGULAR_HOLIDAY, True, False, False, "2.6", 21),
    _rule("RH_ND", DayType.REGULAR_HOLIDAY, False, True, False, "2.2", 22),
    _rule("RH_OT_ND", DayType.REGULAR_HOLIDAY, True, True, False, "2.86", 23),
    _rule("RH_RD_BASIC", DayType.REGULAR_HOLIDAY, False, False, True, "2.6", 30),
    _rule("RH_RD_OT", DayType.REGULAR_HOLIDAY, True, False, True, "3.38", 31),
    _rule("RH_RD_ND", DayType.REGULAR_HOLIDAY, False, True, True, "2.86", 32),
    _rule("RH_RD_OT_ND", DayType.REGULAR_HOLIDAY, True, True, True, "3.718", 33),
    _rule("SH_BASIC", DayType.SPECIAL_HOLIDAY, False, False, False, "1.3", 40),
    _rule("SH_OT", DayType.SPECIAL_HOLIDAY, True, False, False, "1.69", 41),
    _rule("SH_ND", DayType.SPECIAL_HOLIDAY, False, True, False, "1.43", 42),
    _rule("SH_OT_ND", DayType.SPECIAL_HOLIDAY, True, True, False, "1.859", 43),
    _rule("SH_RD_BASIC", DayType.SPECIAL_HOLIDAY, False, False, True, "1.5", 50),
    _rule("SH_RD_OT", DayType.SPECIAL_HOLIDAY, True, False, True, "1.95", 51),
    _rule("SH_RD_ND", DayType.SPECIAL_HOLIDAY, False, True, True, "1.65", 52),
    _rule("SH_RD_OT_ND", DayType.SPECIAL_HOLIDAY, True, True, True, "2.145", 53),
)


def reachable_keys() -> list[MultiplierKey]:
    """Every key the classifier can produce.

    WORKDAY never carries the rest-day flag and REST_DAY always does;
    holidays appear with and without it.
    """
    keys: list[MultiplierKey] = []
    for day_type, rest_flags in (
        (DayType.WORKDAY, (False,)),
        (DayType.REST_DAY, (True,)),
        (DayType.REGULAR_HOLIDAY, (False, True)),
        (DayType.SPECIAL_HOLIDAY, (False, True)),
    ):
        for rd in rest_flags:
            for ot in (False, True):
                for nd in (False, True):
                    keys.append((day_type, ot, nd, rd))
    return keys


def validate_multiplier_rules(rules: tuple[MultiplierRule, ...] | list[MultiplierRule]) -> list[str]:
    """Check uniqueness and totality of a rule set.

    Returns list of error messages (empty if valid).
    """
    errors: list[str] = []
    seen: dict[MultiplierKey, str] = {}
    for rule in rules:
        if rule.key in seen:
            errors.append(f"Rules {seen[rule.key]} and {rule.code} share key {_format_key(rule.key)}")
        else:
            seen[rule.key] = rule.code
        if rule.multiplier <= 0:
            errors.append(f"Rule {rule.code} has non-positive multiplier {rule.multiplier}")

    for key in reachable_keys():
        if key not in seen:
            errors.append(f"No rule covers {_format_key(key)}")
    return errors


class MultiplierTable:
    """Immutable, validated multiplier lookup.

    Construction fails with ConfigurationIntegrityError unless every
    reachable key maps to exactly one rule.
    """

    def __init__(self, rules: tuple[MultiplierRule, ...] | list[MultiplierRule]):
        errors = validate_multiplier_rules(rules)
        if errors:
            raise ConfigurationIntegrityError("Invalid multiplier rules: " + "; ".join(errors))
        self.rules: tuple[MultiplierRule, ...] = tuple(sorted(rules, key=lambda r: r.priority))
        self._by_key: dict[MultiplierKey, MultiplierRule] = {r.key: r for r in self.rules}

    def rule_for(
        self,
        day_type: DayType,
        is_overtime: bool,
        is_night_diff: bool,
        is_rest_day: bool,
        employee_id: str | None = None,
        work_date: date | None = None,
    ) -> MultiplierRule:
        rule = self._by_key.get((day_type, is_overtime, is_night_diff, is_rest_day))
        if rule is None:
            raise UnresolvedMultiplierError(
                day_type.value, is_overtime, is_night_diff, is_rest_day,
                employee_id=employee_id, work_date=work_date,
            )
        return rule

    def resolve(
        self,
        day_type: DayType,
        is_overtime: bool,
        is_night_diff: bool,
        is_rest_day: bool,
        employee_id: str | None = None,
        work_date: date | None = None,
    ) -> Decimal:
        """Exact-key multiplier lookup; a miss is a hard error."""
        return self.rule_for(
            day_type, is_overtime, is_night_diff, is_rest_day, employee_id, work_date
        ).multiplier

    def to_canonical_list(self) -> list[dict[str, Any]]:
        return [rule.to_canonical_dict() for rule in self.rules]


def _format_key(key: MultiplierKey) -> str:
    day_type, ot, nd, rd = key
    return f"({day_type.value}, ot={ot}, nd={nd}, rest_day={rd})"
