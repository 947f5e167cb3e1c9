"""Effective-dated rule bundles: multiplier rules plus statutory tables."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import date

from attendance_payroll.calculators.multipliers import (
    DEFAULT_MULTIPLIER_RULES,
    MultiplierRule,
    MultiplierTable,
    validate_multiplier_rules,
)
from attendance_payroll.calculators.statutory import StatutoryTableSet, validate_statutory_tables
from attendance_payroll.calculators.statutory_tables import build_statutory_tables_2026

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ruleset:
    """One immutable version of the computation configuration.

    Runs pick a ruleset by effective date and pass it explicitly, so two
    runs on different versions can compute side by side.
    """

    version: str
    effective_date: date
    multiplier_rules: tuple[MultiplierRule, ...]
    statutory_tables: StatutoryTableSet
    fingerprint: str = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fingerprint", self._compute_fingerprint())

    def multiplier_table(self) -> MultiplierTable:
        return MultiplierTable(self.multiplier_rules)

    def _compute_fingerprint(self) -> str:
        data = {
            "version": self.version,
            "effective_date": self.effective_date.isoformat(),
            "multipliers": [
                rule.to_canonical_dict()
                for rule in sorted(self.multiplier_rules, key=lambda r: r.code)
            ],
            "statutory": repr(self.statutory_tables),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def validate_ruleset(ruleset: Ruleset) -> list[str]:
    """Self-check a ruleset before any run uses it.

    Returns list of error messages (empty if valid).
    """
    errors = [f"multipliers: {e}" for e in validate_multiplier_rules(ruleset.multiplier_rules)]
    errors.extend(f"statutory: {e}" for e in validate_statutory_tables(ruleset.statutory_tables))
    return errors


class RulesetNotFoundError(Exception):
    """Raised when no ruleset is in effect for a date or version."""

    def __init__(self, as_of_date: date | None = None, version: str | None = None):
        self.as_of_date = as_of_date
        self.version = version
        if version is not None:
            msg = f"No ruleset with version '{version}'"
        else:
            msg = f"No ruleset in effect on {as_of_date}"
        super().__init__(msg)


class RulesetCatalog:
    """Ordered collection of published rulesets."""

    def __init__(self, rulesets: list[Ruleset] | tuple[Ruleset, ...]):
        self._rulesets = tuple(sorted(rulesets, key=lambda r: r.effective_date))
        versions = [r.version for r in self._rulesets]
        if len(set(versions)) != len(versions):
            raise ValueError(f"Duplicate ruleset versions: {versions}")

    @property
    def rulesets(self) -> tuple[Ruleset, ...]:
        return self._rulesets

    def effective_on(self, as_of_date: date) -> Ruleset:
        """Latest ruleset whose effective date is on or before as_of_date."""
        candidates = [r for r in self._rulesets if r.effective_date <= as_of_date]
        if not candidates:
            raise RulesetNotFoundError(as_of_date=as_of_date)
        return candidates[-1]

    def get(self, version: str) -> Ruleset:
        for ruleset in self._rulesets:
            if ruleset.version == version:
                return ruleset
        raise RulesetNotFoundError(version=version)

    def self_check(self) -> dict[str, list[str]]:
        """Validate every ruleset, logging any problems."""
        problems: dict[str, list[str]] = {}
        for ruleset in self._rulesets:
            errors = validate_ruleset(ruleset)
            if errors:
                problems[ruleset.version] = errors
                for error in errors:
                    logger.error("Ruleset %s failed self-check: %s", ruleset.version, error)
        return problems


def build_default_ruleset() -> Ruleset:
    return Ruleset(
        version="PH-2026.1",
        effective_date=date(2026, 1, 1),
        multiplier_rules=DEFAULT_MULTIPLIER_RULES,
        statutory_tables=build_statutory_tables_2026(),
    )


def build_default_catalog() -> RulesetCatalog:
    return RulesetCatalog([build_default_ruleset()])
