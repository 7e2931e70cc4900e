"""
GOSI (social insurance) employee deduction.

The contribution rate is selected by the employee's GOSI *registration date*,
not by the pay period: employees registered on or after 2024-07-03 pay the
newer 10.25% rate, earlier registrations keep 9.75%. The tiers are data
(`GosiPolicy`) so a future rate change is a new tier row, not a code change.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from .payroll_types import (
    ZERO,
    EmployeeMasterRecord,
    GosiResult,
    Proration,
    round_cents,
    round_unit,
)

GOSI_WAGE_CAP = Decimal("45000")
RATE_CHANGE_CUTOFF = date(2024, 7, 3)
# registration date assumed when the master record has none (older rate applies)
DEFAULT_REGISTRATION_DATE = date(2024, 1, 1)

SAUDI_NATIONALITIES = frozenset({
    "saudi", "sa", "ksa", "saudi arabia", "saudi arabian",
    "سعودي", "سعودية", "السعودية",
})


@dataclass(frozen=True)
class GosiTier:
    registered_from: date
    employee_rate: Decimal
    employer_rate: Decimal = ZERO
    wage_cap: Decimal = GOSI_WAGE_CAP


@dataclass(frozen=True)
class GosiPolicy:
    tiers: Tuple[GosiTier, ...]
    default_registration_date: date = DEFAULT_REGISTRATION_DATE

    @classmethod
    def from_tiers(cls, tiers: Iterable[GosiTier], **kw) -> "GosiPolicy":
        ordered = tuple(sorted(tiers, key=lambda t: t.registered_from))
        if not ordered:
            raise ValueError("GosiPolicy needs at least one tier")
        return cls(tiers=ordered, **kw)

    def tier_for(self, registration_date: Optional[date]) -> GosiTier:
        """Latest tier whose `registered_from` is on or before the registration date."""
        reg = registration_date or self.default_registration_date
        chosen = self.tiers[0]
        for tier in self.tiers:
            if tier.registered_from <= reg:
                chosen = tier
        return chosen


DEFAULT_GOSI_POLICY = GosiPolicy.from_tiers([
    GosiTier(date.min, Decimal("0.0975"), Decimal("0.12")),
    GosiTier(RATE_CHANGE_CUTOFF, Decimal("0.1025"), Decimal("0.12")),
])


def is_saudi(employee: EmployeeMasterRecord) -> bool:
    nat = (employee.nationality or "").strip().lower()
    if nat in SAUDI_NATIONALITIES:
        return True
    return (employee.gosi_type or "").strip().lower() == "saudi"


def _actual(amount: Decimal, proration: Proration) -> Decimal:
    if proration.is_partial_month:
        return round_unit(amount * proration.work_ratio)
    return amount


def compute_gosi(
    employee: EmployeeMasterRecord,
    proration: Proration,
    policy: GosiPolicy = DEFAULT_GOSI_POLICY,
) -> GosiResult:
    if not is_saudi(employee):
        return GosiResult(is_saudi=False, rate=ZERO, base=ZERO, deduction=ZERO, employer_contribution=ZERO)

    tier = policy.tier_for(employee.gosi_registration_date)
    base = min(
        _actual(employee.base_salary, proration) + _actual(employee.housing_allowance, proration),
        tier.wage_cap,
    )
    return GosiResult(
        is_saudi=True,
        rate=tier.employee_rate,
        base=base,
        deduction=round_cents(base * tier.employee_rate),
        employer_contribution=round_cents(base * tier.employer_rate),
    )
