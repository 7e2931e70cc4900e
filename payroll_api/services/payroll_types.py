from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List, Optional

ZERO = Decimal("0")


def to_money(x) -> Decimal:
    """NULL / blank / non-numeric money -> 0; negatives are clamped to 0."""
    if x is None or x == "":
        return ZERO
    try:
        d = Decimal(str(x))
    except (InvalidOperation, ValueError):
        return ZERO
    if not d.is_finite() or d < 0:
        return ZERO
    return d


def _coerce_money(obj, *names) -> None:
    for n in names:
        object.__setattr__(obj, n, to_money(getattr(obj, n)))


@dataclass(frozen=True)
class EmployeeMasterRecord:
    id: int
    nationality: Optional[str] = None
    hire_date: Optional[date] = None
    base_salary: Decimal = ZERO
    housing_allowance: Decimal = ZERO
    transportation_allowance: Decimal = ZERO
    other_allowances: Decimal = ZERO
    gosi_registration_date: Optional[date] = None
    gosi_type: Optional[str] = None
    is_payroll_excluded: bool = False
    code: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        # callers may hand in floats / ints / strings; the engine only does Decimal math
        _coerce_money(self, "base_salary", "housing_allowance", "transportation_allowance", "other_allowances")


@dataclass(frozen=True)
class AttendanceRecord:
    user_id: int
    work_date: date
    status: str
    late_minutes: int = 0


@dataclass(frozen=True)
class DeductionRecord:
    user_id: int
    deduction_date: date
    amount: Decimal = ZERO
    violation_type: Optional[str] = None

    def __post_init__(self):
        _coerce_money(self, "amount")


@dataclass(frozen=True)
class LoanInstallment:
    user_id: int
    due_date: date
    installment_amount: Decimal = ZERO
    status: str = "pending"

    def __post_init__(self):
        _coerce_money(self, "installment_amount")


@dataclass(frozen=True)
class Proration:
    work_ratio: Decimal
    is_partial_month: bool
    days_entitled: int


@dataclass(frozen=True)
class GosiResult:
    is_saudi: bool
    rate: Decimal
    base: Decimal
    deduction: Decimal
    employer_contribution: Decimal


@dataclass(frozen=True)
class PayrollLine:
    employee_id: int
    work_ratio: Decimal
    is_partial_month: bool
    days_entitled: int
    working_days: int
    base_salary: Decimal
    housing_allowance: Decimal
    transportation_allowance: Decimal
    other_allowances: Decimal
    full_gross_salary: Decimal
    gross_salary: Decimal
    is_saudi: bool
    gosi_rate: Decimal
    gosi_base: Decimal
    gosi_deduction: Decimal
    gosi_employer_contribution: Decimal
    attendance_deductions: Decimal
    loan_deduction: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    deduction_breakdown: Dict[str, Decimal] = field(default_factory=dict)
    employee_code: Optional[str] = None
    employee_name: Optional[str] = None


@dataclass(frozen=True)
class PayrollTotals:
    employee_count: int = 0
    base_salary: Decimal = ZERO
    housing_allowance: Decimal = ZERO
    transportation_allowance: Decimal = ZERO
    other_allowances: Decimal = ZERO
    gross_salary: Decimal = ZERO
    gosi_deduction: Decimal = ZERO
    gosi_employer_contribution: Decimal = ZERO
    attendance_deductions: Decimal = ZERO
    loan_deduction: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_salary: Decimal = ZERO


@dataclass(frozen=True)
class PayrollResult:
    period_start: date
    period_end: date
    lines: List[PayrollLine]
    totals: PayrollTotals
    loan_source_available: bool = True


def round_unit(x: Decimal) -> Decimal:
    """Nearest whole currency unit, halves away from zero."""
    return Decimal(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def round_cents(x: Decimal) -> Decimal:
    return Decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
