# payroll_api/services/payroll_engine.py
"""
Monthly payroll engine.

Pure functions only: callers hand in the employee master, attendance rows,
the attendance-deduction ledger and loan installments for the month, and get
back one PayrollLine per employee plus report totals. Nothing here touches
the database or Flask; fetching (and the soft-fail policy for loans) lives in
`payroll_runner`.

Money is Decimal throughout. Gross pay is rounded to whole units (half-up),
GOSI to 2 decimals; net is not rounded again.
"""
from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .gosi import DEFAULT_GOSI_POLICY, GosiPolicy, compute_gosi
from .payroll_types import (
    ZERO,
    AttendanceRecord,
    DeductionRecord,
    EmployeeMasterRecord,
    LoanInstallment,
    PayrollLine,
    PayrollResult,
    PayrollTotals,
    Proration,
    round_cents,
    round_unit,
)

log = logging.getLogger(__name__)

PAY_DAYS_PER_MONTH = 30
WORKING_STATUSES = frozenset({"present", "late"})
PENDING_LOAN_STATUS = "pending"

ONE = Decimal("1")


# ---------- period ----------

def resolve_period(reference: date) -> Tuple[date, date]:
    """First and last calendar day (inclusive) of the month containing `reference`."""
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    return date(reference.year, reference.month, 1), date(reference.year, reference.month, last_day)


def parse_month(raw: str) -> date:
    """'YYYY-MM' or 'YYYY-MM-DD' -> first day of that month. ValueError otherwise."""
    s = (raw or "").strip()
    for fmt in ("%Y-%m", "%Y-%m-%d"):
        try:
            d = datetime.strptime(s, fmt).date()
            return date(d.year, d.month, 1)
        except ValueError:
            continue
    raise ValueError(f"month must be YYYY-MM, got {raw!r}")


def _in_period(d: Optional[date], start: date, end: date) -> bool:
    return d is not None and start <= d <= end


# ---------- proration ----------

def compute_proration(hire_date: Optional[date], month_start: date, month_end: date) -> Proration:
    """
    Fraction of a 30 pay-day month the employee is paid for.

    Day positions come from the real calendar (a hire on the 16th of a
    30-day month is entitled to 15 days), the divisor is always 30.
    """
    if hire_date is None or hire_date < month_start:
        return Proration(work_ratio=ONE, is_partial_month=False, days_entitled=PAY_DAYS_PER_MONTH)

    if hire_date > month_end:
        # not active yet
        return Proration(work_ratio=ZERO, is_partial_month=True, days_entitled=0)

    days = month_end.day - hire_date.day + 1
    days = max(0, min(days, PAY_DAYS_PER_MONTH))
    ratio = Decimal(days) / Decimal(PAY_DAYS_PER_MONTH)
    ratio = max(ZERO, min(ratio, ONE))
    return Proration(work_ratio=ratio, is_partial_month=True, days_entitled=days)


# ---------- aggregators ----------

def count_working_days(records: Iterable[AttendanceRecord], start: date, end: date,
                       employee_id: Optional[int] = None) -> int:
    n = 0
    for r in records:
        if employee_id is not None and r.user_id != employee_id:
            continue
        if _in_period(r.work_date, start, end) and (r.status or "").lower() in WORKING_STATUSES:
            n += 1
    return n


def sum_attendance_deductions(records: Iterable[DeductionRecord], start: date, end: date,
                              employee_id: Optional[int] = None) -> Decimal:
    total = ZERO
    for r in records:
        if employee_id is not None and r.user_id != employee_id:
            continue
        if _in_period(r.deduction_date, start, end):
            total += r.amount or ZERO
    return total


def deduction_breakdown(records: Iterable[DeductionRecord], start: date, end: date,
                        employee_id: Optional[int] = None) -> Dict[str, Decimal]:
    """Attendance deductions in the period grouped by violation type."""
    out: Dict[str, Decimal] = {}
    for r in records:
        if employee_id is not None and r.user_id != employee_id:
            continue
        if not _in_period(r.deduction_date, start, end):
            continue
        key = r.violation_type or "other"
        out[key] = out.get(key, ZERO) + (r.amount or ZERO)
    return {k: round_cents(v) for k, v in sorted(out.items())}


def sum_loan_installments(installments: Iterable[LoanInstallment], start: date, end: date,
                          employee_id: Optional[int] = None) -> Decimal:
    total = ZERO
    for x in installments:
        if employee_id is not None and x.user_id != employee_id:
            continue
        if (x.status or "").lower() != PENDING_LOAN_STATUS:
            continue
        if _in_period(x.due_date, start, end):
            total += x.installment_amount or ZERO
    return total


# ---------- line + totals ----------

def build_payroll_line(
    employee: EmployeeMasterRecord,
    month_start: date,
    month_end: date,
    attendance: Sequence[AttendanceRecord] = (),
    deductions: Sequence[DeductionRecord] = (),
    installments: Sequence[LoanInstallment] = (),
    policy: GosiPolicy = DEFAULT_GOSI_POLICY,
) -> PayrollLine:
    """Compose one employee's line. Record sequences may hold other employees' rows; they are ignored."""
    proration = compute_proration(employee.hire_date, month_start, month_end)
    gosi = compute_gosi(employee, proration, policy)

    full_gross = (
        employee.base_salary
        + employee.housing_allowance
        + employee.transportation_allowance
        + employee.other_allowances
    )
    gross = round_unit(full_gross * proration.work_ratio) if proration.is_partial_month else full_gross

    attendance_total = sum_attendance_deductions(deductions, month_start, month_end, employee.id)
    loan_total = sum_loan_installments(installments, month_start, month_end, employee.id)
    total_deductions = gosi.deduction + attendance_total + loan_total

    return PayrollLine(
        employee_id=employee.id,
        work_ratio=proration.work_ratio,
        is_partial_month=proration.is_partial_month,
        days_entitled=proration.days_entitled,
        working_days=count_working_days(attendance, month_start, month_end, employee.id),
        base_salary=employee.base_salary,
        housing_allowance=employee.housing_allowance,
        transportation_allowance=employee.transportation_allowance,
        other_allowances=employee.other_allowances,
        full_gross_salary=full_gross,
        gross_salary=gross,
        is_saudi=gosi.is_saudi,
        gosi_rate=gosi.rate,
        gosi_base=gosi.base,
        gosi_deduction=gosi.deduction,
        gosi_employer_contribution=gosi.employer_contribution,
        attendance_deductions=attendance_total,
        loan_deduction=loan_total,
        total_deductions=total_deductions,
        net_salary=gross - total_deductions,
        deduction_breakdown=deduction_breakdown(deductions, month_start, month_end, employee.id),
        employee_code=employee.code,
        employee_name=employee.name,
    )


_TOTAL_FIELDS = (
    "base_salary", "housing_allowance", "transportation_allowance", "other_allowances",
    "gross_salary", "gosi_deduction", "gosi_employer_contribution",
    "attendance_deductions", "loan_deduction", "total_deductions", "net_salary",
)


def aggregate_totals(lines: Iterable[PayrollLine]) -> PayrollTotals:
    sums = {f: ZERO for f in _TOTAL_FIELDS}
    count = 0
    for line in lines:
        count += 1
        for f in _TOTAL_FIELDS:
            sums[f] += getattr(line, f)
    return PayrollTotals(employee_count=count, **sums)


def _group_by_user(rows) -> Dict[int, list]:
    out: Dict[int, list] = defaultdict(list)
    for r in rows:
        out[r.user_id].append(r)
    return out


def compute_payroll(
    employees: Iterable[EmployeeMasterRecord],
    attendance: Iterable[AttendanceRecord],
    deductions: Iterable[DeductionRecord],
    installments: Iterable[LoanInstallment],
    reference_month: date,
    policy: GosiPolicy = DEFAULT_GOSI_POLICY,
    loan_source_available: bool = True,
) -> PayrollResult:
    """
    Pure payroll run for the month containing `reference_month`.

    Employees flagged `is_payroll_excluded` are skipped. Lines keep the input
    order of `employees`; identical inputs always give identical output.
    """
    start, end = resolve_period(reference_month)
    att_by_user = _group_by_user(attendance)
    ded_by_user = _group_by_user(deductions)
    loan_by_user = _group_by_user(installments)

    lines: List[PayrollLine] = []
    skipped = 0
    for emp in employees:
        if emp.is_payroll_excluded:
            skipped += 1
            continue
        lines.append(build_payroll_line(
            emp, start, end,
            attendance=att_by_user.get(emp.id, ()),
            deductions=ded_by_user.get(emp.id, ()),
            installments=loan_by_user.get(emp.id, ()),
            policy=policy,
        ))

    log.debug("payroll %s..%s: %d lines, %d excluded", start, end, len(lines), skipped)
    return PayrollResult(
        period_start=start,
        period_end=end,
        lines=lines,
        totals=aggregate_totals(lines),
        loan_source_available=loan_source_available,
    )
