# payroll_api/services/deduction_rules.py
"""
Attendance-violation deductions.

These rules produce the rows of the `attendance_deductions` ledger that the
payroll run later sums. The deduction base is base salary + housing +
transportation; a day is 1/30 of it, an hour 1/8 of a day.

    late            (base / 30 / 8 / 60) * max(0, late_minutes - grace)
    absent          base / 30
    late_checkout   (base / 30 / 8) * 4      (no checkout = 4 hours)

Every amount is rounded to 2 decimals; a zero base deducts nothing.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from payroll_api.extensions import db
from payroll_api.models.payroll.deduction import AttendanceDeduction

from .payroll_engine import deduction_breakdown, resolve_period, sum_attendance_deductions
from .payroll_types import ZERO, DeductionRecord, EmployeeMasterRecord, round_cents, to_money

log = logging.getLogger(__name__)

DEFAULT_GRACE_MINUTES = 20
MISSED_CHECKOUT_HOURS = 4
VIOLATION_TYPES = ("late", "absent", "late_checkout")

_DAYS = Decimal(30)
_HOURS = Decimal(8)
_MINUTES = Decimal(60)


def deduction_base(emp: EmployeeMasterRecord) -> Decimal:
    return emp.base_salary + emp.housing_allowance + emp.transportation_allowance


def late_deduction(late_minutes: int, emp: EmployeeMasterRecord, grace_minutes: int = DEFAULT_GRACE_MINUTES) -> Decimal:
    base = deduction_base(emp)
    if not base or late_minutes <= 0:
        return ZERO
    minutes = max(0, late_minutes - grace_minutes)
    if minutes <= 0:
        return ZERO
    return round_cents(base / _DAYS / _HOURS / _MINUTES * minutes)


def absence_deduction(emp: EmployeeMasterRecord) -> Decimal:
    base = deduction_base(emp)
    if not base:
        return ZERO
    return round_cents(base / _DAYS)


def missed_checkout_deduction(emp: EmployeeMasterRecord) -> Decimal:
    base = deduction_base(emp)
    if not base:
        return ZERO
    return round_cents(base / _DAYS / _HOURS * MISSED_CHECKOUT_HOURS)


def amount_for(violation_type: str, emp: EmployeeMasterRecord, late_minutes: int = 0,
               grace_minutes: int = DEFAULT_GRACE_MINUTES) -> Decimal:
    if violation_type == "late":
        return late_deduction(late_minutes, emp, grace_minutes)
    if violation_type == "absent":
        return absence_deduction(emp)
    if violation_type == "late_checkout":
        return missed_checkout_deduction(emp)
    raise ValueError(f"unknown violation_type {violation_type!r} (allowed: {', '.join(VIOLATION_TYPES)})")


def record_deduction(
    emp: EmployeeMasterRecord,
    deduction_date: date,
    violation_type: str,
    late_minutes: int = 0,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
    notes: Optional[str] = None,
    attendance_record_id: Optional[int] = None,
) -> AttendanceDeduction:
    """
    Idempotently write one violation deduction.

    Keyed on (user_id, deduction_date, violation_type): an existing row is
    updated in place, so re-processing a day never double-charges.
    """
    amount = amount_for(violation_type, emp, late_minutes, grace_minutes)

    row = (AttendanceDeduction.query
           .filter_by(user_id=emp.id, deduction_date=deduction_date, violation_type=violation_type)
           .first())
    if row is None:
        row = AttendanceDeduction(user_id=emp.id, deduction_date=deduction_date, violation_type=violation_type)
        db.session.add(row)

    row.deduction_type = violation_type
    row.amount = amount
    row.minutes_late = late_minutes if violation_type == "late" else None
    row.notes = notes
    row.attendance_record_id = attendance_record_id
    db.session.commit()

    log.info("deduction %s for employee %s on %s: %s", violation_type, emp.id, deduction_date, amount)
    return row


def monthly_deduction_summary(employee_id: int, reference: date) -> Dict[str, Any]:
    """Total and per-violation breakdown of an employee's deductions for the month."""
    start, end = resolve_period(reference)
    rows = (AttendanceDeduction.query
            .filter(AttendanceDeduction.user_id == employee_id)
            .filter(AttendanceDeduction.deduction_date >= start,
                    AttendanceDeduction.deduction_date <= end)
            .all())
    records = [DeductionRecord(user_id=r.user_id, deduction_date=r.deduction_date,
                               amount=to_money(r.amount), violation_type=r.violation_type)
               for r in rows]
    return {
        "employee_id": employee_id,
        "period_start": start,
        "period_end": end,
        "total": round_cents(sum_attendance_deductions(records, start, end)),
        "breakdown": deduction_breakdown(records, start, end),
    }
