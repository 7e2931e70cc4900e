from __future__ import annotations
from datetime import date
from typing import Optional

from flask import Blueprint, request

from payroll_api.common.http import ok, fail, month_arg
from payroll_api.extensions import db
from payroll_api.models.employee import Employee
from payroll_api.services.deduction_rules import (
    DEFAULT_GRACE_MINUTES,
    VIOLATION_TYPES,
    monthly_deduction_summary,
    record_deduction,
)
from payroll_api.services.payroll_sources import employee_record

bp = Blueprint("attendance_deductions", __name__, url_prefix="/api/v1/attendance-deductions")


def _d(s) -> Optional[date]:
    if not s:
        return None
    try:
        return date.fromisoformat(str(s))
    except ValueError:
        return None

def _int(x, default=None) -> Optional[int]:
    if x is None or x == "":
        return default
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


@bp.post("")
def create_deduction():
    """
    Record (upsert) a violation deduction. The amount is computed from the
    employee's package; clients send only the facts:
      {employee_id, deduction_date, violation_type, late_minutes?, grace_minutes?, notes?}
    """
    j = request.get_json(silent=True) or {}
    emp_id = _int(j.get("employee_id"))
    ded_date = _d(j.get("deduction_date"))
    violation = (j.get("violation_type") or "").strip().lower()

    if not (emp_id and ded_date and violation):
        return fail("employee_id, deduction_date, violation_type are required", 422)
    if violation not in VIOLATION_TYPES:
        return fail(f"violation_type must be one of: {', '.join(VIOLATION_TYPES)}", 422)

    late_minutes = _int(j.get("late_minutes"), 0)
    grace = _int(j.get("grace_minutes"), DEFAULT_GRACE_MINUTES)
    if late_minutes is None or late_minutes < 0 or grace is None or grace < 0:
        return fail("late_minutes and grace_minutes must be non-negative integers", 422)

    emp = db.session.get(Employee, emp_id)
    if emp is None:
        return fail("employee not found", 404)

    row = record_deduction(
        employee_record(emp), ded_date, violation,
        late_minutes=late_minutes, grace_minutes=grace,
        notes=(j.get("notes") or "").strip() or None,
        attendance_record_id=_int(j.get("attendance_record_id")),
    )
    return ok({
        "id": row.id,
        "employee_id": row.user_id,
        "deduction_date": row.deduction_date.isoformat(),
        "violation_type": row.violation_type,
        "minutes_late": row.minutes_late,
        "amount": float(row.amount or 0),
    }, 201)


@bp.get("/summary")
def deduction_summary():
    emp_id = _int(request.args.get("employee_id"))
    if not emp_id:
        return fail("employee_id is required", 422)
    try:
        reference = month_arg()
    except ValueError as e:
        return fail(str(e), 422)

    s = monthly_deduction_summary(emp_id, reference)
    return ok({
        "employee_id": s["employee_id"],
        "period_start": s["period_start"].isoformat(),
        "period_end": s["period_end"].isoformat(),
        "total": float(s["total"]),
        "breakdown": {k: float(v) for k, v in s["breakdown"].items()},
    })
