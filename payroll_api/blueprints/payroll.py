from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict

from flask import Blueprint, current_app, send_file
from sqlalchemy.exc import SQLAlchemyError

from payroll_api.common.errors import PayrollDataUnavailable
from payroll_api.common.http import ok, fail, month_arg
from payroll_api.extensions import db
from payroll_api.services.gosi import DEFAULT_GOSI_POLICY, GosiPolicy
from payroll_api.services.payroll_register import build_register_workbook
from payroll_api.services.payroll_runner import failed_source, run_monthly_payroll
from payroll_api.services.payroll_sources import SqlPayrollDataSource, load_gosi_policy
from payroll_api.services.payroll_types import PayrollLine, PayrollResult, PayrollTotals

bp = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")


# ---------- helpers ----------
def _as_float(x):
    return float(x) if isinstance(x, Decimal) else x

def _source():
    # tests / embedding apps may inject their own PayrollDataSource
    return current_app.config.get("PAYROLL_DATA_SOURCE") or SqlPayrollDataSource()

def _policy() -> GosiPolicy:
    if (current_app.config.get("PAYROLL_GOSI_SOURCE") or "default").lower() == "db":
        return load_gosi_policy()
    return DEFAULT_GOSI_POLICY

def _row_line(x: PayrollLine) -> Dict[str, Any]:
    return {
        "employee_id": x.employee_id,
        "employee_code": x.employee_code,
        "employee_name": x.employee_name,
        "work_ratio": _as_float(x.work_ratio),
        "is_partial_month": x.is_partial_month,
        "days_entitled": x.days_entitled,
        "working_days": x.working_days,
        "base_salary": _as_float(x.base_salary),
        "housing_allowance": _as_float(x.housing_allowance),
        "transportation_allowance": _as_float(x.transportation_allowance),
        "other_allowances": _as_float(x.other_allowances),
        "full_gross_salary": _as_float(x.full_gross_salary),
        "gross_salary": _as_float(x.gross_salary),
        "is_saudi": x.is_saudi,
        "gosi_rate": _as_float(x.gosi_rate),
        "gosi_base": _as_float(x.gosi_base),
        "gosi_deduction": _as_float(x.gosi_deduction),
        "gosi_employer_contribution": _as_float(x.gosi_employer_contribution),
        "attendance_deductions": _as_float(x.attendance_deductions),
        "deduction_breakdown": {k: _as_float(v) for k, v in x.deduction_breakdown.items()},
        "loan_deduction": _as_float(x.loan_deduction),
        "total_deductions": _as_float(x.total_deductions),
        "net_salary": _as_float(x.net_salary),
    }

def _row_totals(t: PayrollTotals) -> Dict[str, Any]:
    return {
        "employee_count": t.employee_count,
        "base_salary": _as_float(t.base_salary),
        "housing_allowance": _as_float(t.housing_allowance),
        "transportation_allowance": _as_float(t.transportation_allowance),
        "other_allowances": _as_float(t.other_allowances),
        "gross_salary": _as_float(t.gross_salary),
        "gosi_deduction": _as_float(t.gosi_deduction),
        "gosi_employer_contribution": _as_float(t.gosi_employer_contribution),
        "attendance_deductions": _as_float(t.attendance_deductions),
        "loan_deduction": _as_float(t.loan_deduction),
        "total_deductions": _as_float(t.total_deductions),
        "net_salary": _as_float(t.net_salary),
    }

def _run(reference) -> PayrollResult:
    try:
        return run_monthly_payroll(reference, _source(), policy=_policy())
    except Exception as e:
        source = failed_source(e)
        if isinstance(e, SQLAlchemyError):
            # e.g. the GOSI tier table when PAYROLL_GOSI_SOURCE=db
            db.session.rollback()
            source = source or "database"
        if source is None:
            raise
        raise PayrollDataUnavailable(source, payload={"source": source, "reason": e.__class__.__name__}) from e


# ---------- routes ----------
@bp.get("/monthly")
def monthly_payroll():
    """
    Payroll for ?month=YYYY-MM (default: current month). Computed on demand,
    nothing is stored; calling again is the "refresh".
    """
    try:
        reference = month_arg()
    except ValueError as e:
        return fail(str(e), 422)

    result = _run(reference)
    data = {
        "period_start": result.period_start.isoformat(),
        "period_end": result.period_end.isoformat(),
        "lines": [_row_line(x) for x in result.lines],
        "totals": _row_totals(result.totals),
    }
    meta = {"loan_source_available": result.loan_source_available}
    if not result.loan_source_available:
        meta["warning"] = "loan installments unavailable; loan deductions counted as 0"
    return ok(data, **meta)

@bp.get("/monthly/register.xlsx")
def monthly_register():
    try:
        reference = month_arg()
    except ValueError as e:
        return fail(str(e), 422)

    result = _run(reference)
    bio = build_register_workbook(result)
    filename = f"payroll_register_{result.period_start.strftime('%Y%m')}.xlsx"
    return send_file(bio, mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                     as_attachment=True, download_name=filename)

@bp.get("/gosi/rates")
def gosi_rates():
    policy = _policy()
    return ok([
        {
            "registered_from": t.registered_from.isoformat(),
            "employee_rate": _as_float(t.employee_rate),
            "employer_rate": _as_float(t.employer_rate),
            "wage_cap": _as_float(t.wage_cap),
        }
        for t in policy.tiers
    ], default_registration_date=policy.default_registration_date.isoformat())
