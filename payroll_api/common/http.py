# payroll_api/common/http.py
from datetime import date

from flask import jsonify, request

from payroll_api.services.payroll_engine import parse_month

def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status

def fail(message="Bad Request", status=400, code=None, detail=None):
    err = {"message": message}
    if code: err["code"] = code
    if detail: err["detail"] = detail
    return jsonify({"success": False, "error": err}), status

def month_arg(name: str = "month") -> date:
    """
    Read ?month=YYYY-MM (a full YYYY-MM-DD is accepted too) and return the
    first day of that month. Missing -> first day of the current month.
    Raises ValueError on anything unparseable.
    """
    raw = (request.args.get(name) or "").strip()
    if not raw:
        today = date.today()
        return date(today.year, today.month, 1)
    return parse_month(raw)
