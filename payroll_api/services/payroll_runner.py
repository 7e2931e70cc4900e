# payroll_api/services/payroll_runner.py
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from .gosi import DEFAULT_GOSI_POLICY, GosiPolicy
from .payroll_engine import compute_payroll, resolve_period
from .payroll_sources import PayrollDataSource
from .payroll_types import LoanInstallment, PayrollResult

log = logging.getLogger(__name__)


FAILED_SOURCE_ATTR = "payroll_source"


def failed_source(exc: BaseException) -> Optional[str]:
    """Name of the mandatory source that raised `exc`, or None if it did not come from a fetch."""
    return getattr(exc, FAILED_SOURCE_ATTR, None)


def _fetch_required(name: str, fn, *args):
    """
    Mandatory source: any failure aborts the run and reaches the caller as-is.
    The exception is tagged with the source name (see `failed_source`).
    """
    try:
        return fn(*args)
    except Exception as e:
        log.exception("payroll source %r failed; aborting run", name)
        try:
            setattr(e, FAILED_SOURCE_ATTR, name)
        except (AttributeError, TypeError):
            pass  # exception types without __dict__ stay untagged
        raise


def _fetch_loans(source: PayrollDataSource, start: date, end: date) -> Tuple[List[LoanInstallment], bool]:
    """Loan installments are optional: a failing source counts as no installments."""
    try:
        return list(source.get_pending_loan_installments(start, end) or []), True
    except Exception as e:
        log.warning("loan installments unavailable for %s..%s, using zero loan deductions: %s", start, end, e)
        return [], False


def run_monthly_payroll(
    reference_month: date,
    source: PayrollDataSource,
    policy: Optional[GosiPolicy] = None,
    excluding: Iterable[int] = (),
) -> PayrollResult:
    """
    Fetch the month's data from `source` and compute the payroll.

    Employee master, attendance records and the attendance-deduction ledger
    must all load, otherwise the original exception propagates and nothing is
    returned. Loan installments degrade to empty.
    """
    start, end = resolve_period(reference_month)

    employees = _fetch_required("employees", source.get_active_employees, excluding)
    attendance = _fetch_required("attendance_records", source.get_attendance_records, start, end)
    deductions = _fetch_required("attendance_deductions", source.get_attendance_deductions, start, end)
    installments, loans_ok = _fetch_loans(source, start, end)

    result = compute_payroll(
        employees, attendance, deductions, installments,
        reference_month,
        policy=policy or DEFAULT_GOSI_POLICY,
        loan_source_available=loans_ok,
    )
    log.info("payroll computed for %s..%s: %d employees, net %s",
             start, end, result.totals.employee_count, result.totals.net_salary)
    return result
