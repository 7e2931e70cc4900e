from __future__ import annotations
from datetime import date
from typing import Iterable, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from payroll_api.extensions import db
from payroll_api.models.employee import Employee
from payroll_api.models.attendance import AttendanceDay
from payroll_api.models.payroll.deduction import AttendanceDeduction
from payroll_api.models.payroll.loan import LoanInstallmentRow
from payroll_api.models.payroll.gosi_rate import GosiRateTier as GosiRateTierRow

from .gosi import DEFAULT_GOSI_POLICY, GosiPolicy, GosiTier
from .payroll_types import (
    AttendanceRecord,
    DeductionRecord,
    EmployeeMasterRecord,
    LoanInstallment,
    to_money,
)


class PayrollDataSource(Protocol):
    """The four read-only queries a payroll run consumes, each scoped to the period."""

    def get_active_employees(self, excluding: Iterable[int] = ()) -> List[EmployeeMasterRecord]: ...

    def get_attendance_records(self, start: date, end: date) -> List[AttendanceRecord]: ...

    def get_attendance_deductions(self, start: date, end: date) -> List[DeductionRecord]: ...

    def get_pending_loan_installments(self, start: date, end: date) -> List[LoanInstallment]: ...


def employee_record(e: Employee) -> EmployeeMasterRecord:
    return EmployeeMasterRecord(
        id=e.id,
        nationality=e.nationality,
        hire_date=e.hire_date,
        base_salary=to_money(e.base_salary),
        housing_allowance=to_money(e.housing_allowance),
        transportation_allowance=to_money(e.transportation_allowance),
        other_allowances=to_money(e.other_allowances),
        gosi_registration_date=e.gosi_registration_date,
        gosi_type=e.gosi_type,
        is_payroll_excluded=bool(e.is_payroll_excluded),
        code=e.code,
        name=e.full_name,
    )


class SqlPayrollDataSource:
    """PayrollDataSource over the SQLAlchemy models."""

    def get_active_employees(self, excluding: Iterable[int] = ()) -> List[EmployeeMasterRecord]:
        q = (Employee.query
             .filter(Employee.status == "active")
             .filter(Employee.is_payroll_excluded.is_(False)))
        skip = {int(x) for x in excluding or ()}
        if skip:
            q = q.filter(Employee.id.notin_(skip))
        return [employee_record(e) for e in q.order_by(Employee.id.asc()).all()]

    def get_attendance_records(self, start: date, end: date) -> List[AttendanceRecord]:
        rows = (db.session.query(AttendanceDay.user_id, AttendanceDay.work_date,
                                 AttendanceDay.status, AttendanceDay.late_minutes)
                .filter(AttendanceDay.work_date >= start, AttendanceDay.work_date <= end)
                .order_by(AttendanceDay.user_id, AttendanceDay.work_date)
                .all())
        return [AttendanceRecord(user_id=uid, work_date=d, status=st or "", late_minutes=int(lm or 0))
                for uid, d, st, lm in rows]

    def get_attendance_deductions(self, start: date, end: date) -> List[DeductionRecord]:
        rows = (db.session.query(AttendanceDeduction.user_id, AttendanceDeduction.deduction_date,
                                 AttendanceDeduction.amount, AttendanceDeduction.violation_type)
                .filter(AttendanceDeduction.deduction_date >= start,
                        AttendanceDeduction.deduction_date <= end)
                .order_by(AttendanceDeduction.id)
                .all())
        return [DeductionRecord(user_id=uid, deduction_date=d, amount=to_money(amt), violation_type=vt)
                for uid, d, amt, vt in rows]

    def get_pending_loan_installments(self, start: date, end: date) -> List[LoanInstallment]:
        try:
            rows = (db.session.query(LoanInstallmentRow.user_id, LoanInstallmentRow.due_date,
                                     LoanInstallmentRow.installment_amount, LoanInstallmentRow.status)
                    .filter(LoanInstallmentRow.due_date >= start, LoanInstallmentRow.due_date <= end)
                    .filter(LoanInstallmentRow.status == "pending")
                    .order_by(LoanInstallmentRow.id)
                    .all())
        except SQLAlchemyError:
            # leave the session usable for the rest of the request
            db.session.rollback()
            raise
        return [LoanInstallment(user_id=uid, due_date=d, installment_amount=to_money(amt), status=st)
                for uid, d, amt, st in rows]


def load_gosi_policy(fallback: Optional[GosiPolicy] = DEFAULT_GOSI_POLICY) -> GosiPolicy:
    """
    Build the GOSI policy from active `gosi_rate_tiers` rows.
    Returns `fallback` when the table holds no active tier.
    """
    rows = (GosiRateTierRow.query
            .filter(GosiRateTierRow.is_active.is_(True))
            .order_by(GosiRateTierRow.registered_from.asc(), GosiRateTierRow.id.asc())
            .all())
    if not rows:
        return fallback
    return GosiPolicy.from_tiers(
        GosiTier(
            registered_from=r.registered_from,
            employee_rate=to_money(r.employee_rate),
            employer_rate=to_money(r.employer_rate),
            wage_cap=to_money(r.wage_cap),
        )
        for r in rows
    )
