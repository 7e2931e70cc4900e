from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from payroll_api.models.attendance import AttendanceDay
from payroll_api.models.employee import Employee
from payroll_api.models.payroll import AttendanceDeduction, GosiRateTier, LoanInstallmentRow
from payroll_api.services.gosi import DEFAULT_GOSI_POLICY
from payroll_api.services.payroll_runner import failed_source, run_monthly_payroll
from payroll_api.services.payroll_sources import SqlPayrollDataSource, load_gosi_policy
from payroll_api.services.payroll_types import to_money

START, END = date(2025, 9, 1), date(2025, 9, 30)


def _emp(session, code, **kw):
    e = Employee(code=code, full_name=f"Emp {code}", **kw)
    session.add(e); session.commit()
    return e


@pytest.mark.parametrize("raw,expected", [
    (None, Decimal("0")),
    ("", Decimal("0")),
    ("abc", Decimal("0")),
    ("-5", Decimal("0")),
    ("NaN", Decimal("0")),
    (Decimal("12.50"), Decimal("12.50")),
    (300, Decimal("300")),
])
def test_to_money(raw, expected):
    assert to_money(raw) == expected


def test_active_employees_filters_status_and_exclusion(session):
    a = _emp(session, "A", base_salary=Decimal("4000"))
    _emp(session, "B", status="inactive")
    _emp(session, "C", is_payroll_excluded=True)
    d = _emp(session, "D", base_salary=None)

    got = SqlPayrollDataSource().get_active_employees()
    assert [x.id for x in got] == [a.id, d.id]
    assert got[0].base_salary == Decimal("4000")
    assert got[1].base_salary == Decimal("0")
    assert got[0].code == "A" and got[0].name == "Emp A"

    got = SqlPayrollDataSource().get_active_employees(excluding=[a.id])
    assert [x.id for x in got] == [d.id]


def test_employee_table_has_no_bank_columns():
    cols = set(Employee.__table__.c.keys())
    assert not cols & {"national_id", "bank_name", "account_number"}


def test_period_queries(session):
    e = _emp(session, "E")
    session.add_all([
        AttendanceDay(user_id=e.id, work_date=date(2025, 9, 1), status="present"),
        AttendanceDay(user_id=e.id, work_date=date(2025, 8, 31), status="present"),
        AttendanceDeduction(user_id=e.id, deduction_date=date(2025, 9, 30), violation_type="absent", amount=Decimal("150")),
        AttendanceDeduction(user_id=e.id, deduction_date=date(2025, 10, 1), violation_type="absent", amount=Decimal("150")),
        LoanInstallmentRow(user_id=e.id, due_date=date(2025, 9, 15), installment_amount=Decimal("400")),
        LoanInstallmentRow(user_id=e.id, due_date=date(2025, 9, 16), installment_amount=Decimal("400"), status="paid"),
    ])
    session.commit()

    src = SqlPayrollDataSource()
    att = src.get_attendance_records(START, END)
    deds = src.get_attendance_deductions(START, END)
    loans = src.get_pending_loan_installments(START, END)

    assert [r.work_date for r in att] == [date(2025, 9, 1)]
    assert [(r.deduction_date, r.amount, r.violation_type) for r in deds] == [(date(2025, 9, 30), Decimal("150"), "absent")]
    assert [(r.due_date, r.installment_amount) for r in loans] == [(date(2025, 9, 15), Decimal("400"))]


def test_load_gosi_policy_from_table(session):
    assert load_gosi_policy() is DEFAULT_GOSI_POLICY

    session.add_all([
        GosiRateTier(code="GOSI_EMP", registered_from=date.min, employee_rate=Decimal("0.0975"), employer_rate=Decimal("0.12")),
        GosiRateTier(code="GOSI_EMP", registered_from=date(2024, 7, 3), employee_rate=Decimal("0.1025"), employer_rate=Decimal("0.12")),
        GosiRateTier(code="GOSI_EMP", registered_from=date(2026, 1, 1), employee_rate=Decimal("0.2"), is_active=False),
    ])
    session.commit()

    policy = load_gosi_policy()
    assert [t.employee_rate for t in policy.tiers] == [Decimal("0.0975"), Decimal("0.1025")]
    assert policy.tier_for(date(2027, 1, 1)).employee_rate == Decimal("0.1025")
    assert policy.tiers[0].wage_cap == Decimal("45000")


def test_run_monthly_payroll_end_to_end(session):
    s = _emp(session, "S", nationality="Saudi", hire_date=date(2022, 1, 1),
             gosi_registration_date=date(2024, 1, 1),
             base_salary=Decimal("5000"), housing_allowance=Decimal("1000"),
             transportation_allowance=Decimal("500"), other_allowances=Decimal("0"))
    x = _emp(session, "X", nationality="Egyptian", hire_date=date(2022, 1, 1),
             base_salary=Decimal("5000"), housing_allowance=Decimal("1000"),
             transportation_allowance=Decimal("500"), other_allowances=Decimal("0"))
    session.add_all([
        AttendanceDeduction(user_id=x.id, deduction_date=date(2025, 9, 2), violation_type="absent", amount=Decimal("150")),
        LoanInstallmentRow(user_id=x.id, due_date=date(2025, 9, 25), installment_amount=Decimal("400")),
    ])
    session.commit()

    res = run_monthly_payroll(date(2025, 9, 1), SqlPayrollDataSource())
    by_id = {ln.employee_id: ln for ln in res.lines}
    assert by_id[s.id].net_salary == Decimal("5915.00")
    assert by_id[x.id].total_deductions == Decimal("550")
    assert by_id[x.id].net_salary == Decimal("5950")
    assert res.loan_source_available is True


class _FlakyLoans(SqlPayrollDataSource):
    def get_pending_loan_installments(self, start, end):
        raise OperationalError("SELECT loan_installments", {}, Exception("relation does not exist"))


def test_loan_failure_degrades_to_zero(session):
    x = _emp(session, "X", nationality="Egyptian", base_salary=Decimal("3000"))
    session.add(LoanInstallmentRow(user_id=x.id, due_date=date(2025, 9, 25), installment_amount=Decimal("400")))
    session.commit()

    res = run_monthly_payroll(date(2025, 9, 1), _FlakyLoans())
    assert res.loan_source_available is False
    assert res.lines[0].loan_deduction == Decimal("0")
    assert res.lines[0].net_salary == Decimal("3000")


class _BrokenAttendance(SqlPayrollDataSource):
    def get_attendance_records(self, start, end):
        raise OperationalError("SELECT attendance_records", {}, Exception("connection reset"))


def test_mandatory_source_failure_propagates(session):
    _emp(session, "A", base_salary=Decimal("3000"))
    with pytest.raises(OperationalError) as exc:
        run_monthly_payroll(date(2025, 9, 1), _BrokenAttendance())
    # same exception object, tagged with the source that failed
    assert "connection reset" in str(exc.value)
    assert failed_source(exc.value) == "attendance_records"
