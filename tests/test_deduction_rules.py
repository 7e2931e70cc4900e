from datetime import date
from decimal import Decimal

import pytest

from payroll_api.models.employee import Employee
from payroll_api.models.payroll.deduction import AttendanceDeduction
from payroll_api.services.deduction_rules import (
    absence_deduction,
    amount_for,
    late_deduction,
    missed_checkout_deduction,
    monthly_deduction_summary,
    record_deduction,
)
from payroll_api.services.payroll_sources import employee_record
from payroll_api.services.payroll_types import EmployeeMasterRecord

EMP = EmployeeMasterRecord(
    id=1,
    base_salary=Decimal("5000"),
    housing_allowance=Decimal("1000"),
    transportation_allowance=Decimal("500"),
    other_allowances=Decimal("700"),   # not part of the deduction base
)


def test_late_deduction_after_grace():
    # 6500 / 30 / 8 / 60 * (50 - 20)
    assert late_deduction(50, EMP) == Decimal("13.54")


def test_late_within_grace_is_free():
    assert late_deduction(20, EMP) == Decimal("0")
    assert late_deduction(0, EMP) == Decimal("0")


def test_late_custom_grace():
    assert late_deduction(50, EMP, grace_minutes=0) == Decimal("22.57")


def test_absence_is_one_day():
    assert absence_deduction(EMP) == Decimal("216.67")


def test_missed_checkout_is_four_hours():
    assert missed_checkout_deduction(EMP) == Decimal("108.33")


def test_zero_package_deducts_nothing():
    empty = EmployeeMasterRecord(id=2)
    assert absence_deduction(empty) == Decimal("0")
    assert late_deduction(90, empty) == Decimal("0")


def test_unknown_violation_rejected():
    with pytest.raises(ValueError):
        amount_for("early_leave", EMP)


def _employee(session, code="E001"):
    e = Employee(code=code, full_name="Test Emp", nationality="Saudi",
                 base_salary=Decimal("5000"), housing_allowance=Decimal("1000"),
                 transportation_allowance=Decimal("500"))
    session.add(e); session.commit()
    return e


def test_record_deduction_upserts_on_day_and_violation(session):
    e = _employee(session)
    rec = employee_record(e)

    first = record_deduction(rec, date(2025, 9, 3), "late", late_minutes=50)
    again = record_deduction(rec, date(2025, 9, 3), "late", late_minutes=80)

    assert first.id == again.id
    assert AttendanceDeduction.query.filter_by(user_id=e.id).count() == 1
    assert again.minutes_late == 80
    assert Decimal(again.amount) == Decimal("27.08")


def test_monthly_summary(session):
    e = _employee(session)
    rec = employee_record(e)
    record_deduction(rec, date(2025, 9, 3), "late", late_minutes=50)
    record_deduction(rec, date(2025, 9, 4), "absent")
    record_deduction(rec, date(2025, 10, 1), "absent")

    s = monthly_deduction_summary(e.id, date(2025, 9, 15))
    assert s["period_start"] == date(2025, 9, 1)
    assert s["period_end"] == date(2025, 9, 30)
    assert s["total"] == Decimal("230.21")
    assert s["breakdown"] == {"absent": Decimal("216.67"), "late": Decimal("13.54")}
