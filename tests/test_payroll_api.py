from datetime import date
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook
from sqlalchemy.exc import OperationalError

from payroll_api.models.employee import Employee
from payroll_api.services.payroll_types import DeductionRecord, EmployeeMasterRecord, LoanInstallment


class StubSource:
    def __init__(self, employees=(), deductions=(), installments=(), fail_loans=False, fail_employees=False,
                 attendance_error=None):
        self.employees = list(employees)
        self.deductions = list(deductions)
        self.installments = list(installments)
        self.fail_loans = fail_loans
        self.fail_employees = fail_employees
        self.attendance_error = attendance_error

    def get_active_employees(self, excluding=()):
        if self.fail_employees:
            raise OperationalError("SELECT employees", {}, Exception("db down"))
        return self.employees

    def get_attendance_records(self, start, end):
        if self.attendance_error:
            raise self.attendance_error
        return []

    def get_attendance_deductions(self, start, end):
        return self.deductions

    def get_pending_loan_installments(self, start, end):
        if self.fail_loans:
            raise RuntimeError("loans service unavailable")
        return self.installments


def _saudi(id=1, **kw):
    base = dict(nationality="Saudi", hire_date=date(2022, 1, 1), gosi_registration_date=date(2024, 1, 1),
                base_salary=Decimal("5000"), housing_allowance=Decimal("1000"),
                transportation_allowance=Decimal("500"), code=f"E{id:03d}", name=f"Emp {id}")
    base.update(kw)
    return EmployeeMasterRecord(id=id, **base)


def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "ok"


def test_monthly_payroll_envelope(app, client):
    app.config["PAYROLL_DATA_SOURCE"] = StubSource(
        employees=[_saudi(1), _saudi(2, nationality="Egyptian")],
        deductions=[DeductionRecord(2, date(2025, 9, 3), Decimal("150"), "absent")],
        installments=[LoanInstallment(2, date(2025, 9, 25), Decimal("400"))],
    )
    r = client.get("/api/v1/payroll/monthly?month=2025-09")
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["meta"]["loan_source_available"] is True
    data = body["data"]
    assert data["period_start"] == "2025-09-01"
    assert data["period_end"] == "2025-09-30"
    assert [ln["net_salary"] for ln in data["lines"]] == [5915.0, 5950.0]
    assert data["lines"][1]["deduction_breakdown"] == {"absent": 150.0}
    assert data["totals"]["employee_count"] == 2
    assert data["totals"]["net_salary"] == 11865.0


def test_monthly_payroll_loan_outage_is_flagged(app, client):
    app.config["PAYROLL_DATA_SOURCE"] = StubSource(employees=[_saudi(1)], fail_loans=True)
    r = client.get("/api/v1/payroll/monthly?month=2025-09")
    assert r.status_code == 200
    body = r.get_json()
    assert body["meta"]["loan_source_available"] is False
    assert "warning" in body["meta"]
    assert body["data"]["lines"][0]["loan_deduction"] == 0.0


def test_monthly_payroll_mandatory_outage_is_503(app, client):
    app.config["PAYROLL_DATA_SOURCE"] = StubSource(fail_employees=True)
    r = client.get("/api/v1/payroll/monthly?month=2025-09")
    assert r.status_code == 503
    body = r.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "PAYROLL_DATA_UNAVAILABLE"
    assert body["error"]["detail"]["source"] == "employees"


def test_monthly_payroll_non_database_source_error_is_503(app, client):
    app.config["PAYROLL_DATA_SOURCE"] = StubSource(
        employees=[_saudi(1)], attendance_error=ConnectionError("attendance service refused connection"))
    r = client.get("/api/v1/payroll/monthly?month=2025-09")
    assert r.status_code == 503
    body = r.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "PAYROLL_DATA_UNAVAILABLE"
    assert body["error"]["detail"] == {"source": "attendance_records", "reason": "ConnectionError"}


def test_register_download_reports_source_outage(app, client):
    app.config["PAYROLL_DATA_SOURCE"] = StubSource(attendance_error=TimeoutError("slow"))
    r = client.get("/api/v1/payroll/monthly/register.xlsx?month=2025-09")
    assert r.status_code == 503
    assert r.get_json()["error"]["code"] == "PAYROLL_DATA_UNAVAILABLE"


def test_monthly_payroll_bad_month_is_422(client):
    r = client.get("/api/v1/payroll/monthly?month=September")
    assert r.status_code == 422
    assert r.get_json()["success"] is False


def test_register_workbook(app, client):
    app.config["PAYROLL_DATA_SOURCE"] = StubSource(employees=[_saudi(1), _saudi(2)])
    r = client.get("/api/v1/payroll/monthly/register.xlsx?month=2025-09")
    assert r.status_code == 200
    assert "payroll_register_202509.xlsx" in r.headers["Content-Disposition"]

    wb = load_workbook(BytesIO(r.data))
    ws = wb["PAYROLL 2025-09"]
    assert ws.cell(row=1, column=1).value == "SR.NO"
    assert ws.max_row == 4
    assert ws.cell(row=4, column=3).value == "TOTAL (2)"
    assert "DEDUCTIONS" in wb.sheetnames


def test_gosi_rates(client):
    r = client.get("/api/v1/payroll/gosi/rates")
    assert r.status_code == 200
    body = r.get_json()
    assert [t["employee_rate"] for t in body["data"]] == [0.0975, 0.1025]
    assert body["data"][1]["registered_from"] == "2024-07-03"
    assert body["meta"]["default_registration_date"] == "2024-01-01"


def test_create_deduction_and_summary(session, client):
    e = Employee(code="E001", full_name="Test Emp", base_salary=Decimal("5000"),
                 housing_allowance=Decimal("1000"), transportation_allowance=Decimal("500"))
    session.add(e); session.commit()

    r = client.post("/api/v1/attendance-deductions", json={
        "employee_id": e.id, "deduction_date": "2025-09-04", "violation_type": "absent"})
    assert r.status_code == 201
    assert r.get_json()["data"]["amount"] == 216.67

    r = client.post("/api/v1/attendance-deductions", json={
        "employee_id": e.id, "deduction_date": "2025-09-05", "violation_type": "late", "late_minutes": 50})
    assert r.status_code == 201
    assert r.get_json()["data"]["minutes_late"] == 50

    r = client.get(f"/api/v1/attendance-deductions/summary?employee_id={e.id}&month=2025-09")
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["total"] == 230.21
    assert data["breakdown"] == {"absent": 216.67, "late": 13.54}


def test_create_deduction_validation(session, client):
    r = client.post("/api/v1/attendance-deductions", json={"employee_id": 1, "deduction_date": "2025-09-04"})
    assert r.status_code == 422

    r = client.post("/api/v1/attendance-deductions", json={
        "employee_id": 1, "deduction_date": "2025-09-04", "violation_type": "sleeping"})
    assert r.status_code == 422

    r = client.post("/api/v1/attendance-deductions", json={
        "employee_id": 999, "deduction_date": "2025-09-04", "violation_type": "absent"})
    assert r.status_code == 404


def test_cli_seed_gosi_and_compute(app):
    runner = app.test_cli_runner()
    r = runner.invoke(args=["payroll", "seed-gosi"])
    assert "GOSI tiers added: 2" in r.output
    r = runner.invoke(args=["payroll", "seed-gosi"])
    assert "GOSI tiers added: 0" in r.output

    r = runner.invoke(args=["payroll", "compute", "--month", "2025-09"])
    assert r.exit_code == 0
    assert "Totals: employees=0" in r.output

    r = runner.invoke(args=["payroll", "compute", "--month", "nope"])
    assert r.exit_code != 0


def test_cli_seed_demo_is_idempotent(app):
    from payroll_api.models.payroll import AttendanceDeduction, LoanInstallmentRow

    runner = app.test_cli_runner()
    r = runner.invoke(args=["payroll", "seed-demo"])
    assert r.exit_code == 0, r.output
    assert "Seeded demo payroll data" in r.output

    assert {e.code for e in Employee.query.all()} == {"EMP-001", "EMP-002", "EMP-003"}
    expat = Employee.query.filter_by(code="EMP-003").one()
    assert AttendanceDeduction.query.filter_by(user_id=expat.id).count() == 1
    assert LoanInstallmentRow.query.filter_by(user_id=expat.id).count() == 1

    r = runner.invoke(args=["payroll", "seed-demo"])
    assert r.exit_code == 0, r.output
    assert Employee.query.count() == 3
    assert AttendanceDeduction.query.count() == 1
    assert LoanInstallmentRow.query.count() == 1

    r = runner.invoke(args=["payroll", "compute"])
    assert r.exit_code == 0, r.output
    assert "EMP-003" in r.output
