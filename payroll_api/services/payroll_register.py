from __future__ import annotations
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font

from .payroll_types import PayrollResult

HEADERS = [
    "SR.NO", "EMP CODE", "NAME", "DAYS ENTITLED", "WORKING DAYS", "WORK RATIO",
    "BASIC", "HOUSING", "TRANSPORT", "OTHER", "FULL GROSS", "GROSS",
    "SAUDI", "GOSI RATE", "GOSI BASE", "GOSI EMPLOYEE", "GOSI EMPLOYER",
    "ATTENDANCE DED.", "LOAN DED.", "TOTAL DED.", "NET",
]


def _num(x):
    if x is None:
        return 0.0
    if isinstance(x, Decimal):
        return float(x)
    return x


def build_register_workbook(result: PayrollResult) -> BytesIO:
    """Payroll register for review (one sheet of lines + totals row, one sheet of deductions by type)."""
    wb = Workbook()
    ws = wb.active
    ws.title = result.period_start.strftime("PAYROLL %Y-%m")
    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for sr, ln in enumerate(result.lines, start=1):
        ws.append([
            sr, ln.employee_code, ln.employee_name, ln.days_entitled, ln.working_days, _num(ln.work_ratio),
            _num(ln.base_salary), _num(ln.housing_allowance), _num(ln.transportation_allowance),
            _num(ln.other_allowances), _num(ln.full_gross_salary), _num(ln.gross_salary),
            "Y" if ln.is_saudi else "N", _num(ln.gosi_rate), _num(ln.gosi_base),
            _num(ln.gosi_deduction), _num(ln.gosi_employer_contribution),
            _num(ln.attendance_deductions), _num(ln.loan_deduction), _num(ln.total_deductions),
            _num(ln.net_salary),
        ])

    t = result.totals
    ws.append([
        None, None, f"TOTAL ({t.employee_count})", None, None, None,
        _num(t.base_salary), _num(t.housing_allowance), _num(t.transportation_allowance),
        _num(t.other_allowances), None, _num(t.gross_salary),
        None, None, None, _num(t.gosi_deduction), _num(t.gosi_employer_contribution),
        _num(t.attendance_deductions), _num(t.loan_deduction), _num(t.total_deductions),
        _num(t.net_salary),
    ])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)

    ws_ded = wb.create_sheet("DEDUCTIONS")
    ws_ded.append(["EMP CODE", "NAME", "VIOLATION", "AMOUNT"])
    for ln in result.lines:
        for violation, amount in ln.deduction_breakdown.items():
            ws_ded.append([ln.employee_code, ln.employee_name, violation, _num(amount)])

    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio
