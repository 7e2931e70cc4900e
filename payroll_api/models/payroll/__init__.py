# payroll_api/models/payroll/__init__.py
from payroll_api.extensions import db  # noqa

from .deduction import AttendanceDeduction
from .loan import LoanInstallmentRow
from .gosi_rate import GosiRateTier

__all__ = ["AttendanceDeduction", "LoanInstallmentRow", "GosiRateTier"]
