# payroll_api/models/__init__.py
# Import order matters: employees first, the ledgers reference employees.id.

def load_all():
    """Import every model module so db.metadata is complete (create_all / migrations)."""
    from .employee import Employee  # noqa: F401
    from .attendance import AttendanceDay  # noqa: F401
    from .payroll import AttendanceDeduction, LoanInstallmentRow, GosiRateTier  # noqa: F401
