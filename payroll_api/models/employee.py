from datetime import datetime
from payroll_api.extensions import db

class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)

    code      = db.Column(db.String(32), unique=True, nullable=False)
    full_name = db.Column(db.String(160), nullable=False)
    nationality = db.Column(db.String(40), nullable=True)   # free text: "Saudi", "SA", "Egyptian", ...

    hire_date = db.Column(db.Date, nullable=True)
    status    = db.Column(db.String(16), default="active", nullable=False)  # active/inactive

    # monthly package (SAR)
    base_salary              = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    housing_allowance        = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    transportation_allowance = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    other_allowances         = db.Column(db.Numeric(12, 2), nullable=True, default=0)

    # GOSI
    gosi_registration_date = db.Column(db.Date, nullable=True)
    gosi_type              = db.Column(db.String(16), nullable=True)  # "saudi" | "non_saudi" hint

    # set by an administrative action; never derived from names
    is_payroll_excluded = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_status_excluded", "status", "is_payroll_excluded"),
    )
