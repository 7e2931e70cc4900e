from datetime import datetime
from payroll_api.extensions import db

class AttendanceDeduction(db.Model):
    __tablename__ = "attendance_deductions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    deduction_date = db.Column(db.Date, nullable=False)

    violation_type = db.Column(db.String(32), nullable=False)   # late / absent / late_checkout / ...
    deduction_type = db.Column(db.String(32), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    minutes_late = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.String(255))
    attendance_record_id = db.Column(db.Integer, db.ForeignKey("attendance_records.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        # one deduction per violation per day; writers upsert on this key
        db.UniqueConstraint("user_id", "deduction_date", "violation_type", name="uq_deduction_user_date_violation"),
        db.Index("ix_deduction_date", "deduction_date"),
    )

    employee = db.relationship("Employee", lazy="joined")
