from datetime import datetime
from payroll_api.extensions import db

ATTENDANCE_STATUSES = ("present", "late", "absent", "on_leave", "justified")

class AttendanceDay(db.Model):
    """One row per employee per work date."""
    __tablename__ = "attendance_records"

    id = db.Column(db.Integer, primary_key=True)
    user_id   = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date = db.Column(db.Date, nullable=False)
    status    = db.Column(db.String(20), nullable=False, default="present")
    late_minutes = db.Column(db.Integer, nullable=False, default=0)
    check_in  = db.Column(db.DateTime, nullable=True)
    check_out = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "work_date", name="uq_attendance_user_date"),
        db.Index("ix_attendance_work_date", "work_date"),
    )

    employee = db.relationship("Employee", lazy="joined")
