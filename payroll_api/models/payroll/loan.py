from datetime import datetime
from payroll_api.extensions import db

class LoanInstallmentRow(db.Model):
    __tablename__ = "loan_installments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    loan_ref = db.Column(db.String(40), nullable=True)  # owning loan request, managed elsewhere
    due_date = db.Column(db.Date, nullable=False)
    installment_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending / paid / cancelled
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_loan_inst_due_status", "due_date", "status"),
    )

    employee = db.relationship("Employee", lazy="joined")
