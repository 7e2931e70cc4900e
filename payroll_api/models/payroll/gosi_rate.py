from datetime import datetime, date
from payroll_api.extensions import db


class GosiRateTier(db.Model):
    """
    Date-effective GOSI contribution tier.

    The tier applies to employees whose GOSI registration date is on or after
    `registered_from`; the latest qualifying tier wins. Rates are fractions
    (0.0975 == 9.75%).
    """
    __tablename__ = "gosi_rate_tiers"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False)
    registered_from = db.Column(db.Date, nullable=False, default=date.min)
    employee_rate = db.Column(db.Numeric(6, 4), nullable=False)
    employer_rate = db.Column(db.Numeric(6, 4), nullable=False, default=0)
    wage_cap = db.Column(db.Numeric(12, 2), nullable=False, default=45000)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    note = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("code", "registered_from", name="uq_gosi_tier_code_from"),
        db.Index("ix_gosi_tier_resolve", "is_active", "registered_from"),
    )
