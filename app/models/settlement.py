from app.extensions import db
from app.models.base import PKType, TimestampMixin


class Settlement(TimestampMixin, db.Model):
    __tablename__ = "settlements"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    razorpay_settlement_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    fees = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    utr = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(24), nullable=True)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
