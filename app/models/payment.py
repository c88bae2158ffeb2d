from app.extensions import db
from app.models.base import PKType, TimestampMixin

PAYMENT_STATUSES = {"pending", "captured", "settled"}


class Payment(TimestampMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    salon_id = db.Column(PKType, db.ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(32), nullable=True)

    razorpay_order_id = db.Column(db.String(64), nullable=False, index=True)
    razorpay_payment_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    platform_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    salon_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    fee_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    captured_at = db.Column(db.DateTime(timezone=True), nullable=True)
    settlement_id = db.Column(db.String(64), nullable=True, index=True)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    booking = db.relationship("Booking", back_populates="payments")
