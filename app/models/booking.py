from app.extensions import db
from app.models.base import PKType, TimestampMixin

BOOKING_STATUSES = {
    "pending_payment",
    "payment_failed",
    "upcoming",
    "confirmed",
    "completed",
    "cancelled",
}
PAYABLE_STATUSES = {"pending_payment", "payment_failed", "upcoming"}


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    salon_id = db.Column(PKType, db.ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)

    salon_name = db.Column(db.String(160), nullable=True)
    service_name = db.Column(db.String(160), nullable=True)
    service_price = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(24), nullable=False, default="pending_payment", index=True)
    scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Gateway payment id of the payment that confirmed the booking, kept for refunds.
    payment_id = db.Column(db.String(64), nullable=True, index=True)

    user = db.relationship("User", back_populates="bookings")
    salon = db.relationship("Salon", back_populates="bookings")
    payments = db.relationship("Payment", back_populates="booking", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_bookings_user_status", "user_id", "status"),
        db.CheckConstraint("service_price >= 0", name="ck_booking_price_non_negative"),
    )
