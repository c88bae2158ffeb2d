from app.extensions import db
from app.models.base import PKType, TimestampMixin


class CancellationPenalty(TimestampMixin, db.Model):
    """Late-cancellation charge owed by a customer. Platform revenue, never salon earnings."""

    __tablename__ = "cancellation_penalties"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    penalty_amount = db.Column(db.Numeric(10, 2), nullable=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    is_waived = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
