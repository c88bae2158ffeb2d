from app.extensions import db
from app.models.base import PKType, TimestampMixin


class Salon(TimestampMixin, db.Model):
    __tablename__ = "salons"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = db.Column(db.String(160), nullable=False)
    city = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    owner = db.relationship("User", back_populates="salons")
    bookings = db.relationship("Booking", back_populates="salon", lazy="dynamic")
