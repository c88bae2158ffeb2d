from flask_login import UserMixin

from app.extensions import db
from app.models.base import PKType, TimestampMixin

USER_ROLES = {"customer", "salon_owner", "admin"}


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(16), nullable=True, unique=True, index=True)
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    role = db.Column(db.String(24), nullable=False, default="customer", index=True)
    firebase_uid = db.Column(db.String(128), nullable=True, unique=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    bookings = db.relationship("Booking", back_populates="user", lazy="dynamic")
    salons = db.relationship("Salon", back_populates="owner", lazy="dynamic")
    wallet = db.relationship("Wallet", back_populates="user", uselist=False)
