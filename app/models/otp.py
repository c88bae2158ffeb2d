from app.extensions import db
from app.models.base import PKType, TimestampMixin, utcnow


class PhoneOtp(TimestampMixin, db.Model):
    __tablename__ = "phone_otps"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    phone = db.Column(db.String(16), nullable=False, index=True)
    code_hash = db.Column(db.String(128), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    verified = db.Column(db.Boolean, nullable=False, default=False)


class EmailOtp(TimestampMixin, db.Model):
    __tablename__ = "email_otps"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    code_hash = db.Column(db.String(128), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    verified = db.Column(db.Boolean, nullable=False, default=False)


class OtpRateLimit(db.Model):
    __tablename__ = "otp_rate_limits"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    phone = db.Column(db.String(16), nullable=False, index=True)
    attempt_type = db.Column(db.String(16), nullable=False)  # send, verify_failed
    ip_address = db.Column(db.String(64), nullable=True)
    attempted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        db.Index("ix_otp_rate_limits_phone_type", "phone", "attempt_type"),
    )


class TestPhoneWhitelist(TimestampMixin, db.Model):
    __tablename__ = "test_phone_whitelist"
    __test__ = False

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    phone = db.Column(db.String(16), nullable=False, unique=True)
    otp_code = db.Column(db.String(6), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
