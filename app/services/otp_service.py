import re
import secrets
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.errors import AppError, RateLimitError, ValidationError
from app.extensions import bcrypt, db
from app.integrations import get_mailer, get_sms, mask_phone
from app.integrations.mailer import MailerError
from app.models import EmailOtp, OtpRateLimit, PhoneOtp, TestPhoneWhitelist, User
from app.models.base import as_utc, utcnow
from app.services.validation import parse_id

PHONE_PATTERN = re.compile(r"^\+91[6-9]\d{9}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
OTP_PATTERN = re.compile(r"^\d{6}$")

SEND_ATTEMPT = "send"
VERIFY_FAILED_ATTEMPT = "verify_failed"


def generate_otp():
    return str(secrets.randbelow(900000) + 100000)


def _hash_code(code):
    return bcrypt.generate_password_hash(code).decode("utf-8")


def _code_matches(code_hash, code):
    try:
        return bcrypt.check_password_hash(code_hash, code)
    except ValueError:
        return False


def _email_body(otp):
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 480px; margin: 0 auto; padding: 24px;">
      <h2 style="color: #111;">Verify your email</h2>
      <p>Use the code below to verify your email address on Grumming.</p>
      <p style="font-size: 32px; letter-spacing: 8px; font-weight: bold;">{otp}</p>
      <p style="color: #666;">This code expires in 10 minutes. If you did not request it, ignore this email.</p>
    </div>
    """


class OtpService:
    @staticmethod
    def _recent_attempts(phone, attempt_type, window_seconds):
        cutoff = utcnow() - timedelta(seconds=window_seconds)
        return (
            OtpRateLimit.query.filter(OtpRateLimit.phone == phone)
            .filter(OtpRateLimit.attempt_type == attempt_type)
            .filter(OtpRateLimit.attempted_at >= cutoff)
            .count()
        )

    @staticmethod
    def _whitelisted_code(phone):
        entry = TestPhoneWhitelist.query.filter_by(phone=phone, is_active=True).first()
        if entry:
            current_app.logger.info("Test phone detected: %s, using fixed OTP", mask_phone(phone))
            return entry.otp_code
        return None

    @staticmethod
    def validate_phone(phone):
        phone = (phone or "").strip()
        if not phone:
            raise ValidationError("Phone number is required", code="missing_fields")
        if not PHONE_PATTERN.match(phone):
            raise ValidationError(
                "Invalid Indian phone number format. Use +91XXXXXXXXXX (starting with 6-9)",
                code="invalid_format",
            )
        return phone

    @staticmethod
    def send_sms_otp(phone, ip_address=None, is_sign_up=None):
        config = current_app.config
        phone = OtpService.validate_phone(phone)
        current_app.logger.info("OTP requested for %s (sign up: %s)", mask_phone(phone), is_sign_up)

        if is_sign_up is not None:
            exists = User.query.filter_by(phone=phone).first() is not None
            if is_sign_up and exists:
                return {
                    "success": False,
                    "error": "Account already exists",
                    "code": "ACCOUNT_EXISTS",
                    "message": "This mobile number is already registered. Please login instead.",
                }
            if not is_sign_up and not exists:
                return {
                    "success": False,
                    "error": "No account found",
                    "code": "NO_ACCOUNT",
                    "message": "This mobile number is not registered. Please sign up first.",
                }

        sent_recently = OtpService._recent_attempts(phone, SEND_ATTEMPT, config["OTP_SEND_WINDOW_SECONDS"])
        if sent_recently >= config["OTP_SEND_MAX_ATTEMPTS"]:
            current_app.logger.info("Rate limit exceeded for %s: %s sends", mask_phone(phone), sent_recently)
            raise RateLimitError("Too many OTP requests. Please wait 1 minute before trying again.", code="rate_limited")

        test_code = OtpService._whitelisted_code(phone)
        otp = test_code or generate_otp()
        try:
            db.session.add(OtpRateLimit(phone=phone, attempt_type=SEND_ATTEMPT, ip_address=ip_address or "unknown"))
            PhoneOtp.query.filter_by(phone=phone).delete(synchronize_session=False)
            db.session.add(
                PhoneOtp(
                    phone=phone,
                    code_hash=_hash_code(otp),
                    expires_at=utcnow() + timedelta(seconds=config["SMS_OTP_TTL_SECONDS"]),
                    verified=False,
                )
            )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Database error storing OTP for %s: %s", mask_phone(phone), exc)
            raise AppError("Failed to generate OTP", 500, code="storage_error") from exc

        if test_code:
            current_app.logger.info("Test mode: OTP stored for %s, no SMS sent", mask_phone(phone))
            return {"success": True, "message": "OTP sent successfully", "isTestMode": True}

        provider = get_sms().send_otp(phone, otp)
        OtpService.cleanup_attempts()
        if not provider:
            raise AppError("Failed to send SMS. Please try again later.", 500, code="provider_error")
        return {"success": True, "message": "OTP sent successfully", "provider": provider}

    @staticmethod
    def verify_sms_otp(phone, otp, ip_address=None):
        """Consume the phone's pending code. Returns the phone on success."""
        config = current_app.config
        phone = (phone or "").strip()
        otp = str(otp or "").strip()
        if not phone or not otp:
            raise ValidationError("Phone and OTP are required", code="missing_fields")
        if not OTP_PATTERN.match(otp):
            raise ValidationError("OTP must be 6 digits", code="invalid_format")

        failures = OtpService._recent_attempts(phone, VERIFY_FAILED_ATTEMPT, config["OTP_VERIFY_WINDOW_SECONDS"])
        if failures >= config["OTP_VERIFY_MAX_FAILURES"]:
            current_app.logger.warning("Too many failed OTP checks for %s", mask_phone(phone))
            raise RateLimitError("Too many incorrect attempts. Please request a new OTP later.", code="rate_limited")

        record = (
            PhoneOtp.query.filter_by(phone=phone, verified=False)
            .order_by(PhoneOtp.created_at.desc(), PhoneOtp.id.desc())
            .first()
        )
        if not record:
            raise ValidationError("OTP not found. Please request a new one.", code="not_found")

        if utcnow() > as_utc(record.expires_at):
            db.session.delete(record)
            db.session.commit()
            raise ValidationError("OTP has expired. Please request a new one.", code="expired")

        if not _code_matches(record.code_hash, otp):
            db.session.add(OtpRateLimit(phone=phone, attempt_type=VERIFY_FAILED_ATTEMPT, ip_address=ip_address))
            db.session.commit()
            current_app.logger.info("OTP mismatch for %s", mask_phone(phone))
            raise ValidationError("Invalid OTP. Please try again.", code="mismatch")

        record.verified = True
        db.session.flush()
        db.session.delete(record)
        OtpRateLimit.query.filter_by(phone=phone, attempt_type=VERIFY_FAILED_ATTEMPT).delete(
            synchronize_session=False
        )
        db.session.commit()
        current_app.logger.info("OTP verified for %s", mask_phone(phone))
        return phone

    @staticmethod
    def _validate_email_request(user_id, email):
        email = (email or "").strip().lower()
        if not user_id or not email:
            raise ValidationError("User ID and email are required", code="missing_fields")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", code="invalid_format")
        return parse_id(user_id, "user_id"), email

    @staticmethod
    def send_email_otp(user_id, email):
        user_id, email = OtpService._validate_email_request(user_id, email)
        user = db.session.get(User, user_id)
        if not user:
            raise ValidationError("User not found", code="not_found")

        otp = generate_otp()
        try:
            EmailOtp.query.filter_by(user_id=user.id, email=email).delete(synchronize_session=False)
            db.session.add(
                EmailOtp(
                    user_id=user.id,
                    email=email,
                    code_hash=_hash_code(otp),
                    expires_at=utcnow() + timedelta(seconds=current_app.config["EMAIL_OTP_TTL_SECONDS"]),
                    verified=False,
                )
            )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Database error storing email OTP for user %s: %s", user.id, exc)
            raise AppError("Failed to generate OTP", 500, code="storage_error") from exc

        try:
            get_mailer().send(email, "Your Grumming verification code", _email_body(otp))
        except MailerError as exc:
            current_app.logger.error("Email OTP send failed for user %s: %s", user.id, exc)
            raise AppError("Failed to send verification email", 500, code="provider_error") from exc
        return {"success": True, "message": "OTP sent to your email"}

    @staticmethod
    def verify_email_otp(user_id, email, otp):
        user_id, email = OtpService._validate_email_request(user_id, email)
        otp = str(otp or "").strip()
        if not otp:
            raise ValidationError("OTP is required", code="missing_fields")

        record = (
            EmailOtp.query.filter_by(user_id=user_id, email=email, verified=False)
            .order_by(EmailOtp.created_at.desc(), EmailOtp.id.desc())
            .first()
        )
        if not record:
            raise ValidationError("OTP not found. Please request a new one.", code="not_found")

        if utcnow() > as_utc(record.expires_at):
            db.session.delete(record)
            db.session.commit()
            raise ValidationError("OTP has expired. Please request a new one.", code="expired")

        if not _code_matches(record.code_hash, otp):
            raise ValidationError("Invalid OTP. Please try again.", code="mismatch")

        user = db.session.get(User, record.user_id)
        if not user:
            raise ValidationError("User not found", code="not_found")

        record.verified = True
        user.email = email
        user.email_verified = True
        db.session.flush()
        db.session.delete(record)
        db.session.commit()
        current_app.logger.info("Email verified for user %s", user.id)
        return {"success": True, "message": "Email verified successfully"}

    @staticmethod
    def cleanup_attempts():
        cutoff = utcnow() - timedelta(seconds=current_app.config["OTP_ATTEMPT_RETENTION_SECONDS"])
        removed = OtpRateLimit.query.filter(OtpRateLimit.attempted_at < cutoff).delete(synchronize_session=False)
        expired = PhoneOtp.query.filter(PhoneOtp.expires_at < utcnow()).delete(synchronize_session=False)
        db.session.commit()
        return removed + expired
