from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.errors import AppError, AuthenticationError, ValidationError
from app.extensions import db
from app.integrations import get_firebase, mask_phone
from app.models import User
from app.models.base import as_utc, utcnow

LOGIN_LINK_SALT = "login-link"


class AuthService:
    @staticmethod
    def _serializer():
        return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=LOGIN_LINK_SALT)

    @staticmethod
    def _find_or_create_by_phone(phone, firebase_uid=None):
        user = User.query.filter_by(phone=phone).first()
        created = False
        if user is None:
            user = User(phone=phone, role="customer", firebase_uid=firebase_uid)
            db.session.add(user)
            created = True
        elif firebase_uid and not user.firebase_uid:
            user.firebase_uid = firebase_uid
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403, code="inactive")
        user.last_login = utcnow()
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to persist user for %s: %s", mask_phone(phone), exc)
            raise AppError("Failed to create user", 500, code="storage_error") from exc
        if created:
            current_app.logger.info("Created user %s for %s", user.id, mask_phone(phone))
        return user, created

    @staticmethod
    def login_with_phone(phone):
        """Resolve a phone that has just proven possession to its user, registering on first sight."""
        return AuthService._find_or_create_by_phone(phone)

    @staticmethod
    def login_with_firebase(id_token, phone):
        if not id_token or not phone:
            raise ValidationError("Missing required fields", code="missing_fields")

        account = get_firebase().lookup(id_token)
        phone = str(phone).strip()
        if not phone.startswith("+"):
            phone = f"+{phone}"
        verified_phone = account.get("phoneNumber")
        if verified_phone and verified_phone != phone:
            current_app.logger.warning(
                "Firebase phone %s does not match requested %s", mask_phone(verified_phone), mask_phone(phone)
            )
            raise AuthenticationError("Phone number does not match Firebase token")
        return AuthService._find_or_create_by_phone(phone, firebase_uid=account.get("localId"))

    @staticmethod
    def _login_marker(user):
        # Changes on every login, so a link stops working once any login has used it.
        return as_utc(user.last_login).timestamp() if user.last_login else None

    @staticmethod
    def issue_login_link(user):
        token = AuthService._serializer().dumps({"uid": user.id, "seen": AuthService._login_marker(user)})
        base = current_app.config["PUBLIC_BASE_URL"].rstrip("/")
        return f"{base}/api/v1/auth/session/{token}"

    @staticmethod
    def consume_login_link(token):
        max_age = current_app.config["LOGIN_LINK_MAX_AGE_SECONDS"]
        try:
            data = AuthService._serializer().loads(token, max_age=max_age)
        except SignatureExpired as exc:
            raise AuthenticationError("Login link has expired") from exc
        except BadSignature as exc:
            raise AuthenticationError("Invalid login link") from exc

        user = db.session.get(User, data.get("uid"))
        if not user or not user.is_active_user:
            raise AuthenticationError("Invalid login link")
        if data.get("seen") != AuthService._login_marker(user):
            raise AuthenticationError("Login link has already been used")
        user.last_login = utcnow()
        db.session.commit()
        return user
