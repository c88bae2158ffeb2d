from flask import Blueprint, jsonify, request
from flask_login import login_required, login_user, logout_user

from app.extensions import limiter
from app.services import AuthService, OtpService

api_auth_bp = Blueprint("api_auth", __name__)


def _client_ip():
    return request.remote_addr or "unknown"


def _flag(value):
    if value is True or str(value).lower() in {"true", "1"}:
        return True
    if value is False or str(value).lower() in {"false", "0"}:
        return False
    return None


def _sign_in(user, created):
    login_user(user, remember=True)
    return {
        "success": True,
        "isNewUser": created,
        "userId": user.id,
        "phone": user.phone,
        "verificationUrl": AuthService.issue_login_link(user),
    }


@api_auth_bp.post("/send-sms-otp")
@limiter.limit("10 per minute")
def send_sms_otp():
    payload = request.get_json(silent=True) or {}
    result = OtpService.send_sms_otp(
        payload.get("phone"),
        ip_address=_client_ip(),
        is_sign_up=_flag(payload.get("isSignUp")),
    )
    return jsonify(result)


@api_auth_bp.post("/verify-sms-otp")
@limiter.limit("20 per minute")
def verify_sms_otp():
    payload = request.get_json(silent=True) or {}
    phone = OtpService.verify_sms_otp(payload.get("phone"), payload.get("otp"), ip_address=_client_ip())
    user, created = AuthService.login_with_phone(phone)
    body = _sign_in(user, created)
    body["message"] = "Phone verified successfully"
    return jsonify(body)


@api_auth_bp.post("/send-email-otp")
@limiter.limit("10 per minute")
def send_email_otp():
    payload = request.get_json(silent=True) or {}
    return jsonify(OtpService.send_email_otp(payload.get("user_id"), payload.get("email")))


@api_auth_bp.post("/verify-email-otp")
@limiter.limit("20 per minute")
def verify_email_otp():
    payload = request.get_json(silent=True) or {}
    return jsonify(OtpService.verify_email_otp(payload.get("user_id"), payload.get("email"), payload.get("otp")))


@api_auth_bp.post("/firebase-auth")
@limiter.limit("20 per minute")
def firebase_auth():
    payload = request.get_json(silent=True) or {}
    user, created = AuthService.login_with_firebase(payload.get("firebaseIdToken"), payload.get("phone"))
    body = _sign_in(user, created)
    body.pop("phone")
    return jsonify(body)


@api_auth_bp.get("/session/<token>")
def consume_login_link(token):
    user = AuthService.consume_login_link(token)
    login_user(user, remember=True)
    return jsonify({"success": True, "userId": user.id, "role": user.role})


@api_auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})
