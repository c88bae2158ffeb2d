from datetime import timedelta

from app.extensions import db
from app.models import EmailOtp, OtpRateLimit, PhoneOtp, TestPhoneWhitelist, User
from app.models.base import utcnow

PHONE = "+919812345678"


def _send(client, phone=PHONE, **extra):
    return client.post("/api/v1/auth/send-sms-otp", json={"phone": phone, **extra})


def _verify(client, otp, phone=PHONE):
    return client.post("/api/v1/auth/verify-sms-otp", json={"phone": phone, "otp": otp})


def _backdate_attempts(seconds):
    for attempt in OtpRateLimit.query.all():
        attempt.attempted_at = utcnow() - timedelta(seconds=seconds)
    db.session.commit()


def test_send_stores_hashed_code_and_dispatches(client, sms):
    resp = _send(client)

    assert resp.status_code == 200
    assert resp.get_json()["success"] is True
    phone, otp = sms.sent[0]
    assert phone == PHONE
    assert len(otp) == 6 and otp.isdigit()
    record = PhoneOtp.query.one()
    assert record.code_hash != otp
    assert record.verified is False


def test_missing_phone(client):
    resp = client.post("/api/v1/auth/send-sms-otp", json={})

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "missing_fields"


def test_phone_format_enforced(client, sms):
    for bad in ["9812345678", "+915812345678", "+91981234567", "+14155550100"]:
        resp = _send(client, phone=bad)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_format"
    assert sms.sent == []


def test_fourth_send_in_window_is_rate_limited(client, sms):
    for _ in range(3):
        assert _send(client).status_code == 200

    resp = _send(client)

    assert resp.status_code == 429
    assert resp.get_json()["code"] == "rate_limited"
    assert len(sms.sent) == 3


def test_send_allowed_again_after_window(client, sms):
    for _ in range(3):
        _send(client)
    _backdate_attempts(61)

    resp = _send(client)

    assert resp.status_code == 200
    assert len(sms.sent) == 4


def test_attempts_record_ip(client):
    _send(client)

    assert OtpRateLimit.query.one().ip_address == "127.0.0.1"


def test_resend_replaces_previous_code(client, sms):
    _send(client)
    _send(client)

    assert PhoneOtp.query.count() == 1
    first_code = sms.sent[0][1]
    latest_code = sms.sent[1][1]
    if first_code != latest_code:
        assert _verify(client, first_code).get_json()["code"] == "mismatch"
    assert _verify(client, latest_code).status_code == 200


def test_provider_failure(client, sms):
    sms.fail = True

    resp = _send(client)

    assert resp.status_code == 500
    assert resp.get_json()["code"] == "provider_error"


def test_whitelisted_phone_skips_sms(client, sms):
    db.session.add(TestPhoneWhitelist(phone=PHONE, otp_code="123456"))
    db.session.commit()

    resp = _send(client)

    assert resp.get_json()["isTestMode"] is True
    assert sms.sent == []
    assert _verify(client, "123456").status_code == 200


def test_sign_up_gating(client, make_user, sms):
    make_user(phone=PHONE)

    exists = _send(client, isSignUp=True)
    assert exists.status_code == 200
    assert exists.get_json()["code"] == "ACCOUNT_EXISTS"

    missing = _send(client, phone="+919800000001", isSignUp=False)
    assert missing.status_code == 200
    assert missing.get_json()["code"] == "NO_ACCOUNT"

    assert sms.sent == []


def test_sign_up_flag_sent_as_string(client, make_user, sms):
    make_user(phone=PHONE)

    exists = _send(client, isSignUp="true")
    assert exists.get_json()["code"] == "ACCOUNT_EXISTS"

    missing = _send(client, phone="+919800000001", isSignUp="false")
    assert missing.get_json()["code"] == "NO_ACCOUNT"

    assert sms.sent == []


def test_unrecognised_sign_up_flag_is_ignored(client, sms):
    resp = _send(client, isSignUp="maybe")

    assert resp.get_json()["success"] is True
    assert len(sms.sent) == 1


def test_verify_creates_user_and_signs_in(client, sms):
    _send(client)
    otp = sms.sent[0][1]

    resp = _verify(client, otp)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["isNewUser"] is True
    user = User.query.filter_by(phone=PHONE).one()
    assert body["userId"] == user.id
    assert body["verificationUrl"].startswith("http://testserver/api/v1/auth/session/")
    assert PhoneOtp.query.count() == 0


def test_verify_existing_user(client, sms, make_user):
    user = make_user(phone=PHONE)
    _send(client)

    body = _verify(client, sms.sent[0][1]).get_json()

    assert body["isNewUser"] is False
    assert body["userId"] == user.id


def test_code_is_single_use(client, sms):
    _send(client)
    otp = sms.sent[0][1]
    assert _verify(client, otp).status_code == 200

    resp = _verify(client, otp)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "not_found"


def test_expired_code_rejected_even_if_correct(client, sms):
    _send(client)
    otp = sms.sent[0][1]
    record = PhoneOtp.query.one()
    record.expires_at = utcnow() - timedelta(seconds=1)
    db.session.commit()

    resp = _verify(client, otp)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "expired"
    assert PhoneOtp.query.count() == 0


def test_wrong_code_is_mismatch(client, sms):
    _send(client)
    wrong = "111111" if sms.sent[0][1] != "111111" else "222222"

    resp = _verify(client, wrong)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "mismatch"
    assert OtpRateLimit.query.filter_by(attempt_type="verify_failed").count() == 1


def test_verify_requires_six_digits(client):
    resp = _verify(client, "12ab")

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_format"


def test_guessing_is_bounded(client, sms):
    _send(client)
    otp = sms.sent[0][1]
    wrong = "111111" if otp != "111111" else "222222"
    for _ in range(5):
        assert _verify(client, wrong).get_json()["code"] == "mismatch"

    resp = _verify(client, otp)

    assert resp.status_code == 429
    assert resp.get_json()["code"] == "rate_limited"


def test_email_otp_round_trip_updates_profile(client, mailer, make_user, monkeypatch):
    monkeypatch.setattr("app.services.otp_service.generate_otp", lambda: "654321")
    user = make_user()

    sent = client.post("/api/v1/auth/send-email-otp", json={"user_id": user.id, "email": "Asha@Example.com"})
    assert sent.status_code == 200
    assert mailer.sent[0]["to"] == "asha@example.com"
    assert "654321" in mailer.sent[0]["html"]

    resp = client.post(
        "/api/v1/auth/verify-email-otp",
        json={"user_id": user.id, "email": "asha@example.com", "otp": "654321"},
    )

    assert resp.status_code == 200
    db.session.refresh(user)
    assert user.email == "asha@example.com"
    assert user.email_verified is True
    assert EmailOtp.query.count() == 0


def test_email_otp_validation(client, make_user):
    user = make_user()

    assert client.post("/api/v1/auth/send-email-otp", json={"user_id": user.id}).status_code == 400
    bad = client.post("/api/v1/auth/send-email-otp", json={"user_id": user.id, "email": "not-an-email"})
    assert bad.get_json()["code"] == "invalid_format"
    unknown = client.post("/api/v1/auth/send-email-otp", json={"user_id": 999, "email": "a@b.co"})
    assert unknown.status_code == 400


def test_email_provider_failure(client, mailer, make_user):
    mailer.fail = True
    user = make_user()

    resp = client.post("/api/v1/auth/send-email-otp", json={"user_id": user.id, "email": "a@b.co"})

    assert resp.status_code == 500
    assert resp.get_json()["code"] == "provider_error"


def test_expired_email_code_rejected(client, mailer, make_user):
    user = make_user()
    client.post("/api/v1/auth/send-email-otp", json={"user_id": user.id, "email": "a@b.co"})
    record = EmailOtp.query.one()
    record.expires_at = utcnow() - timedelta(minutes=1)
    db.session.commit()

    resp = client.post("/api/v1/auth/verify-email-otp", json={"user_id": user.id, "email": "a@b.co", "otp": "123456"})

    assert resp.get_json()["code"] == "expired"
    db.session.refresh(user)
    assert user.email_verified is False


def test_cleanup_removes_old_attempts(app, client):
    from app.services import OtpService

    _send(client)
    _backdate_attempts(2 * 60 * 60)

    OtpService.cleanup_attempts()

    assert OtpRateLimit.query.count() == 0


def test_whitelist_command_stores_fixed_code(app):
    result = app.test_cli_runner().invoke(args=["whitelist-test-phone", PHONE, "246810"])

    assert result.exit_code == 0
    entry = TestPhoneWhitelist.query.filter_by(phone=PHONE).one()
    assert entry.otp_code == "246810"
    assert entry.is_active is True


def test_whitelist_command_rejects_malformed_code(app):
    result = app.test_cli_runner().invoke(args=["whitelist-test-phone", PHONE, "1234"])

    assert result.exit_code != 0
    assert "6 digits" in result.output
    assert TestPhoneWhitelist.query.count() == 0
