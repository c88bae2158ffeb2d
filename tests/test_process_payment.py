from decimal import Decimal

from app.models import Payment


def test_requires_login(client, make_booking):
    booking = make_booking()

    resp = client.post(
        "/api/v1/payments/process-payment",
        json={"booking_id": booking.id, "razorpay_order_id": "order_1"},
    )

    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_records_pending_payment_from_booking(client, login, make_booking):
    booking = make_booking(service_price="500.00")
    login(booking.user)

    resp = client.post(
        "/api/v1/payments/process-payment",
        json={
            "booking_id": booking.id,
            "razorpay_order_id": "order_1",
            "amount": 1,
            "fee_percentage": 0,
            "salon_id": 999,
        },
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["platform_fee"] == 40.0
    assert body["salon_amount"] == 460.0

    payment = Payment.query.one()
    assert payment.id == body["payment_id"]
    assert payment.status == "pending"
    assert payment.salon_id == booking.salon_id
    assert Decimal(str(payment.amount)) == Decimal("500.00")
    assert payment.captured_at is None


def test_gateway_payment_id_marks_captured(client, login, make_booking):
    booking = make_booking()
    login(booking.user)

    resp = client.post(
        "/api/v1/payments/process-payment",
        json={"booking_id": booking.id, "razorpay_order_id": "order_1", "razorpay_payment_id": "pay_9"},
    )

    assert resp.status_code == 200
    payment = Payment.query.one()
    assert payment.status == "captured"
    assert payment.razorpay_payment_id == "pay_9"
    assert payment.captured_at is not None


def test_missing_fields_rejected(client, login, make_booking):
    booking = make_booking()
    login(booking.user)

    resp = client.post("/api/v1/payments/process-payment", json={"booking_id": booking.id})

    assert resp.status_code == 400


def test_unknown_booking_is_404(client, login, make_user):
    login(make_user())

    resp = client.post("/api/v1/payments/process-payment", json={"booking_id": 777, "razorpay_order_id": "order_1"})

    assert resp.status_code == 404


def test_other_users_booking_is_403(client, login, make_user, make_booking):
    booking = make_booking()
    login(make_user(email="intruder@example.com"))

    resp = client.post(
        "/api/v1/payments/process-payment",
        json={"booking_id": booking.id, "razorpay_order_id": "order_1"},
    )

    assert resp.status_code == 403
    assert Payment.query.count() == 0
