from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from app.decorators import role_required
from app.services import PaymentService, SettlementService

api_payment_bp = Blueprint("api_payment", __name__)


@api_payment_bp.post("/create-razorpay-order")
def create_razorpay_order():
    payload = request.get_json(silent=True) or {}
    order = PaymentService.create_order(
        booking_id=payload.get("booking_id"),
        currency=payload.get("currency") or "INR",
        receipt=payload.get("receipt"),
        notes=payload.get("notes"),
        penalty_amount=payload.get("penalty_amount", 0),
        amount_hint=payload.get("amount"),
    )
    return jsonify(order)


@api_payment_bp.post("/verify-razorpay-payment")
def verify_razorpay_payment():
    payload = request.get_json(silent=True) or {}
    result = PaymentService.verify_payment(
        payload.get("razorpay_order_id"),
        payload.get("razorpay_payment_id"),
        payload.get("razorpay_signature"),
        booking_id=payload.get("booking_id"),
    )
    return jsonify(result)


@api_payment_bp.post("/razorpay-webhook")
def razorpay_webhook():
    raw_body = request.get_data(cache=False)
    result = PaymentService.handle_webhook(raw_body, request.headers.get("X-Razorpay-Signature"))
    return jsonify(result)


@api_payment_bp.post("/reconcile-razorpay-order")
def reconcile_razorpay_order():
    payload = request.get_json(silent=True) or {}
    return jsonify(PaymentService.reconcile_order(payload.get("booking_id"), payload.get("razorpay_order_id")))


@api_payment_bp.post("/process-payment")
@login_required
def process_payment():
    payload = request.get_json(silent=True) or {}
    result = PaymentService.process_payment(
        current_user,
        payload.get("booking_id"),
        payload.get("razorpay_order_id"),
        payment_id=payload.get("razorpay_payment_id"),
        payment_method=payload.get("payment_method"),
    )
    return jsonify(result)


@api_payment_bp.post("/sync-settlements")
@role_required("admin")
def sync_settlements():
    return jsonify(SettlementService.sync())
