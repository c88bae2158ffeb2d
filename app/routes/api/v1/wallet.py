from flask import Blueprint, jsonify, request

from app.services import WalletService

api_wallet_bp = Blueprint("api_wallet", __name__)


@api_wallet_bp.post("/create-wallet-topup-order")
def create_wallet_topup_order():
    payload = request.get_json(silent=True) or {}
    return jsonify(WalletService.create_topup_order(payload.get("amount"), payload.get("user_id")))


@api_wallet_bp.post("/verify-wallet-topup")
def verify_wallet_topup():
    payload = request.get_json(silent=True) or {}
    result = WalletService.verify_topup(
        payload.get("razorpay_order_id"),
        payload.get("razorpay_payment_id"),
        payload.get("razorpay_signature"),
        payload.get("user_id"),
        payload.get("amount"),
    )
    return jsonify(result)
