import time
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.errors import AppError, SignatureError, ValidationError
from app.extensions import db
from app.integrations import get_gateway
from app.models import User, Wallet, WalletTransaction
from app.models.base import CENT, to_minor_units, utcnow
from app.services.validation import parse_amount, parse_id


class WalletService:
    @staticmethod
    def _validate_amount(amount):
        if amount is None or amount == "":
            raise ValidationError("Amount and user ID are required", code="missing_fields")
        value = parse_amount(amount)
        low = Decimal(str(current_app.config["WALLET_TOPUP_MIN"]))
        high = Decimal(str(current_app.config["WALLET_TOPUP_MAX"]))
        if value < low or value > high:
            current_app.logger.warning("Wallet top-up amount out of range: %s", value)
            raise ValidationError(f"Amount must be between ₹{low} and ₹{high:,}", code="out_of_range")
        return value.quantize(CENT)

    @staticmethod
    def _load_user(user_id):
        try:
            user = db.session.get(User, parse_id(user_id, "user_id"))
        except ValidationError as exc:
            raise ValidationError("Invalid user") from exc
        if not user:
            raise ValidationError("Invalid user")
        return user

    @staticmethod
    def get_or_create_wallet(user_id):
        wallet = Wallet.query.filter_by(user_id=user_id).first()
        if wallet:
            return wallet
        try:
            wallet = Wallet(user_id=user_id, balance=0, total_earned=0, total_spent=0)
            db.session.add(wallet)
            db.session.commit()
        except IntegrityError:
            # Another request created it first.
            db.session.rollback()
            wallet = Wallet.query.filter_by(user_id=user_id).first()
        return wallet

    @staticmethod
    def _check_order(order, value, user):
        """The order must be a top-up for this user and this exact amount."""
        notes = order.get("notes") or {}
        if (
            notes.get("type") != "wallet_topup"
            or str(notes.get("user_id")) != str(user.id)
            or int(order.get("amount") or 0) != to_minor_units(value)
        ):
            current_app.logger.warning(
                "Top-up of %s for user %s does not match order %s", value, user.id, order.get("id")
            )
            raise ValidationError("Top-up does not match the payment order", code="mismatch")

    @staticmethod
    def _credited(wallet, payment_id):
        return (
            WalletTransaction.query.filter_by(wallet_id=wallet.id, type="credit", reference_id=payment_id).first()
            is not None
        )

    @staticmethod
    def _already_credited(wallet, payment_id):
        current_app.logger.info("Top-up %s already credited to wallet %s", payment_id, wallet.id)
        db.session.refresh(wallet)
        return {
            "success": True,
            "message": "Wallet already credited",
            "payment_id": payment_id,
            "new_balance": float(wallet.balance),
        }

    @staticmethod
    def create_topup_order(amount, user_id):
        if amount in (None, "") or user_id in (None, ""):
            raise ValidationError("Amount and user ID are required", code="missing_fields")
        value = WalletService._validate_amount(amount)
        user = WalletService._load_user(user_id)

        current_app.logger.info("Creating wallet top-up order for user %s, amount %s", user.id, value)
        gateway = get_gateway()
        try:
            order = gateway.create_order(
                to_minor_units(value),
                "INR",
                f"wallet_topup_{int(time.time() * 1000)}",
                notes={"type": "wallet_topup", "user_id": str(user.id), "amount": str(value)},
            )
        except AppError as exc:
            current_app.logger.error("Wallet top-up order failed for user %s: %s", user.id, exc.message)
            raise AppError("Payment processing failed", 500, code="upstream") from exc

        return {
            "orderId": order.get("id"),
            "amount": order.get("amount"),
            "currency": order.get("currency"),
            "keyId": gateway.key_id,
        }

    @staticmethod
    def verify_topup(order_id, payment_id, signature, user_id, amount):
        gateway = get_gateway()
        current_app.logger.info("Verifying wallet top-up payment %s for user %s", payment_id, user_id)
        if not gateway.verify_signature(order_id, payment_id, signature):
            current_app.logger.error("Wallet top-up signature verification failed for order %s", order_id)
            raise SignatureError("Payment verification failed")

        value = WalletService._validate_amount(amount)
        user = WalletService._load_user(user_id)
        WalletService._check_order(gateway.fetch_order(order_id), value, user)
        wallet = WalletService.get_or_create_wallet(user.id)

        if WalletService._credited(wallet, payment_id):
            return WalletService._already_credited(wallet, payment_id)

        try:
            Wallet.query.filter_by(id=wallet.id).update(
                {
                    Wallet.balance: Wallet.balance + value,
                    Wallet.total_earned: Wallet.total_earned + value,
                    Wallet.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
            db.session.add(
                WalletTransaction(
                    wallet_id=wallet.id,
                    user_id=user.id,
                    amount=value,
                    type="credit",
                    category="manual",
                    description="Wallet top-up via Razorpay",
                    reference_id=payment_id,
                )
            )
            db.session.commit()
        except IntegrityError:
            # A concurrent verify recorded this payment first; its credit stands.
            db.session.rollback()
            return WalletService._already_credited(wallet, payment_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to credit wallet %s: %s", wallet.id, exc)
            raise AppError("Failed to credit wallet", 500, code="storage_error") from exc

        db.session.refresh(wallet)
        current_app.logger.info("Wallet %s credited %s; balance %s", wallet.id, value, wallet.balance)
        return {
            "success": True,
            "message": "Wallet credited successfully",
            "payment_id": payment_id,
            "new_balance": float(wallet.balance),
        }
