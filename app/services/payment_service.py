import json
import time
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.errors import AdmissionError, AppError, AuthenticationError, SignatureError, ValidationError
from app.extensions import db
from app.integrations import get_gateway
from app.models import Booking, CancellationPenalty, Payment
from app.models.base import CENT, to_minor_units, utcnow
from app.models.booking import PAYABLE_STATUSES
from app.services.platform_service import PlatformService
from app.services.receipt_service import ReceiptService
from app.services.validation import parse_amount, parse_id

CONFIRMING_EVENTS = {"payment.captured", "payment.authorized"}


def split_service_price(service_price, fee_pct):
    """Platform fee and salon share of a service price. Penalties never enter this split."""
    price = Decimal(str(service_price)).quantize(CENT)
    platform_fee = (price * Decimal(str(fee_pct)) / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    return platform_fee, price - platform_fee


def _epoch_ms():
    return int(time.time() * 1000)


class PaymentService:
    @staticmethod
    def _load_booking(booking_id):
        try:
            booking_pk = parse_id(booking_id, "booking_id")
        except ValidationError as exc:
            raise ValidationError("Invalid booking") from exc
        booking = db.session.get(Booking, booking_pk)
        if not booking:
            raise ValidationError("Invalid booking")
        return booking

    @staticmethod
    def _find_booking(booking_id):
        booking = db.session.get(Booking, parse_id(booking_id, "booking_id"))
        if not booking:
            raise AppError("Booking not found", 404, code="not_found")
        return booking

    @staticmethod
    def create_order(booking_id, currency="INR", receipt=None, notes=None, penalty_amount=0, amount_hint=None):
        if booking_id is None or booking_id == "":
            raise ValidationError("Booking ID is required", code="missing_fields")

        penalty = parse_amount(penalty_amount if penalty_amount is not None else 0, "penalty_amount")
        if penalty < 0:
            raise ValidationError("Invalid penalty_amount", code="invalid_format")
        if notes is not None and not isinstance(notes, dict):
            raise ValidationError("notes must be an object", code="invalid_format")

        booking = PaymentService._load_booking(booking_id)
        if booking.status not in PAYABLE_STATUSES:
            current_app.logger.warning("Booking %s status not payable: %s", booking.id, booking.status)
            raise AdmissionError("Booking cannot be paid for")

        total = Decimal(str(booking.service_price)) + penalty
        if amount_hint is not None:
            current_app.logger.debug("Ignoring client amount %s for booking %s", amount_hint, booking.id)
        current_app.logger.info(
            "Creating order for booking %s: service %s + penalty %s %s", booking.id, booking.service_price, penalty, currency
        )

        gateway = get_gateway()
        try:
            order = gateway.create_order(
                to_minor_units(total),
                currency or "INR",
                receipt or f"receipt_{_epoch_ms()}",
                notes={**(notes or {}), "booking_id": str(booking.id)},
            )
        except AppError as exc:
            current_app.logger.error("Order creation failed for booking %s: %s", booking.id, exc.message)
            raise AppError("Payment processing failed", 500, code="upstream") from exc

        current_app.logger.info("Order %s created for booking %s", order.get("id"), booking.id)
        return {
            "orderId": order.get("id"),
            "amount": order.get("amount"),
            "currency": order.get("currency"),
            "keyId": gateway.key_id,
        }

    @staticmethod
    def _captured_payment(booking, order_id, payment_id, fee_pct, payment_method="razorpay"):
        platform_fee, salon_amount = split_service_price(booking.service_price, fee_pct)
        payment = Payment.query.filter_by(razorpay_payment_id=payment_id).first()
        if payment is None:
            payment = Payment(razorpay_payment_id=payment_id)
            db.session.add(payment)
        payment.booking_id = booking.id
        payment.user_id = booking.user_id
        payment.salon_id = booking.salon_id
        payment.amount = Decimal(str(booking.service_price))
        payment.currency = "INR"
        payment.razorpay_order_id = order_id
        payment.payment_method = payment_method
        payment.platform_fee = platform_fee
        payment.salon_amount = salon_amount
        payment.fee_percentage = fee_pct
        if payment.status != "settled":
            payment.status = "captured"
        payment.captured_at = payment.captured_at or utcnow()
        return payment

    @staticmethod
    def _settle_penalties(booking):
        penalties = CancellationPenalty.query.filter_by(user_id=booking.user_id, is_paid=False, is_waived=False).all()
        now = utcnow()
        for penalty in penalties:
            penalty.is_paid = True
            penalty.paid_at = now
            penalty.paid_booking_id = booking.id
        if penalties:
            total = sum((Decimal(str(p.penalty_amount)) for p in penalties), Decimal("0"))
            current_app.logger.info("Marked %s penalties paid (%s platform revenue)", len(penalties), total)
        return penalties

    @staticmethod
    def _send_receipt(receipt):
        """Attempt delivery of a committed receipt. Nothing raised here reaches the payer."""
        reference = receipt.reference
        try:
            ReceiptService.dispatch(receipt)
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception("Receipt dispatch for %s crashed: %s", reference, exc)

    @staticmethod
    def _confirm_booking(booking, order_id, payment_id):
        """Record the captured payment, settle penalties and confirm the booking in one commit."""
        fee_pct = PlatformService.fee_percentage()
        try:
            payment = PaymentService._captured_payment(booking, order_id, payment_id, fee_pct)
            PaymentService._settle_penalties(booking)
            booking.status = "confirmed"
            booking.payment_id = payment_id
            receipt = ReceiptService.queue_payment_receipt(booking, payment_id, booking.service_price)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to confirm booking %s: %s", booking.id, exc)
            raise AppError("Failed to record payment", 500, code="storage_error") from exc

        current_app.logger.info(
            "Booking %s confirmed; payment %s fee %s salon %s",
            booking.id,
            payment_id,
            payment.platform_fee,
            payment.salon_amount,
        )
        PaymentService._send_receipt(receipt)
        return payment

    @staticmethod
    def verify_payment(order_id, payment_id, signature, booking_id=None):
        gateway = get_gateway()
        current_app.logger.info("Verifying payment %s for order %s", payment_id, order_id)
        if not gateway.verify_signature(order_id, payment_id, signature):
            current_app.logger.error("Signature verification failed for order %s", order_id)
            raise SignatureError("Payment verification failed")

        if booking_id is None or booking_id == "":
            return {"success": True, "message": "Payment verified successfully", "payment_id": payment_id}

        booking = PaymentService._load_booking(booking_id)
        PaymentService._confirm_booking(booking, order_id, payment_id)
        return {"success": True, "message": "Payment verified successfully", "payment_id": payment_id}

    @staticmethod
    def handle_webhook(raw_body, signature):
        """Apply a signed Razorpay webhook. Captured payments confirm the booking named in the notes."""
        gateway = get_gateway()
        if not signature:
            current_app.logger.warning("Webhook received without signature")
            raise AuthenticationError("Signature required")
        if not gateway.verify_webhook_signature(raw_body, signature):
            current_app.logger.error("Invalid webhook signature")
            raise AuthenticationError("Invalid signature")

        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid webhook payload", code="invalid_format") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Invalid webhook payload", code="invalid_format")

        event = payload.get("event")
        entities = payload.get("payload") or {}
        current_app.logger.info("Webhook event: %s", event)

        if event in CONFIRMING_EVENTS:
            payment = (entities.get("payment") or {}).get("entity")
            if not payment or not payment.get("id"):
                return {"received": True}
            booking_id = (payment.get("notes") or {}).get("booking_id")
            if not booking_id:
                current_app.logger.warning("Payment %s carries no booking_id note", payment.get("id"))
                return {"received": True, "warning": "No booking_id"}
            booking = PaymentService._find_booking(booking_id)
            if booking.status == "confirmed" and booking.payment_id == payment.get("id"):
                current_app.logger.info("Booking %s already confirmed with %s", booking.id, payment.get("id"))
                return {"received": True, "already_processed": True}
            PaymentService._confirm_booking(booking, payment.get("order_id"), payment.get("id"))
            return {"received": True, "booking_confirmed": True, "booking_id": booking.id}

        if event == "payment.failed":
            payment = (entities.get("payment") or {}).get("entity") or {}
            booking_id = (payment.get("notes") or {}).get("booking_id")
            if booking_id:
                booking = PaymentService._find_booking(booking_id)
                if booking.status != "confirmed":
                    booking.status = "payment_failed"
                    db.session.commit()
                current_app.logger.info(
                    "Payment failed for booking %s: %s", booking.id, payment.get("error_description") or "unknown"
                )
            return {"received": True, "event": event}

        if event == "order.paid":
            order = (entities.get("order") or {}).get("entity") or {}
            return {"received": True, "event": event, "booking_id": (order.get("notes") or {}).get("booking_id")}

        current_app.logger.info("Unhandled webhook event: %s", event)
        return {"received": True, "event": event}

    @staticmethod
    def reconcile_order(booking_id, order_id):
        """Ask the gateway what happened to an order whose checkout callback never arrived."""
        if not booking_id or not order_id:
            raise ValidationError("booking_id and razorpay_order_id are required", code="missing_fields")
        booking = PaymentService._find_booking(booking_id)
        if booking.payment_id and booking.status == "confirmed":
            return {"status": "captured", "payment_id": booking.payment_id}

        payments = get_gateway().order_payments(order_id)
        if not payments:
            return {"status": "cancelled", "payments_count": 0}

        captured = next((p for p in payments if p.get("status") == "captured" or p.get("captured") is True), None)
        if captured is None:
            return {
                "status": "pending",
                "payments_count": len(payments),
                "last_payment_status": payments[0].get("status"),
            }

        noted_booking = (captured.get("notes") or {}).get("booking_id")
        if noted_booking and str(noted_booking) != str(booking.id):
            current_app.logger.warning("Order %s belongs to booking %s, not %s", order_id, noted_booking, booking.id)
            raise AdmissionError("Order does not belong to this booking")

        PaymentService._confirm_booking(booking, order_id, captured["id"])
        return {"status": "captured", "payment_id": captured["id"]}

    @staticmethod
    def process_payment(user, booking_id, order_id, payment_id=None, payment_method=None):
        """Record a payment row for the caller's own booking; every amount comes from the booking."""
        if not booking_id or not order_id:
            raise ValidationError(
                "Missing required fields: booking_id and razorpay_order_id", code="missing_fields"
            )
        booking = PaymentService._find_booking(booking_id)
        if booking.user_id != user.id:
            current_app.logger.warning("User %s does not own booking %s", user.id, booking.id)
            raise AppError("You do not own this booking", 403, code="forbidden")

        fee_pct = PlatformService.fee_percentage()
        try:
            if payment_id:
                payment = PaymentService._captured_payment(
                    booking, order_id, payment_id, fee_pct, payment_method=payment_method or "razorpay"
                )
            else:
                platform_fee, salon_amount = split_service_price(booking.service_price, fee_pct)
                payment = Payment(
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    salon_id=booking.salon_id,
                    amount=Decimal(str(booking.service_price)),
                    currency="INR",
                    status="pending",
                    payment_method=payment_method,
                    razorpay_order_id=order_id,
                    platform_fee=platform_fee,
                    salon_amount=salon_amount,
                    fee_percentage=fee_pct,
                )
                db.session.add(payment)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Payment insert failed for booking %s: %s", booking.id, exc)
            raise AppError("Failed to record payment", 500, code="storage_error") from exc

        current_app.logger.info("Payment %s recorded for booking %s (%s)", payment.id, booking.id, payment.status)
        return {
            "success": True,
            "payment_id": payment.id,
            "platform_fee": float(payment.platform_fee),
            "salon_amount": float(payment.salon_amount),
        }
