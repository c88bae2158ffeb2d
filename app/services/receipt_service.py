from decimal import Decimal

from flask import current_app
from markupsafe import escape

from app.extensions import db
from app.integrations import get_mailer
from app.integrations.mailer import MailerError
from app.models import EmailOutbox
from app.models.base import utcnow

PAYMENT_RECEIPT = "payment_receipt"


def _receipt_html(customer_name, salon_name, service_name, amount, payment_id, booking_id, paid_on):
    return f"""
    <!DOCTYPE html>
    <html>
      <body style="font-family: Arial, sans-serif; background: #f6f6f6; padding: 24px;">
        <div style="max-width: 560px; margin: 0 auto; background: #fff; border-radius: 12px; padding: 24px;">
          <h2 style="margin-top: 0;">Payment received</h2>
          <p>Hi {escape(customer_name)}, thank you for your payment.</p>
          <table style="width: 100%; border-collapse: collapse;">
            <tr><td>Salon</td><td style="text-align: right;">{escape(salon_name)}</td></tr>
            <tr><td>Service</td><td style="text-align: right;">{escape(service_name)}</td></tr>
            <tr><td>Amount paid</td><td style="text-align: right;">&#8377;{amount:.2f}</td></tr>
            <tr><td>Payment ID</td><td style="text-align: right;">{escape(payment_id)}</td></tr>
            <tr><td>Booking ID</td><td style="text-align: right;">{escape(booking_id)}</td></tr>
            <tr><td>Date</td><td style="text-align: right;">{escape(paid_on)}</td></tr>
          </table>
          <p style="color: #888; font-size: 12px;">This is an automated receipt from Grumming.</p>
        </div>
      </body>
    </html>
    """


class ReceiptService:
    @staticmethod
    def queue_payment_receipt(booking, payment_id, amount):
        """Add a receipt row to the session; the caller commits it with the payment."""
        user = booking.user
        amount = Decimal(str(amount))
        row = EmailOutbox(
            kind=PAYMENT_RECEIPT,
            recipient=user.email if user else None,
            subject=f"Payment receipt for your booking at {booking.salon_name or 'Grumming'}",
            html=_receipt_html(
                customer_name=(user.full_name if user else None) or "Valued Customer",
                salon_name=booking.salon_name or (booking.salon.name if booking.salon else ""),
                service_name=booking.service_name or "",
                amount=amount,
                payment_id=payment_id,
                booking_id=str(booking.id),
                paid_on=utcnow().strftime("%d %B %Y, %H:%M UTC"),
            ),
            reference=payment_id,
            status="pending",
        )
        if not row.recipient:
            row.status = "skipped"
            row.last_error = "No email configured for user"
        db.session.add(row)
        return row

    @staticmethod
    def dispatch(row):
        """Try to deliver one outbox row. Failures stay on the row; nothing is raised."""
        if row.status not in {"pending", "failed"}:
            return row
        row.attempts = (row.attempts or 0) + 1
        try:
            get_mailer().send(row.recipient, row.subject, row.html)
        except MailerError as exc:
            row.status = "failed"
            row.last_error = str(exc)
            current_app.logger.error("Receipt %s delivery failed (attempt %s): %s", row.id, row.attempts, exc)
        else:
            row.status = "sent"
            row.sent_at = utcnow()
            row.last_error = None
            current_app.logger.info("Receipt %s sent for %s", row.id, row.reference)
        db.session.commit()
        return row

    @staticmethod
    def dispatch_pending(limit=100):
        max_attempts = current_app.config["RECEIPT_MAX_ATTEMPTS"]
        rows = (
            EmailOutbox.query.filter(EmailOutbox.status.in_(["pending", "failed"]))
            .filter(EmailOutbox.attempts < max_attempts)
            .order_by(EmailOutbox.created_at.asc(), EmailOutbox.id.asc())
            .limit(limit)
            .all()
        )
        sent = 0
        for row in rows:
            if ReceiptService.dispatch(row).status == "sent":
                sent += 1
        return {"attempted": len(rows), "sent": sent}
