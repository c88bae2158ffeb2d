import hashlib
import hmac
import logging

from app.errors import ConfigurationError, UpstreamError


def compute_signature(order_id, payment_id, secret):
    """Hex HMAC-SHA256 of ``order_id|payment_id``, the value Razorpay sends back to checkout."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def compute_webhook_signature(body, secret):
    """Hex HMAC-SHA256 of the raw webhook body, as sent in ``X-Razorpay-Signature``."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(self, key_id, key_secret, webhook_secret=None, logger=None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret or key_secret
        self.logger = logger or logging.getLogger(__name__)
        self._api = None

    @property
    def is_configured(self):
        return bool(self.key_id and self.key_secret)

    def _client(self):
        if self._api is not None:
            return self._api
        if not self.is_configured:
            self.logger.error("Razorpay credentials not configured")
            raise ConfigurationError("Payment gateway not configured")
        import razorpay

        self._api = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._api

    def create_order(self, amount_minor, currency, receipt, notes=None):
        client = self._client()
        try:
            return client.order.create(
                {
                    "amount": int(amount_minor),
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes or {},
                }
            )
        except Exception as exc:
            self.logger.exception("Razorpay order creation failed: %s", exc)
            raise UpstreamError("Payment processing failed") from exc

    def fetch_order(self, order_id):
        client = self._client()
        try:
            return client.order.fetch(order_id)
        except Exception as exc:
            self.logger.exception("Razorpay order %s fetch failed: %s", order_id, exc)
            raise UpstreamError("Failed to fetch order") from exc

    def order_payments(self, order_id):
        client = self._client()
        try:
            data = client.order.payments(order_id)
        except Exception as exc:
            self.logger.exception("Razorpay order %s payments fetch failed: %s", order_id, exc)
            raise UpstreamError("Failed to fetch payment status") from exc
        return (data or {}).get("items") or []

    def list_settlements(self, count=50):
        client = self._client()
        try:
            data = client.settlement.all({"count": count})
        except Exception as exc:
            self.logger.exception("Razorpay settlements fetch failed: %s", exc)
            raise UpstreamError("Failed to fetch settlements") from exc
        return (data or {}).get("items") or []

    def settlement_transactions(self, settlement_id, count=100):
        client = self._client()
        try:
            data = client.get(f"/v1/settlements/{settlement_id}/transactions", {"count": count})
        except Exception as exc:
            self.logger.exception("Razorpay settlement %s transactions fetch failed: %s", settlement_id, exc)
            raise UpstreamError("Failed to fetch settlement transactions") from exc
        return (data or {}).get("items") or []

    def verify_signature(self, order_id, payment_id, signature):
        if not self.key_secret:
            self.logger.error("Razorpay secret not configured")
            raise ConfigurationError("Payment gateway not configured", status_code=400)
        if not order_id or not payment_id or not signature:
            return False
        expected = compute_signature(order_id, payment_id, self.key_secret)
        return hmac.compare_digest(expected.encode("utf-8"), str(signature).encode("utf-8"))

    def verify_webhook_signature(self, body, signature):
        if not self.webhook_secret:
            self.logger.error("Razorpay webhook secret not configured")
            raise ConfigurationError("Webhook secret not configured")
        if not signature:
            return False
        expected = compute_webhook_signature(body, self.webhook_secret)
        return hmac.compare_digest(expected.encode("utf-8"), str(signature).encode("utf-8"))
