from decimal import Decimal

import pytest
from flask import g

from app import create_app
from app.extensions import db
from app.integrations import compute_signature, compute_webhook_signature
from app.integrations.mailer import MailerError
from app.models import Booking, Salon, User

SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "rzp_test_webhook_secret"


class FakeGateway:
    key_id = "rzp_test_key"

    def __init__(self, secret=SECRET, webhook_secret=WEBHOOK_SECRET):
        self.key_secret = secret
        self.webhook_secret = webhook_secret
        self.orders = []
        self.payments_by_order = {}
        self.fail_order_payments = False
        self.settlements = []
        self.transactions = {}
        self.fail_orders = False
        self.fail_settlements = False
        self.failing_transactions = set()
        self.transaction_calls = []

    @property
    def is_configured(self):
        return bool(self.key_secret)

    def create_order(self, amount_minor, currency, receipt, notes=None):
        if self.fail_orders:
            from app.errors import UpstreamError

            raise UpstreamError("Payment processing failed")
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        self.orders.append(order)
        return order

    def fetch_order(self, order_id):
        from app.errors import UpstreamError

        for order in self.orders:
            if order["id"] == order_id:
                return order
        raise UpstreamError("Failed to fetch order")

    def order_payments(self, order_id):
        if self.fail_order_payments:
            from app.errors import UpstreamError

            raise UpstreamError("Failed to fetch payment status")
        return self.payments_by_order.get(order_id, [])

    def list_settlements(self, count=50):
        if self.fail_settlements:
            from app.errors import UpstreamError

            raise UpstreamError("Failed to fetch settlements")
        return self.settlements[:count]

    def settlement_transactions(self, settlement_id, count=100):
        self.transaction_calls.append(settlement_id)
        if settlement_id in self.failing_transactions:
            from app.errors import UpstreamError

            raise UpstreamError("Failed to fetch settlement transactions")
        return self.transactions.get(settlement_id, [])[:count]

    def verify_signature(self, order_id, payment_id, signature):
        from app.integrations.razorpay_gateway import RazorpayGateway

        return RazorpayGateway("rzp_test_key", self.key_secret).verify_signature(order_id, payment_id, signature)

    def verify_webhook_signature(self, body, signature):
        from app.integrations.razorpay_gateway import RazorpayGateway

        gateway = RazorpayGateway("rzp_test_key", self.key_secret, webhook_secret=self.webhook_secret)
        return gateway.verify_webhook_signature(body, signature)


class FakeSms:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_otp(self, phone, otp):
        if self.fail:
            return None
        self.sent.append((phone, otp))
        return "Twilio"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    @property
    def is_configured(self):
        return True

    def send(self, to_email, subject, html):
        if self.fail:
            raise MailerError("Resend rejected the message")
        self.sent.append({"to": to_email, "subject": subject, "html": html})
        return f"email_{len(self.sent)}"


class FakeMaps:
    def __init__(self, configured=True):
        self.configured = configured
        self.reverse_features = []
        self.search_features = []
        self.calls = []

    @property
    def is_configured(self):
        return self.configured

    def reverse(self, latitude, longitude):
        self.calls.append(("reverse", latitude, longitude))
        return self.reverse_features

    def search(self, query, country="in", limit=10):
        self.calls.append(("search", query, country, limit))
        return self.search_features[:limit]


class FakeFirebase:
    def __init__(self):
        self.accounts = {}

    def lookup(self, id_token):
        from app.errors import AuthenticationError

        account = self.accounts.get(id_token)
        if account is None:
            raise AuthenticationError("Invalid Firebase token: INVALID_ID_TOKEN")
        return account


@pytest.fixture()
def app():
    app = create_app("testing")
    app.extensions["razorpay"] = FakeGateway()
    app.extensions["sms"] = FakeSms()
    app.extensions["mailer"] = FakeMailer()
    app.extensions["maps"] = FakeMaps()
    app.extensions["firebase"] = FakeFirebase()
    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def gateway(app):
    return app.extensions["razorpay"]


@pytest.fixture()
def sms(app):
    return app.extensions["sms"]


@pytest.fixture()
def mailer(app):
    return app.extensions["mailer"]


@pytest.fixture()
def maps(app):
    return app.extensions["maps"]


@pytest.fixture()
def firebase(app):
    return app.extensions["firebase"]


@pytest.fixture()
def make_user(app):
    counter = {"n": 0}

    def _make(phone=None, email=None, role="customer", full_name="Asha Rao"):
        counter["n"] += 1
        user = User(
            phone=phone or f"+9198765432{counter['n']:02d}",
            email=email,
            role=role,
            full_name=full_name,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_booking(app, make_user):
    created = []

    def _make(user=None, service_price="500.00", status="pending_payment"):
        created.append(1)
        user = user or make_user(email=f"customer{len(created)}@example.com")
        salon = Salon(name="Glow Studio", city="Bengaluru")
        db.session.add(salon)
        db.session.flush()
        booking = Booking(
            user_id=user.id,
            salon_id=salon.id,
            salon_name=salon.name,
            service_name="Haircut",
            service_price=Decimal(service_price),
            status=status,
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make


@pytest.fixture()
def login(client):
    def _login(user):
        with client.session_transaction() as session:
            session["_user_id"] = str(user.id)
            session["_fresh"] = True
        # The app fixture holds one app context across requests, so drop
        # Flask-Login's per-context user cache to pick up the new session.
        g.pop("_login_user", None)

    return _login


@pytest.fixture()
def sign():
    def _sign(order_id, payment_id, secret=SECRET):
        return compute_signature(order_id, payment_id, secret)

    return _sign


@pytest.fixture()
def sign_webhook():
    def _sign(body, secret=WEBHOOK_SECRET):
        return compute_webhook_signature(body, secret)

    return _sign
