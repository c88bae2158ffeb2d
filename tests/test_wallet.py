from decimal import Decimal

import pytest

from app.models import Wallet, WalletTransaction
from app.models.base import to_minor_units
from app.services import WalletService


def _order(gateway, user_id, amount):
    return gateway.create_order(
        to_minor_units(amount),
        "INR",
        "wallet_topup_1",
        notes={"type": "wallet_topup", "user_id": str(user_id), "amount": str(amount)},
    )["id"]


def _verify(client, sign, user_id, amount, payment_id="pay_w1", order_id=None, signature=None):
    if order_id is None:
        order_id = _order(client.application.extensions["razorpay"], user_id, amount)
    return client.post(
        "/api/v1/wallet/verify-wallet-topup",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature if signature is not None else sign(order_id, payment_id),
            "user_id": user_id,
            "amount": amount,
        },
    )


def test_topup_order_created(client, gateway, make_user):
    user = make_user()

    resp = client.post("/api/v1/wallet/create-wallet-topup-order", json={"amount": 250, "user_id": user.id})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["amount"] == 25000
    assert body["keyId"] == "rzp_test_key"
    order = gateway.orders[0]
    assert order["receipt"].startswith("wallet_topup_")
    assert order["notes"]["type"] == "wallet_topup"
    assert order["notes"]["user_id"] == str(user.id)


@pytest.mark.parametrize("amount", [20, 15000, 49.99, 10000.01])
def test_out_of_range_amount_rejected(client, gateway, make_user, amount):
    user = make_user()

    resp = client.post("/api/v1/wallet/create-wallet-topup-order", json={"amount": amount, "user_id": user.id})

    assert resp.status_code == 400
    assert gateway.orders == []


@pytest.mark.parametrize("amount", [50, 10000])
def test_bounds_are_inclusive(client, gateway, make_user, amount):
    user = make_user()

    resp = client.post("/api/v1/wallet/create-wallet-topup-order", json={"amount": amount, "user_id": user.id})

    assert resp.status_code == 200


def test_missing_fields_rejected(client, gateway):
    resp = client.post("/api/v1/wallet/create-wallet-topup-order", json={"amount": 100})

    assert resp.status_code == 400
    assert gateway.orders == []


def test_unknown_user_rejected(client, gateway):
    resp = client.post("/api/v1/wallet/create-wallet-topup-order", json={"amount": 100, "user_id": 31337})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid user"
    assert gateway.orders == []


def test_verify_creates_wallet_and_credits_exact_amount(client, sign, make_user):
    user = make_user()

    resp = _verify(client, sign, user.id, 250)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["payment_id"] == "pay_w1"
    assert body["new_balance"] == 250.0

    wallet = Wallet.query.filter_by(user_id=user.id).one()
    assert Decimal(str(wallet.balance)) == Decimal("250.00")
    assert Decimal(str(wallet.total_earned)) == Decimal("250.00")
    tx = WalletTransaction.query.one()
    assert tx.type == "credit"
    assert tx.category == "manual"
    assert tx.reference_id == "pay_w1"
    assert Decimal(str(tx.amount)) == Decimal("250.00")


def test_verify_adds_to_existing_balance(client, sign, make_user):
    user = make_user()

    _verify(client, sign, user.id, 100, payment_id="pay_a")
    resp = _verify(client, sign, user.id, 75.5, payment_id="pay_b")

    assert resp.get_json()["new_balance"] == 175.5
    assert WalletTransaction.query.count() == 2


def test_replayed_payment_not_credited_twice(client, sign, make_user):
    user = make_user()

    _verify(client, sign, user.id, 500)
    resp = _verify(client, sign, user.id, 500)

    assert resp.status_code == 200
    assert resp.get_json()["new_balance"] == 500.0
    assert WalletTransaction.query.count() == 1


def test_bad_signature_credits_nothing(client, sign, make_user):
    user = make_user()

    resp = _verify(client, sign, user.id, 500, signature="0" * 64)

    assert resp.status_code == 400
    assert Wallet.query.count() == 0
    assert WalletTransaction.query.count() == 0


def test_verify_rejects_out_of_range_amount(client, sign, make_user):
    user = make_user()

    resp = _verify(client, sign, user.id, 20000)

    assert resp.status_code == 400
    assert WalletTransaction.query.count() == 0


def test_amount_must_match_gateway_order(client, sign, gateway, make_user):
    user = make_user()
    order_id = _order(gateway, user.id, 100)

    resp = _verify(client, sign, user.id, 5000, order_id=order_id)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "mismatch"
    assert Wallet.query.count() == 0


def test_order_of_another_user_is_rejected(client, sign, gateway, make_user):
    owner = make_user()
    other = make_user()
    order_id = _order(gateway, owner.id, 500)

    resp = _verify(client, sign, other.id, 500, order_id=order_id)

    assert resp.status_code == 400
    assert WalletTransaction.query.count() == 0


def test_unknown_order_credits_nothing(client, sign, make_user):
    user = make_user()

    resp = _verify(client, sign, user.id, 500, order_id="order_missing")

    assert resp.status_code == 500
    assert WalletTransaction.query.count() == 0


def test_concurrent_duplicate_credit_is_rolled_back(client, sign, make_user, monkeypatch):
    user = make_user()
    _verify(client, sign, user.id, 500)
    # Both requests pass the lookup before either commits.
    monkeypatch.setattr(WalletService, "_credited", staticmethod(lambda wallet, payment_id: False))

    resp = _verify(client, sign, user.id, 500)

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Wallet already credited"
    assert resp.get_json()["new_balance"] == 500.0
    assert WalletTransaction.query.count() == 1
