import hashlib
import hmac
import json
import time

import pytest
from flask_jwt_extended import create_access_token

from config import TestConfig
from tiktool import create_app, db
from tiktool.models.user import User
from tiktool.services import ledger
from tiktool.services.billing import StripeBillingProvider


class FakeBillingProvider(StripeBillingProvider):
    """Stripe adapter with the network calls replaced by in-memory state.

    Webhook signature checks still go through stripe.Webhook.construct_event.
    """

    def __init__(self, webhook_secret):
        super().__init__(api_key="sk_test_fake", webhook_secret=webhook_secret, premium_price_id="price_test")
        self.customers = {}
        self.subscriptions = {}
        self.checkouts = []

    def find_customer_id(self, email):
        return self.customers.get(email)

    def get_or_create_customer_id(self, email, user_id):
        return self.customers.setdefault(email, f"cus_{user_id}")

    def active_subscription(self, customer_id):
        return self.subscriptions.get(customer_id)

    def create_checkout_session(self, customer_id, user_id, mode, points, success_url, cancel_url):
        self.checkouts.append({"customer_id": customer_id, "user_id": user_id, "mode": mode, "points": points})
        return f"https://checkout.test/{len(self.checkouts)}"

    def create_portal_session(self, customer_id, return_url):
        return f"https://billing.test/portal/{customer_id}"


@pytest.fixture
def billing():
    return FakeBillingProvider(webhook_secret=TestConfig.STRIPE_WEBHOOK_SECRET)


@pytest.fixture
def app(billing):
    app = create_app(TestConfig, billing_provider=billing)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username="alice", points=None, banned=False):
        user = User(email=f"{username}@example.com", username=username, display_name=username)
        user.set_password("secret123")
        user.is_banned = banned
        db.session.add(user)
        db.session.flush()
        ledger.get_or_create_stats(user.id)
        if points is not None:
            ledger.set_points(user.id, points)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers


def _sign(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def post_webhook(client):
    def _post(event, secret=TestConfig.STRIPE_WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        sig = signature if signature is not None else _sign(payload, secret, int(time.time()))
        if sig:
            headers["Stripe-Signature"] = sig
        return client.post("/api/billing/webhook", data=payload, headers=headers)

    return _post
