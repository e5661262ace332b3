# tiktool/services/billing.py
"""
Billing provider adapter.

The subscription synchronizer only talks to the small interface below;
StripeBillingProvider implements it with the official ``stripe`` library
and tests swap in a fake.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import stripe

from ..errors import SignatureError, UpstreamError

ACTIVE_STATUSES = ("active", "trialing")


@dataclass
class BillingSubscription:
    id: str
    customer_id: str
    status: str
    current_period_end: Optional[datetime]

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


def field(obj: Any, key: str, default=None):
    """Read ``key`` from a dict or StripeObject without tripping on missing keys."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


def from_timestamp(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.utcfromtimestamp(int(value))
    except (TypeError, ValueError, OverflowError):
        return None


def subscription_period_end(sub) -> Optional[datetime]:
    # newer API versions moved the period onto the subscription items
    end = field(sub, "current_period_end")
    if end is None:
        items = field(field(sub, "items"), "data", [])
        if items:
            end = field(items[0], "current_period_end")
    return from_timestamp(end)


class BillingProvider:
    def find_customer_id(self, email: str) -> Optional[str]:
        raise NotImplementedError

    def get_or_create_customer_id(self, email: str, user_id: int) -> str:
        raise NotImplementedError

    def active_subscription(self, customer_id: str) -> Optional[BillingSubscription]:
        raise NotImplementedError

    def create_checkout_session(
        self,
        customer_id: str,
        user_id: int,
        mode: str,
        points: Optional[int],
        success_url: str,
        cancel_url: str,
    ) -> str:
        raise NotImplementedError

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        raise NotImplementedError

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> None:
        raise NotImplementedError


class StripeBillingProvider(BillingProvider):
    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        premium_price_id: str = "",
        points_unit_amount: int = 10,
        currency: str = "brl",
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.premium_price_id = premium_price_id
        self.points_unit_amount = int(points_unit_amount)
        self.currency = currency

    def _call(self, fn, **params):
        if not self.api_key:
            raise UpstreamError("Billing is not configured")
        try:
            return fn(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            raise UpstreamError("Billing provider error", error=str(e)) from e

    def find_customer_id(self, email: str) -> Optional[str]:
        customers = self._call(stripe.Customer.list, email=email, limit=1)
        data = field(customers, "data", [])
        return field(data[0], "id") if data else None

    def get_or_create_customer_id(self, email: str, user_id: int) -> str:
        customer_id = self.find_customer_id(email)
        if customer_id:
            return customer_id
        customer = self._call(
            stripe.Customer.create, email=email, metadata={"user_id": str(user_id)}
        )
        return field(customer, "id")

    def active_subscription(self, customer_id: str) -> Optional[BillingSubscription]:
        subs = self._call(stripe.Subscription.list, customer=customer_id, status="all", limit=10)
        for sub in field(subs, "data", []):
            status = field(sub, "status", "")
            if status in ACTIVE_STATUSES:
                return BillingSubscription(
                    id=field(sub, "id"),
                    customer_id=customer_id,
                    status=status,
                    current_period_end=subscription_period_end(sub),
                )
        return None

    def create_checkout_session(self, customer_id, user_id, mode, points, success_url, cancel_url):
        metadata: Dict[str, str] = {"user_id": str(user_id)}

        if mode == "subscription":
            line_items = [{"price": self.premium_price_id, "quantity": 1}]
        else:
            metadata["points"] = str(points)
            line_items = [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": f"{points} Points",
                            "description": f"Pack of {points} TikTool points",
                        },
                        "unit_amount": int(points) * self.points_unit_amount,
                    },
                    "quantity": 1,
                }
            ]

        session = self._call(
            stripe.checkout.Session.create,
            customer=customer_id,
            client_reference_id=str(user_id),
            line_items=line_items,
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        return field(session, "url")

    def create_portal_session(self, customer_id, return_url):
        session = self._call(
            stripe.billing_portal.Session.create, customer=customer_id, return_url=return_url
        )
        return field(session, "url")

    def verify_webhook(self, payload, signature):
        if not self.webhook_secret:
            raise SignatureError("Webhook secret is not configured")
        if not signature:
            raise SignatureError("Missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise SignatureError("Invalid webhook signature") from e
