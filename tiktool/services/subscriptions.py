# tiktool/services/subscriptions.py
"""
Subscription State Synchronizer.

Two entry points feed the same SubscriptionRecord: ``poll_status`` (the
client asking "am I premium?") and ``on_webhook_event`` (Stripe telling us).
Both only ever write provider-derived fields, so whichever lands last wins
without contradicting the other. Webhook side effects are keyed on the
event id so a redelivery never pays a bonus twice.
"""
from datetime import datetime, time, timedelta
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .. import db
from ..errors import UpstreamError, ValidationError
from ..models.progression import Notification
from ..models.subscription import ProcessedWebhookEvent, SubscriptionRecord
from ..models.user import User
from . import ledger
from .billing import ACTIVE_STATUSES, field, from_timestamp, subscription_period_end


def _tier() -> str:
    return current_app.config["PREMIUM_TIER"]


def _provider():
    return current_app.extensions["billing_provider"]


def get_record(user_id: int) -> Optional[SubscriptionRecord]:
    return SubscriptionRecord.query.filter_by(user_id=user_id).first()


def get_or_create_record(
    user_id: int, email: Optional[str] = None, now: Optional[datetime] = None
) -> SubscriptionRecord:
    record = get_record(user_id)
    if record:
        if email and not record.email:
            record.email = email
        return record

    record = SubscriptionRecord(
        user_id=user_id,
        email=email,
        subscribed=False,
        subscription_tier=None,
        subscription_end=None,
        points_earned_today=0,
        last_points_reset=now or datetime.utcnow(),
    )
    db.session.add(record)
    db.session.flush()
    return record


def is_premium(user_id: int, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    record = get_record(user_id)
    if not record or not record.subscribed:
        return False
    return record.subscription_end is None or record.subscription_end >= now


def _mark_active(record: SubscriptionRecord, end: Optional[datetime]) -> None:
    record.subscribed = True
    record.subscription_tier = _tier()
    if end is not None:
        record.subscription_end = end


def _mark_inactive(record: SubscriptionRecord, end: Optional[datetime] = None) -> None:
    record.subscribed = False
    record.subscription_tier = None
    if end is not None:
        record.subscription_end = end


def _roll_daily_counter(record: SubscriptionRecord, now: datetime) -> None:
    midnight = datetime.combine(now.date(), time.min)
    if record.last_points_reset is None or record.last_points_reset < midnight:
        record.points_earned_today = 0
        record.last_points_reset = now


def _credit_bonus(user_id: int, points: int, title: str, body: str) -> int:
    balance = ledger.add_points(user_id, points)
    db.session.add(Notification(user_id=user_id, kind="billing", title=title, body=body))
    return balance


def status_payload(record: SubscriptionRecord, user_id: int) -> Dict[str, Any]:
    return {
        **record.to_dict(),
        "points": ledger.get_balance(user_id),
    }


# ---------------------------------------------------------------------------
# Polled status
# ---------------------------------------------------------------------------

def poll_status(user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    record = get_or_create_record(user.id, user.email, now)
    provider = _provider()

    customer_id = record.stripe_customer_id or provider.find_customer_id(user.email)
    if customer_id:
        record.stripe_customer_id = customer_id
        sub = provider.active_subscription(customer_id)
        if sub is not None and sub.is_active:
            _mark_active(record, sub.current_period_end)
        else:
            _mark_inactive(record)
    elif record.subscribed and record.subscription_end and record.subscription_end < now:
        # no provider customer: keep local (admin) grants until they lapse
        current_app.logger.info(f"[billing/poll] user_id={user.id} subscription expired")
        _mark_inactive(record)

    _roll_daily_counter(record, now)
    db.session.flush()

    current_app.logger.info(
        f"[billing/poll] user_id={user.id} subscribed={record.subscribed} "
        f"tier={record.subscription_tier}"
    )
    return status_payload(record, user.id)


def record_points_earned(user_id: int, amount: int, now: Optional[datetime] = None) -> None:
    now = now or datetime.utcnow()
    record = get_or_create_record(user_id, now=now)
    _roll_daily_counter(record, now)
    record.points_earned_today = int(record.points_earned_today or 0) + int(amount)


def grant_premium(user_id: int, premium: bool, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Admin override of the premium flag."""
    now = now or datetime.utcnow()
    record = get_record(user_id)
    bonus_awarded = False

    if premium:
        end = now + timedelta(days=int(current_app.config["PREMIUM_GRANT_DAYS"]))
        if record is None:
            user = db.session.get(User, user_id)
            record = get_or_create_record(user_id, user.email if user else None, now)
            bonus = int(current_app.config["PREMIUM_BONUS_POINTS"])
            _credit_bonus(user_id, bonus, "Welcome to Premium!", f"You received {bonus} bonus points.")
            bonus_awarded = True
        record.subscribed = True
        record.subscription_tier = _tier()
        record.subscription_end = end
    elif record is not None:
        record.subscribed = False
        record.subscription_tier = None
        record.subscription_end = None

    db.session.flush()
    current_app.logger.info(f"[billing/admin] user_id={user_id} premium={premium}")

    payload = record.to_dict() if record else {"subscribed": False}
    return {**payload, "bonus_awarded": bonus_awarded}


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

def _resolve_user_id(obj) -> Optional[int]:
    metadata = field(obj, "metadata", {})
    for candidate in (field(metadata, "user_id"), field(obj, "client_reference_id")):
        try:
            if candidate is not None:
                uid = int(candidate)
                if db.session.get(User, uid):
                    return uid
        except (TypeError, ValueError):
            continue

    customer_id = field(obj, "customer")
    if customer_id:
        record = SubscriptionRecord.query.filter_by(stripe_customer_id=customer_id).first()
        if record:
            return record.user_id

    email = field(obj, "customer_email") or field(field(obj, "customer_details"), "email")
    if email:
        user = User.query.filter_by(email=str(email).strip().lower()).first()
        if user:
            return user.id

    return None


def _record_for(user_id: int, obj) -> SubscriptionRecord:
    user = db.session.get(User, user_id)
    record = get_or_create_record(user_id, user.email if user else None)
    customer_id = field(obj, "customer")
    if customer_id:
        record.stripe_customer_id = customer_id
    return record


def _checkout_period_end(record: SubscriptionRecord, now: datetime) -> Optional[datetime]:
    """Period end for a fresh subscription checkout, or None when unknown."""
    if record.stripe_customer_id:
        try:
            sub = _provider().active_subscription(record.stripe_customer_id)
        except UpstreamError as e:
            current_app.logger.warning(f"[billing/webhook] period lookup failed for user_id={record.user_id}: {e}")
            sub = None
        if sub is not None and sub.is_active and sub.current_period_end:
            return sub.current_period_end

    # an end left over from a lapsed subscription must not hide the new one
    if record.subscription_end is not None and record.subscription_end < now:
        record.subscription_end = None
    return None


def _on_checkout_completed(user_id: int, obj, now: datetime) -> Dict[str, Any]:
    mode = field(obj, "mode")
    record = _record_for(user_id, obj)

    if mode == "subscription":
        _mark_active(record, _checkout_period_end(record, now))
        bonus = int(current_app.config["PREMIUM_BONUS_POINTS"])
        balance = _credit_bonus(
            user_id, bonus, "Welcome to Premium!", f"You received {bonus} bonus points."
        )
        return {"points_awarded": bonus, "balance": balance}

    if mode == "payment":
        try:
            points = int(field(field(obj, "metadata", {}), "points", 0))
        except (TypeError, ValueError):
            points = 0
        if points <= 0:
            return {"points_awarded": 0}
        balance = _credit_bonus(
            user_id, points, "Points purchased", f"{points} points were added to your balance."
        )
        return {"points_awarded": points, "balance": balance}

    return {"points_awarded": 0}


def _on_subscription_changed(user_id: int, obj, now: datetime) -> Dict[str, Any]:
    record = _record_for(user_id, obj)
    end = subscription_period_end(obj)
    if field(obj, "status") in ACTIVE_STATUSES:
        _mark_active(record, end)
    else:
        _mark_inactive(record, end)
    return {}


def _on_subscription_deleted(user_id: int, obj, now: datetime) -> Dict[str, Any]:
    record = _record_for(user_id, obj)
    _mark_inactive(record, from_timestamp(field(obj, "ended_at")) or subscription_period_end(obj))
    return {}


def _invoice_subscription_id(invoice) -> Optional[str]:
    details = field(field(invoice, "parent"), "subscription_details")
    return field(invoice, "subscription") or field(details, "subscription")


def _on_invoice_paid(user_id: int, obj, now: datetime) -> Dict[str, Any]:
    # one-off invoices (points purchases, manual charges) say nothing about Premium
    if not _invoice_subscription_id(obj):
        current_app.logger.info(f"[billing/webhook] invoice {field(obj, 'id')} has no subscription")
        return {"ignored": True}

    record = _record_for(user_id, obj)
    lines = field(field(obj, "lines"), "data", [])
    end = from_timestamp(field(field(lines[0], "period"), "end")) if lines else None
    if end is not None and record.subscription_end and record.subscription_end > end:
        end = None
    _mark_active(record, end)
    return {}


WEBHOOK_HANDLERS = {
    "checkout.session.completed": _on_checkout_completed,
    "customer.subscription.created": _on_subscription_changed,
    "customer.subscription.updated": _on_subscription_changed,
    "customer.subscription.deleted": _on_subscription_deleted,
    "invoice.payment_succeeded": _on_invoice_paid,
}


def on_webhook_event(event: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Apply one verified billing event. Must run inside a unit of work: the
    processed-event row and every side effect commit together.
    """
    now = now or datetime.utcnow()
    event_id = field(event, "id")
    event_type = field(event, "type", "")
    if not event_id:
        raise ValidationError("event id is required")

    if ProcessedWebhookEvent.query.filter_by(event_id=event_id).first():
        current_app.logger.info(f"[billing/webhook] duplicate event {event_id} ({event_type})")
        return {"received": True, "duplicate": True}

    try:
        db.session.add(
            ProcessedWebhookEvent(provider="stripe", event_id=event_id, event_type=event_type, created_at=now)
        )
        db.session.flush()
    except IntegrityError:
        # a concurrent delivery of the same event got there first
        db.session.rollback()
        return {"received": True, "duplicate": True}

    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        current_app.logger.info(f"[billing/webhook] unhandled event type {event_type}")
        return {"received": True, "ignored": True}

    obj = field(field(event, "data"), "object", {})
    user_id = _resolve_user_id(obj)
    if user_id is None:
        current_app.logger.warning(f"[billing/webhook] no user for event {event_id} ({event_type})")
        return {"received": True, "ignored": True}

    result = handler(user_id, obj, now)
    db.session.flush()

    current_app.logger.info(f"[billing/webhook] {event_type} applied for user_id={user_id}")
    return {"received": True, "type": event_type, "user_id": user_id, **result}
