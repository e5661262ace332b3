# tiktool/routes/billing_routes.py
import json

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..errors import SignatureError, ValidationError
from ..services import subscriptions, unit_of_work
from .guards import current_user, safe_int

billing_bp = Blueprint("billing", __name__)


def _provider():
    return current_app.extensions["billing_provider"]


def _base_url() -> str:
    return current_app.config["APP_BASE_URL"].rstrip("/")


@billing_bp.route("/checkout", methods=["POST"])
@jwt_required()
def checkout():
    """
    JSON body:
      { "mode": "subscription" }
      { "mode": "payment", "points": 500 }
    Returns { "url": "<hosted checkout page>" }.
    """
    user = current_user()
    data = request.get_json(silent=True) or {}

    mode = (data.get("mode") or "subscription").strip()
    if mode not in ("subscription", "payment"):
        raise ValidationError("mode must be 'subscription' or 'payment'")

    points = None
    if mode == "payment":
        points = safe_int(data.get("points"), 0)
        if points <= 0:
            raise ValidationError("points must be a positive integer")

    provider = _provider()
    customer_id = provider.get_or_create_customer_id(user.email, user.id)

    with unit_of_work("billing checkout"):
        record = subscriptions.get_or_create_record(user.id, user.email)
        record.stripe_customer_id = customer_id

    base = _base_url()
    url = provider.create_checkout_session(
        customer_id=customer_id,
        user_id=user.id,
        mode=mode,
        points=points,
        success_url=f"{base}/dashboard?checkout=success",
        cancel_url=f"{base}/dashboard?checkout=cancelled",
    )

    current_app.logger.info(f"[billing/checkout] user_id={user.id} mode={mode} points={points}")
    return jsonify({"url": url}), 200


@billing_bp.route("/portal", methods=["POST"])
@jwt_required()
def portal():
    user = current_user()
    provider = _provider()

    record = subscriptions.get_record(user.id)
    customer_id = (record.stripe_customer_id if record else None) or provider.find_customer_id(user.email)
    if not customer_id:
        raise ValidationError("no billing account found for this user")

    url = provider.create_portal_session(customer_id, return_url=f"{_base_url()}/dashboard")
    return jsonify({"url": url}), 200


@billing_bp.route("/status", methods=["GET"])
@jwt_required()
def status():
    user = current_user()
    with unit_of_work("billing status"):
        payload = subscriptions.poll_status(user)
    return jsonify(payload), 200


@billing_bp.route("/webhook", methods=["POST"])
def webhook():
    payload = request.get_data()
    signature = request.headers.get("Stripe-Signature")

    try:
        _provider().verify_webhook(payload, signature)
    except SignatureError:
        current_app.logger.warning("[billing/webhook] signature verification failed")
        raise

    try:
        event = json.loads(payload)
    except ValueError:
        raise ValidationError("invalid webhook payload")

    with unit_of_work("billing webhook"):
        result = subscriptions.on_webhook_event(event)

    return jsonify(result), 200
