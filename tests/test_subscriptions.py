from datetime import datetime, timedelta

from tiktool import db
from tiktool.models.subscription import ProcessedWebhookEvent, SubscriptionRecord
from tiktool.services import ledger, subscriptions
from tiktool.services.billing import BillingSubscription

NOW = datetime(2026, 3, 10, 12, 0)


def _checkout_event(event_id, user_id, mode="subscription", points=None):
    metadata = {"user_id": str(user_id)}
    if points is not None:
        metadata["points"] = str(points)
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_{event_id}",
                "object": "checkout.session",
                "mode": mode,
                "customer": "cus_abc",
                "client_reference_id": str(user_id),
                "metadata": metadata,
            }
        },
    }


def _record(user_id):
    return SubscriptionRecord.query.filter_by(user_id=user_id).first()


def test_subscription_checkout_grants_premium_and_bonus(app, make_user, post_webhook):
    user = make_user(points=50)

    resp = post_webhook(_checkout_event("evt_1", user.id))

    assert resp.status_code == 200
    assert resp.get_json()["points_awarded"] == 200
    assert ledger.get_balance(user.id) == 250
    record = _record(user.id)
    assert record.subscribed is True
    assert record.subscription_tier == "Premium"
    assert record.stripe_customer_id == "cus_abc"


def test_redelivered_event_pays_once(app, make_user, post_webhook):
    user = make_user(points=50)
    event = _checkout_event("evt_dup", user.id)

    post_webhook(event)
    resp = post_webhook(event)

    assert resp.status_code == 200
    assert resp.get_json()["duplicate"] is True
    assert ledger.get_balance(user.id) == 250
    assert ProcessedWebhookEvent.query.filter_by(event_id="evt_dup").count() == 1


def test_invalid_signature_is_rejected_before_processing(app, make_user, post_webhook):
    user = make_user(points=50)

    resp = post_webhook(_checkout_event("evt_bad", user.id), secret="whsec_wrong")

    assert resp.status_code == 400
    assert ProcessedWebhookEvent.query.count() == 0
    assert ledger.get_balance(user.id) == 50
    assert _record(user.id) is None


def test_missing_signature_is_rejected(app, make_user, post_webhook):
    user = make_user()
    resp = post_webhook(_checkout_event("evt_nosig", user.id), signature="")
    assert resp.status_code == 400
    assert ProcessedWebhookEvent.query.count() == 0


def test_points_purchase_credits_purchased_points(app, make_user, post_webhook):
    user = make_user()

    resp = post_webhook(_checkout_event("evt_pts", user.id, mode="payment", points=500))

    assert resp.get_json()["points_awarded"] == 500
    assert ledger.get_balance(user.id) == 510
    assert _record(user.id).subscribed is False


def test_subscription_deleted_downgrades(app, make_user, post_webhook):
    user = make_user()
    post_webhook(_checkout_event("evt_sub", user.id))

    ended_at = int(datetime(2026, 4, 1).timestamp())
    post_webhook(
        {
            "id": "evt_del",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_1", "customer": "cus_abc", "status": "canceled", "ended_at": ended_at}},
        }
    )

    record = _record(user.id)
    assert record.subscribed is False
    assert record.subscription_tier is None
    assert record.subscription_end is not None


def test_subscription_updated_sets_period_end(app, make_user, post_webhook):
    user = make_user()
    post_webhook(_checkout_event("evt_sub", user.id))

    period_end = int(datetime(2026, 5, 1).timestamp())
    post_webhook(
        {
            "id": "evt_upd",
            "type": "customer.subscription.updated",
            "data": {
                "object": {
                    "id": "sub_1",
                    "customer": "cus_abc",
                    "status": "active",
                    "items": {"data": [{"current_period_end": period_end}]},
                }
            },
        }
    )

    record = _record(user.id)
    assert record.subscribed is True
    assert record.subscription_end == datetime.utcfromtimestamp(period_end)


def test_unknown_event_types_and_users_are_ignored(app, make_user, post_webhook):
    user = make_user()

    unknown = post_webhook({"id": "evt_x", "type": "charge.refunded", "data": {"object": {}}})
    nobody = post_webhook(_checkout_event("evt_y", 9999))

    assert unknown.get_json()["ignored"] is True
    assert nobody.status_code == 200
    assert nobody.get_json()["ignored"] is True
    assert ledger.get_balance(user.id) == 10


def test_poll_status_follows_provider(app, make_user, billing):
    user = make_user()
    billing.customers[user.email] = "cus_poll"
    billing.subscriptions["cus_poll"] = BillingSubscription(
        id="sub_poll", customer_id="cus_poll", status="active", current_period_end=NOW + timedelta(days=20)
    )

    status = subscriptions.poll_status(user, NOW)
    assert status["subscribed"] is True
    assert status["subscription_tier"] == "Premium"
    assert status["points"] == 10

    del billing.subscriptions["cus_poll"]
    status = subscriptions.poll_status(user, NOW)
    assert status["subscribed"] is False
    assert status["subscription_tier"] is None


def test_poll_status_without_customer_keeps_admin_grant_until_it_lapses(app, make_user):
    user = make_user()
    subscriptions.grant_premium(user.id, True, NOW)
    db.session.commit()

    assert subscriptions.poll_status(user, NOW)["subscribed"] is True
    assert subscriptions.poll_status(user, NOW + timedelta(days=31))["subscribed"] is False


def test_admin_grant_pays_bonus_only_for_new_record(app, make_user):
    user = make_user()

    first = subscriptions.grant_premium(user.id, True, NOW)
    subscriptions.grant_premium(user.id, False, NOW)
    second = subscriptions.grant_premium(user.id, True, NOW)
    db.session.commit()

    assert first["bonus_awarded"] is True
    assert second["bonus_awarded"] is False
    assert ledger.get_balance(user.id) == 210
    assert _record(user.id).subscription_end == NOW + timedelta(days=30)


def test_daily_points_counter_resets_each_day(app, make_user):
    user = make_user()
    subscriptions.record_points_earned(user.id, 20, NOW)
    subscriptions.record_points_earned(user.id, 5, NOW)
    assert _record(user.id).points_earned_today == 25

    subscriptions.record_points_earned(user.id, 7, NOW + timedelta(days=1))
    assert _record(user.id).points_earned_today == 7


def _invoice_event(event_id, customer, subscription, period_end, billing_reason="subscription_cycle"):
    return {
        "id": event_id,
        "type": "invoice.payment_succeeded",
        "data": {
            "object": {
                "id": f"in_{event_id}",
                "object": "invoice",
                "customer": customer,
                "subscription": subscription,
                "billing_reason": billing_reason,
                "lines": {"data": [{"period": {"end": int(period_end.timestamp())}}]},
            }
        },
    }


def test_subscription_invoice_extends_the_period(app, make_user, post_webhook):
    user = make_user()
    post_webhook(_checkout_event("evt_sub", user.id))
    period_end = datetime(2026, 6, 1)

    resp = post_webhook(_invoice_event("evt_inv", "cus_abc", "sub_1", period_end))

    assert resp.status_code == 200
    record = _record(user.id)
    assert record.subscribed is True
    assert record.subscription_end == datetime.utcfromtimestamp(int(period_end.timestamp()))


def test_one_off_invoice_does_not_grant_premium(app, make_user, post_webhook):
    user = make_user()
    db.session.add(SubscriptionRecord(user_id=user.id, email=user.email, stripe_customer_id="cus_inv"))
    db.session.commit()

    resp = post_webhook(_invoice_event("evt_manual", "cus_inv", None, datetime(2026, 6, 1), "manual"))

    assert resp.status_code == 200
    assert resp.get_json()["ignored"] is True
    record = _record(user.id)
    assert record.subscribed is False
    assert record.subscription_tier is None
    assert record.subscription_end is None
    assert subscriptions.is_premium(user.id) is False


def test_trialing_subscription_created_grants_premium(app, make_user, post_webhook):
    user = make_user()
    period_end = datetime.utcnow() + timedelta(days=14)

    post_webhook(
        {
            "id": "evt_trial",
            "type": "customer.subscription.created",
            "data": {
                "object": {
                    "id": "sub_trial",
                    "customer": "cus_trial",
                    "status": "trialing",
                    "metadata": {"user_id": str(user.id)},
                    "items": {"data": [{"current_period_end": int(period_end.timestamp())}]},
                }
            },
        }
    )

    record = _record(user.id)
    assert record.subscribed is True
    assert record.subscription_tier == "Premium"
    assert subscriptions.is_premium(user.id) is True


def test_resubscribing_after_cancellation_is_premium_again(app, make_user, post_webhook):
    user = make_user()
    post_webhook(_checkout_event("evt_first", user.id))
    ended_at = int((datetime.utcnow() - timedelta(days=10)).timestamp())
    post_webhook(
        {
            "id": "evt_cancel",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_1", "customer": "cus_abc", "status": "canceled", "ended_at": ended_at}},
        }
    )
    assert subscriptions.is_premium(user.id) is False

    post_webhook(_checkout_event("evt_second", user.id))

    record = _record(user.id)
    assert record.subscribed is True
    assert record.subscription_end is None
    assert subscriptions.is_premium(user.id) is True


def test_subscription_checkout_takes_period_end_from_provider(app, make_user, post_webhook, billing):
    user = make_user()
    period_end = datetime.utcnow().replace(microsecond=0) + timedelta(days=30)
    billing.subscriptions["cus_abc"] = BillingSubscription(
        id="sub_1", customer_id="cus_abc", status="active", current_period_end=period_end
    )

    post_webhook(_checkout_event("evt_sub", user.id))

    record = _record(user.id)
    assert record.subscription_end == period_end
    assert subscriptions.is_premium(user.id) is True
