# tiktool/models/subscription.py
from datetime import datetime
from .. import db


class SubscriptionRecord(db.Model):
    __tablename__ = "subscribers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    email = db.Column(db.String(255))
    stripe_customer_id = db.Column(db.String(64), index=True)
    subscribed = db.Column(db.Boolean, nullable=False, default=False)
    subscription_tier = db.Column(db.String(30))
    subscription_end = db.Column(db.DateTime)
    points_earned_today = db.Column(db.Integer, nullable=False, default=0)
    last_points_reset = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "subscribed": bool(self.subscribed),
            "subscription_tier": self.subscription_tier,
            "subscription_end": self.subscription_end.isoformat()
            if self.subscription_end
            else None,
            "points_earned_today": int(self.points_earned_today or 0),
        }


class ProcessedWebhookEvent(db.Model):
    """Billing events whose side effects are already committed."""
    __tablename__ = "processed_webhook_events"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(32), nullable=False, default="stripe")
    event_id = db.Column(db.String(128), nullable=False, unique=True)
    event_type = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
