# tiktool/routes/dashboard_routes.py
from datetime import datetime

from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from ..models.progression import Notification
from ..services import ledger, streaks, subscriptions, unit_of_work
from .guards import current_user

dashboard_bp = Blueprint("dashboard", __name__)


# -------------------------
# DASHBOARD OVERVIEW
# -------------------------
@dashboard_bp.route("/overview", methods=["GET"])
@jwt_required()
def dashboard_overview():
    """
    Returns:
    {
      "user": { ... },
      "statistics": { "points": 10, "followers_gained": 0, ... },
      "streak": { "current_streak": 0, "points_today": 0, ... },
      "subscription": { "subscribed": false, ... },
      "notifications": [ ... latest 10 ... ]
    }
    """
    user = current_user()
    now = datetime.utcnow()

    # first visit creates the statistics row with the starting balance
    with unit_of_work("dashboard overview"):
        stats = ledger.get_or_create_stats(user.id)
        streak = streaks.status(user.id, now)
        record = subscriptions.get_record(user.id)

        statistics = stats.to_dict()
        subscription = record.to_dict() if record else {"subscribed": False}
        subscription["is_premium"] = subscriptions.is_premium(user.id, now)

        notifications = (
            Notification.query.filter_by(user_id=user.id)
            .order_by(Notification.created_at.desc())
            .limit(10)
            .all()
        )

    return (
        jsonify(
            {
                "user": user.to_dict(),
                "statistics": statistics,
                "streak": streak.to_dict(),
                "subscription": subscription,
                "notifications": [n.to_dict() for n in notifications],
            }
        ),
        200,
    )
