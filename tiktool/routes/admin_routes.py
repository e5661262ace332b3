# tiktool/routes/admin_routes.py
from datetime import datetime, time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func, or_

from .. import db
from ..errors import NotFoundError, ValidationError
from ..models.engagement import AdUnit, PromotedProfile, Video
from ..models.subscription import SubscriptionRecord
from ..models.user import User
from ..models.user_statistics import UserStatistics
from ..services import ledger, subscriptions, unit_of_work
from .guards import admin_required, require_int, safe_int

admin_bp = Blueprint("admin", __name__)

# public, read-only view of the active ad placements
ads_bp = Blueprint("ads", __name__)


# ------------------------------
# Stats & users
# ------------------------------
@admin_bp.route("/stats", methods=["GET"])
@admin_required
def stats():
    today_start = datetime.combine(datetime.utcnow().date(), time.min)

    total_users = User.query.count()
    premium_users = SubscriptionRecord.query.filter(SubscriptionRecord.subscribed.is_(True)).count()
    total_points = db.session.query(func.coalesce(func.sum(UserStatistics.points), 0)).scalar()
    new_users_today = User.query.filter(User.created_at >= today_start).count()

    return (
        jsonify(
            {
                "total_users": total_users,
                "premium_users": premium_users,
                "banned_users": User.query.filter(User.is_banned.is_(True)).count(),
                "new_users_today": new_users_today,
                "total_points": int(total_points or 0),
                "promoted_profiles": PromotedProfile.query.count(),
                "videos": Video.query.count(),
            }
        ),
        200,
    )


@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    page = max(1, safe_int(request.args.get("page"), 1))
    per_page = safe_int(request.args.get("per_page"), 20)
    if per_page <= 0 or per_page > 100:
        per_page = 20
    search = (request.args.get("q") or "").strip()

    query = (
        db.session.query(User, UserStatistics, SubscriptionRecord)
        .outerjoin(UserStatistics, UserStatistics.user_id == User.id)
        .outerjoin(SubscriptionRecord, SubscriptionRecord.user_id == User.id)
    )
    if search:
        like = f"%{search}%"
        query = query.filter(or_(User.email.ilike(like), User.username.ilike(like)))

    total = query.count()
    rows = query.order_by(User.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()

    users = []
    for user, stats_row, record in rows:
        users.append(
            {
                **user.to_dict(),
                "points": int(stats_row.points) if stats_row else 0,
                "subscribed": bool(record.subscribed) if record else False,
                "subscription_tier": record.subscription_tier if record else None,
                "subscription_end": record.subscription_end.isoformat()
                if record and record.subscription_end
                else None,
            }
        )

    return jsonify({"users": users, "total": total, "page": page, "per_page": per_page}), 200


@admin_bp.route("/users/<int:user_id>", methods=["POST"])
@admin_required
def update_user(user_id):
    """
    JSON body (any combination):
    {
      "ban": true,
      "update_points": true, "points": 500,
      "update_premium": true, "premium": true
    }
    """
    data = request.get_json(silent=True) or {}

    target = db.session.get(User, user_id)
    if not target:
        raise NotFoundError("user not found")

    points = None
    if data.get("update_points"):
        points = require_int(data.get("points"), "points")
        if points < 0:
            raise ValidationError("points must be >= 0")

    response = {"success": True}

    with unit_of_work("admin update user"):
        if "ban" in data:
            target.is_banned = bool(data["ban"])
            response["ban_updated"] = True

        if points is not None:
            response["points"] = ledger.set_points(user_id, points)
            response["points_updated"] = True

        if data.get("update_premium"):
            response["subscription"] = subscriptions.grant_premium(user_id, bool(data.get("premium")))
            response["premium_updated"] = True

    current_app.logger.info(f"[admin] updated user_id={user_id} fields={sorted(response)}")
    return jsonify(response), 200


# ------------------------------
# Ad units
# ------------------------------
def _ad_fields(data, partial=False):
    fields = {}
    for key in ("name", "placement", "ad_code"):
        if key in data:
            value = (data.get(key) or "").strip()
            if not value:
                raise ValidationError(f"{key} must not be empty")
            fields[key] = value
        elif not partial:
            raise ValidationError(f"{key} is required")
    if "active" in data:
        fields["active"] = bool(data["active"])
    return fields


@admin_bp.route("/ads", methods=["GET"])
@admin_required
def list_ads():
    rows = AdUnit.query.order_by(AdUnit.created_at.desc()).all()
    return jsonify({"ads": [a.to_dict() for a in rows]}), 200


@admin_bp.route("/ads", methods=["POST"])
@admin_required
def create_ad():
    fields = _ad_fields(request.get_json(silent=True) or {})
    ad = AdUnit(**fields)

    with unit_of_work("create ad"):
        db.session.add(ad)

    return jsonify({"ad": ad.to_dict()}), 201


@admin_bp.route("/ads/<int:ad_id>", methods=["PUT"])
@admin_required
def update_ad(ad_id):
    ad = db.session.get(AdUnit, ad_id)
    if not ad:
        raise NotFoundError("ad not found")

    fields = _ad_fields(request.get_json(silent=True) or {}, partial=True)
    with unit_of_work("update ad"):
        for key, value in fields.items():
            setattr(ad, key, value)

    return jsonify({"ad": ad.to_dict()}), 200


@admin_bp.route("/ads/<int:ad_id>", methods=["DELETE"])
@admin_required
def delete_ad(ad_id):
    ad = db.session.get(AdUnit, ad_id)
    if not ad:
        raise NotFoundError("ad not found")

    with unit_of_work("delete ad"):
        db.session.delete(ad)

    return jsonify({"deleted": True, "id": ad_id}), 200


@ads_bp.route("", methods=["GET"])
def active_ads():
    placement = (request.args.get("placement") or "").strip()
    query = AdUnit.query.filter(AdUnit.active.is_(True))
    if placement:
        query = query.filter_by(placement=placement)
    return jsonify({"ads": [a.to_dict() for a in query.all()]}), 200
