# tiktool/services/badges.py
from datetime import datetime
from typing import List

from flask import current_app

from .. import db
from ..models.progression import Badge, Notification, UserBadge

# streak length -> badge code
STREAK_BADGES = (
    (3, "streak_3"),
    (7, "streak_7"),
    (30, "streak_30"),
)


def _award_if_not_earned(user_id: int, code: str) -> bool:
    """
    Insert the (user, badge) row unless it already exists.
    Returns True only when the row was created by this call.
    """
    badge = Badge.query.filter_by(code=code).first()
    if not badge:
        current_app.logger.warning(f"[badges] no badge definition for code='{code}'")
        return False

    exists = UserBadge.query.filter_by(user_id=user_id, badge_id=badge.id).first()
    if exists:
        return False

    db.session.add(UserBadge(user_id=user_id, badge_id=badge.id, achieved_at=datetime.utcnow()))
    db.session.add(
        Notification(
            user_id=user_id,
            kind="badge",
            title="New badge unlocked!",
            body=f"You earned the {badge.name} badge.",
        )
    )
    db.session.flush()
    current_app.logger.info(f"[badges] user_id={user_id} awarded '{code}'")
    return True


def check_and_award(user_id: int, streak_count: int) -> List[str]:
    awarded = []
    for threshold, code in STREAK_BADGES:
        if streak_count >= threshold and _award_if_not_earned(user_id, code):
            awarded.append(code)
    return awarded


def list_badges(user_id: int):
    achieved = {
        ub.badge_id: ub
        for ub in UserBadge.query.filter_by(user_id=user_id).all()
    }

    payload = []
    for badge in Badge.query.order_by(Badge.id.asc()).all():
        ub = achieved.get(badge.id)
        payload.append(
            {
                "id": badge.id,
                "code": badge.code,
                "name": badge.name,
                "description": badge.description,
                "icon": badge.icon,
                "requirement": badge.requirement,
                "achieved": ub is not None,
                "achieved_at": ub.achieved_at.isoformat() if ub else None,
            }
        )
    return payload
