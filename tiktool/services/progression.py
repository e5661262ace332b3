# tiktool/services/progression.py
"""
Challenge step flow: progress -> streak -> ledger -> badges.

Every path that can complete a challenge (the challenge page itself, the
follow-to-earn action) goes through ``apply_step`` so the reconciliation
sequence exists exactly once.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app

from .. import db
from ..errors import NotFoundError
from ..models.progression import Challenge
from . import badges, challenges, ledger, run_in_unit_of_work, streaks, subscriptions, unit_of_work


def apply_step(user_id: int, challenge: Challenge, now: datetime, capped: bool) -> Dict[str, Any]:
    progress = challenges.advance(user_id, challenge, now)

    result: Dict[str, Any] = {
        "challenge_id": challenge.id,
        **progress.to_dict(),
        "points_awarded": 0,
        "bonus_awarded": 0,
        "badges_awarded": [],
        "daily_limit_reached": False,
    }
    if not progress.just_completed:
        return result

    update = streaks.record_completion(user_id, int(challenge.points or 0), now, capped=capped)

    # a first-day or restarted streak earns no bonus; only a streak carried
    # over from yesterday pays min(streak * 10, 50)
    bonus = update.bonus if update.extended else 0
    awarded = update.points_granted + bonus

    if awarded > 0:
        result["balance"] = ledger.add_points(user_id, awarded)
        subscriptions.record_points_earned(user_id, awarded, now)
    ledger.increment_counter(user_id, "daily_challenges_completed")

    result.update(
        {
            "points_awarded": update.points_granted,
            "bonus_awarded": bonus,
            "current_streak": update.current_streak,
            "points_today": update.points_today,
            "daily_limit_reached": update.daily_limit_reached,
            "badges_awarded": badges.check_and_award(user_id, update.current_streak),
        }
    )
    return result


def _step(user_id: int, challenge: Challenge, now: datetime) -> Dict[str, Any]:
    capped = not subscriptions.is_premium(user_id, now)
    streak = streaks.status(user_id, now)

    if capped and streak.daily_limit_reached:
        return {
            "challenge_id": challenge.id,
            "daily_limit_reached": True,
            "points_awarded": 0,
            "bonus_awarded": 0,
            "badges_awarded": [],
            "points_today": streak.points_today,
        }
    return apply_step(user_id, challenge, now, capped)


def complete_step(user_id: int, challenge_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()

    challenge = db.session.get(Challenge, challenge_id)
    if not challenge or not challenge.active:
        raise NotFoundError("challenge not found")
    code = challenge.code

    result = run_in_unit_of_work("challenge step", _step, user_id, challenge, now)

    if "progress" not in result:
        current_app.logger.info(f"[challenges] user_id={user_id} daily limit reached")
    else:
        current_app.logger.info(
            f"[challenges] user_id={user_id} challenge={code} "
            f"progress={result['progress']}/{result['goal']}"
        )
    return result


def daily_overview(user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()

    with unit_of_work("daily overview"):
        progress_rows = challenges.today(user_id, now)
        items = []
        for challenge in challenges.active_challenges():
            row = progress_rows.get(challenge.id)
            items.append(
                {
                    **challenge.to_dict(),
                    "progress": int(row.progress) if row else 0,
                    "completed": bool(row.completed) if row else False,
                }
            )
        streak = streaks.status(user_id, now)
        if not subscriptions.is_premium(user_id, now):
            limit_reached = streak.daily_limit_reached
        else:
            limit_reached = False

    return {
        "challenges": items,
        "streak": {**streak.to_dict(), "daily_limit_reached": limit_reached},
    }
