# tiktool/services/streaks.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from .. import db
from ..models.progression import UserStreak


@dataclass
class StreakStatus:
    current_streak: int
    last_completed_at: Optional[datetime]
    points_today: int
    points_limit: int
    bonus_points: int
    daily_limit_reached: bool

    def to_dict(self):
        return {
            "current_streak": self.current_streak,
            "last_completed_at": self.last_completed_at.isoformat()
            if self.last_completed_at
            else None,
            "points_today": self.points_today,
            "points_limit": self.points_limit,
            "bonus_points": self.bonus_points,
            "daily_limit_reached": self.daily_limit_reached,
        }


@dataclass
class StreakUpdate:
    current_streak: int
    points_today: int
    bonus: int
    # streak continued from yesterday (as opposed to started/restarted/same day)
    extended: bool
    points_granted: int
    daily_limit_reached: bool


def _cap() -> int:
    return int(current_app.config["DAILY_POINTS_CAP"])


def compute_bonus(streak: int) -> int:
    step = int(current_app.config["STREAK_BONUS_STEP"])
    return min(streak * step, int(current_app.config["STREAK_BONUS_MAX"]))


def get_or_create_streak(user_id: int) -> UserStreak:
    row = UserStreak.query.filter_by(user_id=user_id).first()
    if row:
        return row

    row = UserStreak(user_id=user_id, current_streak=0, last_completed_at=None, points_today=0)
    db.session.add(row)
    db.session.flush()
    return row


def effective_points_today(row: UserStreak, now: datetime) -> int:
    """points_today counts only while last_completed_at is still today."""
    if row.last_completed_at is None or row.last_completed_at.date() != now.date():
        return 0
    return int(row.points_today or 0)


def status(user_id: int, now: Optional[datetime] = None) -> StreakStatus:
    now = now or datetime.utcnow()
    row = get_or_create_streak(user_id)
    today_points = effective_points_today(row, now)
    streak = int(row.current_streak or 0)

    return StreakStatus(
        current_streak=streak,
        last_completed_at=row.last_completed_at,
        points_today=today_points,
        points_limit=_cap(),
        bonus_points=compute_bonus(streak),
        daily_limit_reached=today_points >= _cap(),
    )


def record_completion(
    user_id: int,
    points_earned: int,
    now: Optional[datetime] = None,
    capped: bool = True,
) -> StreakUpdate:
    """
    Register a completed challenge for today.

    Streak: same day -> unchanged, yesterday -> +1, anything else -> 1.
    For capped users points_today never goes past the daily cap, and a
    call made once the cap is hit changes nothing.
    """
    now = now or datetime.utcnow()
    row = get_or_create_streak(user_id)

    today = now.date()
    yesterday = today - timedelta(days=1)
    last_date = row.last_completed_at.date() if row.last_completed_at else None
    points_today = effective_points_today(row, now)
    streak = int(row.current_streak or 0)
    cap = _cap()

    if capped and points_today >= cap:
        return StreakUpdate(
            current_streak=streak,
            points_today=points_today,
            bonus=compute_bonus(streak),
            extended=False,
            points_granted=0,
            daily_limit_reached=True,
        )

    extended = False
    if last_date == today:
        pass
    elif last_date == yesterday:
        streak += 1
        extended = True
    else:
        streak = 1

    granted = max(0, int(points_earned))
    if capped:
        granted = min(granted, cap - points_today)

    row.current_streak = streak
    row.last_completed_at = now
    row.points_today = points_today + granted

    current_app.logger.info(
        f"[streak] user_id={user_id} streak={streak} points_today={row.points_today}"
    )

    return StreakUpdate(
        current_streak=streak,
        points_today=row.points_today,
        bonus=compute_bonus(streak),
        extended=extended,
        points_granted=granted,
        daily_limit_reached=capped and row.points_today >= cap,
    )
