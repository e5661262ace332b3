# tiktool/services/ledger.py
"""
Points Ledger: the only writer of UserStatistics.points.

Balances move with a single ``UPDATE ... SET points = points + :delta``
statement so two requests crediting the same user never lose an update.
Nothing here commits; the caller's unit of work does.
"""
from flask import current_app
from sqlalchemy import case, select, update

from .. import db
from ..models.user_statistics import COUNTER_FIELDS, UserStatistics


def get_or_create_stats(user_id: int) -> UserStatistics:
    stats = UserStatistics.query.filter_by(user_id=user_id).first()
    if stats:
        return stats

    stats = UserStatistics(
        user_id=user_id,
        points=int(current_app.config["STATS_SEED_POINTS"]),
        followers_gained=0,
        ideas_generated=0,
        analyses_completed=0,
        videos_shared=0,
        daily_challenges_completed=0,
    )
    db.session.add(stats)
    db.session.flush()
    return stats


def get_balance(user_id: int) -> int:
    row = db.session.execute(
        select(UserStatistics.points).where(UserStatistics.user_id == user_id)
    ).first()
    return int(row[0] or 0) if row else 0


def add_points(user_id: int, delta: int) -> int:
    """
    Apply ``delta`` to the balance and return the new balance.

    Negative deltas are only used by corrective admin paths; the balance is
    clamped at 0.
    """
    delta = int(delta)
    get_or_create_stats(user_id)

    new_points = UserStatistics.points + delta
    db.session.execute(
        update(UserStatistics)
        .where(UserStatistics.user_id == user_id)
        .values(points=case((new_points < 0, 0), else_=new_points))
        .execution_options(synchronize_session=False)
    )
    balance = get_balance(user_id)
    _expire_cached(user_id)

    current_app.logger.info(f"[ledger] user_id={user_id} delta={delta} balance={balance}")
    return balance


def set_points(user_id: int, points: int) -> int:
    """Admin override: set the balance to an absolute value."""
    points = max(0, int(points))
    get_or_create_stats(user_id)

    db.session.execute(
        update(UserStatistics)
        .where(UserStatistics.user_id == user_id)
        .values(points=points)
        .execution_options(synchronize_session=False)
    )
    _expire_cached(user_id)

    current_app.logger.info(f"[ledger] user_id={user_id} override balance={points}")
    return points


def increment_counter(user_id: int, field: str, amount: int = 1) -> None:
    if field not in COUNTER_FIELDS:
        raise ValueError(f"unknown statistics counter: {field}")

    get_or_create_stats(user_id)
    column = getattr(UserStatistics, field)
    db.session.execute(
        update(UserStatistics)
        .where(UserStatistics.user_id == user_id)
        .values({field: column + int(amount)})
        .execution_options(synchronize_session=False)
    )
    _expire_cached(user_id)


def _expire_cached(user_id: int) -> None:
    # the UPDATE bypassed the identity map; make loaded rows re-read
    stats = UserStatistics.query.filter_by(user_id=user_id).first()
    if stats is not None:
        db.session.expire(stats)
