# tiktool/services/challenges.py
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import case, update

from .. import db
from ..models.progression import Challenge, ChallengeProgress


@dataclass
class ProgressUpdate:
    progress: int
    goal: int
    completed: bool
    just_completed: bool

    @property
    def state(self) -> str:
        if self.completed:
            return "completed"
        return "in_progress" if self.progress > 0 else "not_started"

    def to_dict(self):
        return {
            "progress": self.progress,
            "goal": self.goal,
            "completed": self.completed,
            "just_completed": self.just_completed,
            "state": self.state,
        }


def _today_row(user_id: int, challenge_id: int, now: datetime) -> Optional[ChallengeProgress]:
    return ChallengeProgress.query.filter_by(
        user_id=user_id,
        challenge_id=challenge_id,
        progress_date=now.date(),
    ).first()


def advance(user_id: int, challenge: Challenge, now: Optional[datetime] = None) -> ProgressUpdate:
    """
    Count one step towards today's goal for ``challenge``.

    Progress never exceeds the goal and ``completed`` never flips back
    within the day. A new calendar day starts from a fresh row. Awarding
    points for a completion is the caller's job.
    """
    now = now or datetime.utcnow()
    goal = max(1, int(challenge.goal or 1))

    row = _today_row(user_id, challenge.id, now)
    if row is None:
        # a concurrent first step hits uq_challenge_progress_day here
        row = ChallengeProgress(
            user_id=user_id,
            challenge_id=challenge.id,
            progress_date=now.date(),
            progress=0,
            completed=False,
        )
        db.session.add(row)
        db.session.flush()

    next_progress = ChallengeProgress.progress + 1
    db.session.execute(
        update(ChallengeProgress)
        .where(ChallengeProgress.id == row.id)
        .values(progress=case((next_progress > goal, goal), else_=next_progress))
        .execution_options(synchronize_session=False)
    )
    # only the request whose UPDATE flips the flag owns the completion
    flipped = db.session.execute(
        update(ChallengeProgress)
        .where(
            ChallengeProgress.id == row.id,
            ChallengeProgress.progress >= goal,
            ChallengeProgress.completed.is_(False),
        )
        .values(completed=True)
        .execution_options(synchronize_session=False)
    )
    db.session.expire(row)

    completed = bool(row.completed)
    return ProgressUpdate(
        progress=int(row.progress),
        goal=goal,
        completed=completed,
        just_completed=flipped.rowcount == 1,
    )


def today(user_id: int, now: Optional[datetime] = None) -> Dict[int, ChallengeProgress]:
    now = now or datetime.utcnow()
    rows = ChallengeProgress.query.filter_by(user_id=user_id, progress_date=now.date()).all()
    return {row.challenge_id: row for row in rows}


def active_challenges():
    return Challenge.query.filter(Challenge.active.is_(True)).order_by(Challenge.id.asc()).all()
