# tiktool/models/user_statistics.py
from datetime import datetime
from .. import db

# Counters the engagement actions may bump; "points" goes through the ledger.
COUNTER_FIELDS = (
    "followers_gained",
    "ideas_generated",
    "analyses_completed",
    "videos_shared",
    "daily_challenges_completed",
)


class UserStatistics(db.Model):
    __tablename__ = "user_statistics"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    followers_gained = db.Column(db.Integer, default=0, nullable=False)
    ideas_generated = db.Column(db.Integer, default=0, nullable=False)
    analyses_completed = db.Column(db.Integer, default=0, nullable=False)
    videos_shared = db.Column(db.Integer, default=0, nullable=False)
    daily_challenges_completed = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    user = db.relationship("User", backref=db.backref("statistics", uselist=False))

    def to_dict(self):
        return {
            "points": int(self.points or 0),
            "followers_gained": int(self.followers_gained or 0),
            "ideas_generated": int(self.ideas_generated or 0),
            "analyses_completed": int(self.analyses_completed or 0),
            "videos_shared": int(self.videos_shared or 0),
            "daily_challenges_completed": int(self.daily_challenges_completed or 0),
        }
