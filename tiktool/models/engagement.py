# tiktool/models/engagement.py
from datetime import datetime
from .. import db


# -----------------------------
# Follow-to-earn
# -----------------------------
class PromotedProfile(db.Model):
    __tablename__ = "promoted_profiles"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    username = db.Column(db.String(50), unique=True, nullable=False)
    followers = db.Column(db.Integer, nullable=False, default=0)
    avatar_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "followers": self.followers,
            "avatar_url": self.avatar_url,
        }


class FollowedProfile(db.Model):
    __tablename__ = "followed_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    profile_id = db.Column(db.Integer, db.ForeignKey("promoted_profiles.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "profile_id", name="uq_followed_profile"),
    )


# -----------------------------
# Likes & views
# -----------------------------
class Video(db.Model):
    __tablename__ = "videos"

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(64), unique=True, nullable=False)
    url = db.Column(db.String(500), nullable=False)
    username = db.Column(db.String(50))
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    likes = db.Column(db.Integer, nullable=False, default=0)
    views = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "external_id": self.external_id,
            "url": self.url,
            "username": self.username,
            "likes": self.likes,
            "views": self.views,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class VideoInteraction(db.Model):
    __tablename__ = "video_interactions"

    id = db.Column(db.Integer, primary_key=True)
    video_id = db.Column(db.Integer, db.ForeignKey("videos.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    kind = db.Column(db.Enum("like", "view", name="video_interaction_kind"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("video_id", "user_id", "kind", name="uq_video_interaction"),
    )


# -----------------------------
# Ad placements
# -----------------------------
class AdUnit(db.Model):
    __tablename__ = "ad_units"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    placement = db.Column(db.String(50), nullable=False)
    ad_code = db.Column(db.Text, nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "placement": self.placement,
            "ad_code": self.ad_code,
            "active": self.active,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
