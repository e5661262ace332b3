# tiktool/services/engagement.py
"""
Engagement actions. Each one validates first, then does its writes (and any
point credit) in a single unit of work. Repeating an action that already
happened is reported as ``already_done`` rather than raised, including when
two requests race on the same unique row.
"""
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from flask import current_app
from sqlalchemy import update

from .. import content, db
from ..errors import NotFoundError, ValidationError
from ..models.engagement import FollowedProfile, PromotedProfile, Video, VideoInteraction
from ..models.progression import Challenge
from . import ledger, progression, run_in_unit_of_work, subscriptions, unit_of_work

_VIDEO_ID_RE = re.compile(r"/video/(\d+)")
_SHARE_CODE_RE = re.compile(r"^[A-Za-z0-9]+$")
_USERNAME_IN_URL_RE = re.compile(r"@([^/?#]+)")
_HANDLE_RE = re.compile(r"^[A-Za-z0-9._]{2,24}$")


def _credit(user_id: int, points: int, now: datetime) -> int:
    balance = ledger.add_points(user_id, points)
    subscriptions.record_points_earned(user_id, points, now)
    return balance


# ---------------------------------------------------------------------------
# Follow-to-earn
# ---------------------------------------------------------------------------

def _find_profile(handle: str) -> Optional[PromotedProfile]:
    return PromotedProfile.query.filter_by(username=handle).first()


def _register(user_id: int, handle: str) -> Dict[str, Any]:
    existing = _find_profile(handle)
    if existing:
        if existing.owner_id != user_id:
            raise ValidationError("username already registered by another account")
        return {"already_done": True, "profile": existing.to_dict()}

    profile = PromotedProfile(owner_id=user_id, username=handle, followers=0)
    db.session.add(profile)
    db.session.flush()
    return {"already_done": False, "profile": profile.to_dict()}


def register_profile(user_id: int, username: str) -> Dict[str, Any]:
    handle = (username or "").strip().lstrip("@")
    if not _HANDLE_RE.match(handle):
        raise ValidationError("a valid TikTok username is required")

    return run_in_unit_of_work("register profile", _register, user_id, f"@{handle}")


def suggested_profiles(user_id: int, limit: int = 20):
    followed_ids = db.session.query(FollowedProfile.profile_id).filter(
        FollowedProfile.user_id == user_id
    )
    rows = (
        PromotedProfile.query.filter(
            PromotedProfile.owner_id != user_id,
            ~PromotedProfile.id.in_(followed_ids),
        )
        .order_by(PromotedProfile.created_at.desc())
        .limit(limit)
        .all()
    )
    return [p.to_dict() for p in rows]


def _is_following(user_id: int, profile_id: int) -> bool:
    return FollowedProfile.query.filter_by(user_id=user_id, profile_id=profile_id).first() is not None


def _follow(user_id: int, profile_id: int, owner_id: int, now: datetime) -> Dict[str, Any]:
    if _is_following(user_id, profile_id):
        return {"already_done": True, "points_awarded": 0}

    db.session.add(FollowedProfile(user_id=user_id, profile_id=profile_id))
    db.session.flush()

    points = int(current_app.config["FOLLOW_POINTS"])
    balance = _credit(user_id, points, now)
    ledger.increment_counter(owner_id, "followers_gained")
    db.session.execute(
        update(PromotedProfile)
        .where(PromotedProfile.id == profile_id)
        .values(followers=PromotedProfile.followers + 1)
        .execution_options(synchronize_session=False)
    )

    result: Dict[str, Any] = {
        "already_done": False,
        "points_awarded": points,
        "balance": balance,
        "challenge": None,
    }

    challenge = Challenge.query.filter_by(
        code=current_app.config["FOLLOW_CHALLENGE_CODE"], active=True
    ).first()
    if challenge:
        capped = not subscriptions.is_premium(user_id, now)
        step = progression.apply_step(user_id, challenge, now, capped)
        result["challenge"] = step
        result["balance"] = step.get("balance", balance)
    return result


def follow_profile(user_id: int, profile_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()

    profile = db.session.get(PromotedProfile, profile_id)
    if not profile:
        raise NotFoundError("profile not found")
    if profile.owner_id == user_id:
        raise ValidationError("cannot follow your own profile")

    result = run_in_unit_of_work("follow profile", _follow, user_id, profile_id, profile.owner_id, now)

    current_app.logger.info(
        f"[engage/follow] user_id={user_id} profile_id={profile_id} already_done={result['already_done']}"
    )
    return result


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------

def parse_video_url(url: str) -> Tuple[str, str]:
    """
    Returns (external_video_id, username) for a TikTok video or share link.
    Raises ValidationError for anything else.
    """
    url = (url or "").strip()
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if parsed.scheme not in ("http", "https") or not (host == "tiktok.com" or host.endswith(".tiktok.com")):
        raise ValidationError("please enter a valid TikTok video URL")

    match = _VIDEO_ID_RE.search(parsed.path)
    if match:
        video_id = match.group(1)
    elif "/t/" in parsed.path:
        video_id = parsed.path.rstrip("/").split("/")[-1]
        if not _SHARE_CODE_RE.match(video_id) or video_id == "t":
            raise ValidationError("please enter a valid TikTok video URL")
    else:
        raise ValidationError("please enter a valid TikTok video URL")

    user_match = _USERNAME_IN_URL_RE.search(parsed.path)
    username = user_match.group(1) if user_match else "username"
    return video_id, username


def _find_video(external_id: str) -> Optional[Video]:
    return Video.query.filter_by(external_id=external_id).first()


def _submit(user_id: int, url: str, video_id: str, username: str, now: datetime) -> Dict[str, Any]:
    existing = _find_video(video_id)
    if existing:
        return {"already_done": True, "points_awarded": 0, "video": existing.to_dict()}

    video = Video(external_id=video_id, url=url, username=username, user_id=user_id)
    db.session.add(video)
    db.session.flush()

    points = int(current_app.config["VIDEO_POINTS"])
    balance = _credit(user_id, points, now)
    ledger.increment_counter(user_id, "videos_shared")
    return {"already_done": False, "points_awarded": points, "balance": balance, "video": video.to_dict()}


def submit_video(user_id: int, url: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    video_id, username = parse_video_url(url)

    result = run_in_unit_of_work("submit video", _submit, user_id, url.strip(), video_id, username, now)

    current_app.logger.info(f"[engage/video] user_id={user_id} video={video_id}")
    return result


def list_videos(limit: int = 10) -> Dict[str, Any]:
    return {
        "recent": [v.to_dict() for v in Video.query.order_by(Video.created_at.desc()).limit(limit)],
        "most_liked": [v.to_dict() for v in Video.query.order_by(Video.likes.desc()).limit(limit)],
        "most_viewed": [v.to_dict() for v in Video.query.order_by(Video.views.desc()).limit(limit)],
    }


def _interact(user_id: int, video: Video, kind: str) -> Dict[str, Any]:
    if VideoInteraction.query.filter_by(video_id=video.id, user_id=user_id, kind=kind).first():
        return {"already_done": True, "video": video.to_dict()}

    db.session.add(VideoInteraction(video_id=video.id, user_id=user_id, kind=kind))
    db.session.flush()
    column = Video.likes if kind == "like" else Video.views
    db.session.execute(
        update(Video)
        .where(Video.id == video.id)
        .values({column.key: column + 1})
        .execution_options(synchronize_session=False)
    )
    db.session.expire(video)
    return {"already_done": False, "video": video.to_dict()}


def interact_with_video(user_id: int, video_id: int, kind: str) -> Dict[str, Any]:
    if kind not in ("like", "view"):
        raise ValidationError("kind must be 'like' or 'view'")

    video = db.session.get(Video, video_id)
    if not video:
        raise NotFoundError("video not found")

    return run_in_unit_of_work("video interaction", _interact, user_id, video, kind)


# ---------------------------------------------------------------------------
# Content tools
# ---------------------------------------------------------------------------

def generate_content(user_id: int, kind: str, topic: Optional[str] = None, profile=None) -> Dict[str, Any]:
    if kind == "hashtags":
        if topic not in content.HASHTAGS_BY_NICHE:
            raise ValidationError("please select a niche")
        result = {"hashtags": content.hashtags(topic)}
        counter = "ideas_generated"
    elif kind == "ideas":
        if topic not in content.IDEAS_BY_CATEGORY:
            raise ValidationError("please select a category")
        result = {"ideas": content.video_ideas(topic)}
        counter = "ideas_generated"
    elif kind == "analysis":
        profile = profile or {}
        try:
            analysis = content.analyze_profile(
                int(profile.get("followers") or 0),
                int(profile.get("likes") or 0),
                int(profile.get("views") or 0),
            )
        except (TypeError, ValueError):
            raise ValidationError("followers, likes and views must be numbers")
        result = {"analysis": analysis}
        counter = "analyses_completed"
    else:
        raise ValidationError("kind must be 'hashtags', 'ideas' or 'analysis'")

    with unit_of_work("generate content"):
        ledger.increment_counter(user_id, counter)

    return {"kind": kind, **result}
