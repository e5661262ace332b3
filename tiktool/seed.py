# tiktool/seed.py
from flask import current_app

from . import db
from .models.progression import Badge, Challenge

DEFAULT_BADGES = [
    {
        "code": "streak_3",
        "name": "On Fire",
        "description": "Completed challenges 3 days in a row",
        "icon": "flame",
        "requirement": "3-day streak",
    },
    {
        "code": "streak_7",
        "name": "Committed",
        "description": "Completed challenges 7 days in a row",
        "icon": "calendar",
        "requirement": "7-day streak",
    },
    {
        "code": "streak_30",
        "name": "Unstoppable",
        "description": "Completed challenges 30 days in a row",
        "icon": "trophy",
        "requirement": "30-day streak",
    },
]

DEFAULT_CHALLENGES = [
    {
        "code": "follow_30",
        "title": "Follow 30 creators",
        "description": "Follow 30 profiles from the follow-to-earn feed",
        "type": "follow_users",
        "goal": 30,
        "points": 20,
    },
    {
        "code": "analyze_profile",
        "title": "Analyze your profile",
        "description": "Run one profile analysis",
        "type": "analyze_profile",
        "goal": 1,
        "points": 10,
    },
    {
        "code": "generate_ideas",
        "title": "Generate video ideas",
        "description": "Get fresh ideas for your next video",
        "type": "generate_ideas",
        "goal": 1,
        "points": 10,
    },
    {
        "code": "find_hashtags",
        "title": "Find trending hashtags",
        "description": "Look up hashtags for your niche",
        "type": "find_hashtags",
        "goal": 1,
        "points": 10,
    },
    {
        "code": "share_video",
        "title": "Share a video",
        "description": "Submit one of your videos to the likes & views feed",
        "type": "share_video",
        "goal": 1,
        "points": 20,
    },
]


def seed_defaults():
    """Insert the default badges and challenges that are not there yet."""
    added = 0

    existing_badges = {b.code for b in Badge.query.all()}
    for data in DEFAULT_BADGES:
        if data["code"] not in existing_badges:
            db.session.add(Badge(**data))
            added += 1

    existing_challenges = {c.code for c in Challenge.query.all()}
    for data in DEFAULT_CHALLENGES:
        if data["code"] not in existing_challenges:
            db.session.add(Challenge(active=True, **data))
            added += 1

    if added:
        db.session.commit()
        current_app.logger.info(f"[seed] inserted {added} default rows")
