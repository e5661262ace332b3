# tiktool/content.py
import random
from typing import Dict, List

# Video ideas per category, served by the idea generator.
IDEAS_BY_CATEGORY: Dict[str, List[str]] = {
    "beauty": [
        "5 skincare products that changed my routine",
        "Makeup transformation in 60 seconds",
        "3 quick everyday hairstyles",
        "Honest review: viral beauty products",
        "Tutorial: perfect brows in 30 seconds",
    ],
    "dance": [
        "Learn this viral choreography in 3 steps",
        "90s dances that are back in style",
        "Challenge: dance with an unexpected object",
        "My dance style evolution over 1 year",
        "Tutorial: the dance move everyone is doing",
    ],
    "humor": [
        "Awkward situations everybody has been through",
        "Impersonating celebrities with funny filters",
        "How my mom does it vs how I do it",
        "Expectation vs reality: cooking for the first time",
        "Reacting to my old cringe videos",
    ],
    "education": [
        "3 history facts school never told you",
        "Explaining a science concept in 60 seconds",
        "Tips to learn a new language fast",
        "Surprising facts about the human body",
        "Mini lesson: solving equations the easy way",
    ],
    "tech": [
        "Review: the gadget that changed my routine",
        "5 phone tricks you didn't know",
        "Unboxing the most hyped release of the month",
        "Apps that save me an hour a day",
        "Setup tour: my creator desk",
    ],
}

HASHTAGS_BY_NICHE: Dict[str, List[str]] = {
    "beauty": ["#makeup", "#skincare", "#beautytips", "#glowup", "#makeuptutorial",
               "#skincareroutine", "#beautyhacks", "#grwm", "#nails", "#hairstyle"],
    "dance": ["#dance", "#dancechallenge", "#choreography", "#dancer", "#viraldance",
              "#dancetutorial", "#trend", "#dancetok", "#moves", "#fyp"],
    "humor": ["#comedy", "#funny", "#meme", "#humor", "#lol",
              "#relatable", "#prank", "#skit", "#comedytok", "#fyp"],
    "education": ["#learnontiktok", "#edutok", "#facts", "#science", "#history",
                  "#studytips", "#didyouknow", "#lesson", "#knowledge", "#fyp"],
    "tech": ["#tech", "#gadgets", "#iphone", "#android", "#techtok",
             "#unboxing", "#setup", "#apps", "#techtips", "#fyp"],
}


def video_ideas(category: str, limit: int = 3) -> List[str]:
    ideas = IDEAS_BY_CATEGORY.get(category) or []
    return random.sample(ideas, min(limit, len(ideas)))


def hashtags(niche: str, limit: int = 10) -> List[str]:
    tags = HASHTAGS_BY_NICHE.get(niche) or []
    return random.sample(tags, min(limit, len(tags)))


def analyze_profile(followers: int, likes: int, views: int) -> Dict:
    """
    Toy engagement analysis: (likes + views) / followers, capped at 100.
    """
    followers = max(0, int(followers or 0))
    likes = max(0, int(likes or 0))
    views = max(0, int(views or 0))

    rate = 0.0 if followers == 0 else min(100.0, (likes + views) / followers * 100)
    score = min(100, round(rate))

    strengths = []
    if followers > 10000:
        strengths.append("Solid follower base")
    if likes > followers * 0.3:
        strengths.append("High like rate")
    if views > followers * 2:
        strengths.append("Good view reach")

    improvements = []
    if followers < 1000:
        improvements.append("Follower base is still small")
    if likes < followers * 0.1:
        improvements.append("Like rate below average")
    if views < followers:
        improvements.append("Views below expectations")

    tips = []
    if followers < 5000:
        tips.append("Post more often, ideally 1-2 videos a day")
        tips.append("Use relevant, current hashtags to be discovered")
    else:
        tips.append("Keep a consistent posting schedule")
        tips.append("Try different formats to see what your audience prefers")
    if likes < followers * 0.2:
        tips.append("Add clear calls to action to your videos")
    if views < followers * 1.5:
        tips.append("Hook viewers in the first 3 seconds")

    return {
        "score": score,
        "engagement_rate": round(rate, 2),
        "strengths": strengths or ["New profile with room to grow"],
        "improvements": improvements or ["Keep improving your consistency"],
        "tips": tips,
    }
