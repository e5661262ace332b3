# config.py
import os
from datetime import timedelta


def _csv(value):
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tiktool.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 🔐 JWT config
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    # Billing (Stripe)
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_PREMIUM_PRICE_ID = os.environ.get("STRIPE_PREMIUM_PRICE_ID", "")
    # price of a single point in cents, for one-time point purchases
    STRIPE_POINTS_UNIT_AMOUNT = int(os.environ.get("STRIPE_POINTS_UNIT_AMOUNT", "10"))
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5173")

    # user ids that are always admins; the admin_users table adds more
    ADMIN_USER_IDS = _csv(os.environ.get("ADMIN_USER_IDS"))

    # Points economy
    STATS_SEED_POINTS = 10
    DAILY_POINTS_CAP = 50
    STREAK_BONUS_STEP = 10
    STREAK_BONUS_MAX = 50
    FOLLOW_POINTS = 2
    VIDEO_POINTS = 5
    PREMIUM_BONUS_POINTS = 200
    PREMIUM_TIER = "Premium"
    PREMIUM_GRANT_DAYS = 30
    FOLLOW_CHALLENGE_CODE = "follow_30"


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    ADMIN_USER_IDS = ["1"]
