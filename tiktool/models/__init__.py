# tiktool/models/__init__.py
from .user import User, AdminUser  # noqa: F401
from .user_statistics import UserStatistics  # noqa: F401
from .progression import (  # noqa: F401
    UserStreak,
    Challenge,
    ChallengeProgress,
    Badge,
    UserBadge,
    Notification,
)
from .subscription import SubscriptionRecord, ProcessedWebhookEvent  # noqa: F401
from .engagement import (  # noqa: F401
    PromotedProfile,
    FollowedProfile,
    Video,
    VideoInteraction,
    AdUnit,
)
