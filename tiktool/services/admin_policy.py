# tiktool/services/admin_policy.py
from ..models.user import AdminUser


class AdminPolicy:
    """Single source of truth for "may this user use the admin surface?"."""

    def __init__(self, admin_user_ids=None):
        self.admin_user_ids = {str(uid) for uid in (admin_user_ids or [])}

    def is_admin(self, user_id) -> bool:
        if user_id is None:
            return False
        if str(user_id) in self.admin_user_ids:
            return True
        return AdminUser.query.filter_by(user_id=int(user_id)).first() is not None
