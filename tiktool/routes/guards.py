# tiktool/routes/guards.py
from functools import wraps
from typing import Any

from flask import current_app
from flask_jwt_extended import get_jwt_identity, jwt_required

from .. import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models.user import User


def safe_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def require_int(v: Any, name: str) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def current_user() -> User:
    """The JWT user; 404 if the row is gone, 403 if banned."""
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        raise NotFoundError("user not found")
    if user.is_banned:
        raise ForbiddenError("account is banned")
    return user


def admin_required(fn):
    @wraps(fn)
    @jwt_required()
    def wrapper(*args, **kwargs):
        user = current_user()
        if not current_app.extensions["admin_policy"].is_admin(user.id):
            current_app.logger.warning(f"[admin] denied user_id={user.id}")
            raise ForbiddenError("admin access required")
        return fn(*args, **kwargs)

    return wrapper
