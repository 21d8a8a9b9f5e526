from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.quoteboard.access import Principal
from app.quoteboard.errors import Forbidden, Unauthorized
from app.quoteboard.models import User


def principal_for(user: User | None) -> Principal | None:
    if not user:
        return None
    return Principal(user_id=user.id, is_admin=bool(user.is_admin))


def current_principal() -> Principal:
    """Principal for the logged-in user; raises Unauthorized when there is none."""
    principal = principal_for(getattr(g, "current_user", None))
    if principal is None:
        raise Unauthorized()
    return principal


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_principal()
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        # Unauthenticated -> 401, authenticated but not admin -> 403
        principal = current_principal()
        if not principal.is_admin:
            g.missing_permission = "admin"
            raise Forbidden("Admin access required")
        return fn(*args, **kwargs)

    return wrapped
