from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from app.quoteboard.access import Principal, everyone_group_id, visible_groups_for
from app.quoteboard.audit import record_event
from app.quoteboard.errors import InvalidInput, parse_text
from app.quoteboard.models import User, UserGroup

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 150
MAX_DISPLAY_NAME_LENGTH = 255


def normalize_username(raw: object) -> str:
    return parse_text(raw, "Username").lower()


def validate_user_payload(payload: dict) -> list[str]:
    """Validate user creation payload. Returns list of errors."""
    errors = []
    try:
        username = normalize_username(payload.get("username"))
    except InvalidInput as e:
        errors.append(e.message)
        username = None
    try:
        display_name = parse_text(payload.get("display_name"), "Display name")
    except InvalidInput as e:
        errors.append(e.message)
        display_name = None
    password = payload.get("password")

    if username == "":
        errors.append("Username is required.")
    elif username and len(username) > MAX_USERNAME_LENGTH:
        errors.append(f"Username must be at most {MAX_USERNAME_LENGTH} characters.")
    if password is not None and not isinstance(password, str):
        errors.append("Password must be a string.")
    elif not password:
        errors.append("Password is required.")
    if display_name == "":
        errors.append("Display name is required.")
    elif display_name and len(display_name) > MAX_DISPLAY_NAME_LENGTH:
        errors.append(f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters.")
    return errors


def create_user(s: "Session", payload: dict, actor: User | None) -> User:
    """Create a user and enroll them in the default group."""
    errors = validate_user_payload(payload)
    if errors:
        raise InvalidInput(" ".join(errors))

    username = normalize_username(payload.get("username"))
    if s.execute(select(User.id).where(User.username == username)).first() is not None:
        raise InvalidInput("Username already exists")

    user = User(
        username=username,
        password_hash=generate_password_hash(payload["password"]),
        display_name=parse_text(payload.get("display_name"), "Display name"),
        is_admin=bool(payload.get("is_admin")),
    )
    s.add(user)
    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        raise InvalidInput("Username already exists")

    default_group = everyone_group_id(s)
    if default_group is not None:
        s.add(UserGroup(user_id=user.id, group_id=default_group))
        s.flush()
    else:
        logger.warning("Default group missing; user_id=%s created without memberships", user.id)

    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": user.username, "is_admin": user.is_admin},
    )
    return user


def authenticate(s: "Session", username: object, password: object) -> User | None:
    if password is not None and not isinstance(password, str):
        raise InvalidInput("Password must be a string.")
    user = s.execute(select(User).where(User.username == normalize_username(username))).scalar_one_or_none()
    if not user or not check_password_hash(user.password_hash, password or ""):
        return None
    return user


def list_users(s: "Session", principal: Principal) -> list[User]:
    """Users the principal may attribute quotes to: anyone sharing a visible group."""
    scope = visible_groups_for(s, principal)
    q = select(User)
    if not scope.unrestricted:
        shares_group = (
            select(UserGroup.user_id)
            .where(scope.clause(UserGroup.group_id))
        )
        q = q.where(User.id.in_(shares_group))
    return list(s.execute(q.order_by(User.display_name.asc(), User.id.asc())).scalars())


def user_to_dict(user: User) -> dict:
    return {"id": user.id, "username": user.username, "displayName": user.display_name}
