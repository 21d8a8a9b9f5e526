from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.quoteboard.access import Principal, everyone_group_name, visible_groups_for
from app.quoteboard.audit import record_event
from app.quoteboard.errors import InvalidInput, NotFound, parse_text
from app.quoteboard.models import Group, User, UserGroup

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MAX_GROUP_NAME_LENGTH = 128


def validate_group_name(raw: object) -> str:
    name = parse_text(raw, "Group name")
    if not name:
        raise InvalidInput("Group name is required.")
    if len(name) > MAX_GROUP_NAME_LENGTH:
        raise InvalidInput(f"Group name must be at most {MAX_GROUP_NAME_LENGTH} characters.")
    return name


def create_group(s: "Session", actor: User | None, name: str | None) -> Group:
    """Create a new, empty group. Names are unique."""
    name = validate_group_name(name)
    if s.execute(select(Group.id).where(Group.name == name)).first() is not None:
        raise InvalidInput("Group name already exists.")

    group = Group(name=name)
    s.add(group)
    try:
        s.flush()
    except IntegrityError:
        # Lost a race with a concurrent create of the same name.
        s.rollback()
        raise InvalidInput("Group name already exists.")

    record_event(
        s,
        actor=actor,
        action="group.create",
        entity_type="Group",
        entity_id=str(group.id),
        metadata={"name": group.name},
    )
    return group


def get_group(s: "Session", group_id: int) -> Group:
    group = s.get(Group, group_id)
    if not group:
        raise NotFound("Group not found")
    return group


def _has_membership(s: "Session", user_id: int, group_id: int) -> bool:
    return s.get(UserGroup, (user_id, group_id)) is not None


def add_membership(s: "Session", actor: User | None, user_id: int, group_id: int) -> bool:
    """
    Add (user, group). Returns True if a row was inserted, False if the pair
    already existed. Either way the call succeeds.
    """
    if not s.get(User, user_id):
        raise NotFound("User not found")
    group = get_group(s, group_id)

    if _has_membership(s, user_id, group_id):
        return False

    s.add(UserGroup(user_id=user_id, group_id=group_id))
    try:
        s.flush()
    except IntegrityError:
        # Concurrent add of the same pair; the row exists, which is all we promise.
        s.rollback()
        return False

    record_event(
        s,
        actor=actor,
        action="group.member_add",
        entity_type="Group",
        entity_id=str(group_id),
        metadata={"user_id": user_id, "group": group.name},
    )
    return True


def remove_membership(s: "Session", actor: User | None, user_id: int, group_id: int) -> bool:
    """
    Remove (user, group). Returns True if a row was deleted. Removing an absent
    pair is a successful no-op; removing a user's last group leaves them with
    an empty scope.
    """
    membership = s.get(UserGroup, (user_id, group_id))
    if membership is None:
        return False

    s.delete(membership)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="group.member_remove",
        entity_type="Group",
        entity_id=str(group_id),
        metadata={"user_id": user_id},
    )
    return True


def list_groups(s: "Session", principal: Principal) -> list[dict]:
    """Groups in the principal's scope, with member counts."""
    scope = visible_groups_for(s, principal)
    member_count = (
        select(UserGroup.group_id, func.count(UserGroup.user_id).label("member_count"))
        .group_by(UserGroup.group_id)
        .subquery()
    )
    rows = s.execute(
        select(Group.id, Group.name, func.coalesce(member_count.c.member_count, 0))
        .outerjoin(member_count, member_count.c.group_id == Group.id)
        .where(scope.clause(Group.id))
        .order_by(Group.name.asc(), Group.id.asc())
    ).all()
    return [{"id": gid, "name": name, "memberCount": int(count)} for gid, name, count in rows]


def list_members(s: "Session", group_id: int) -> list[dict]:
    get_group(s, group_id)
    users = s.execute(
        select(User)
        .join(UserGroup, UserGroup.user_id == User.id)
        .where(UserGroup.group_id == group_id)
        .order_by(User.display_name.asc(), User.id.asc())
    ).scalars()
    return [{"id": u.id, "username": u.username, "displayName": u.display_name} for u in users]


def ensure_everyone_group(s: "Session") -> Group:
    """Idempotently create the default group."""
    name = everyone_group_name()
    group = s.execute(select(Group).where(Group.name == name)).scalar_one_or_none()
    if group is None:
        group = Group(name=name)
        s.add(group)
        s.flush()
        logger.info("Created default group %r (id=%s)", name, group.id)
    return group


def backfill_everyone(s: "Session") -> tuple[int, int]:
    """
    Enroll every user who is not yet in the default group.

    Best-effort: each membership is committed on its own, a failed insert is
    logged and skipped, earlier inserts are kept. Returns (added, failed).
    """
    group = ensure_everyone_group(s)
    s.commit()

    enrolled = select(UserGroup.user_id).where(UserGroup.group_id == group.id)
    user_ids = s.execute(select(User.id).where(User.id.not_in(enrolled)).order_by(User.id)).scalars().all()

    added = failed = 0
    for user_id in user_ids:
        try:
            s.add(UserGroup(user_id=user_id, group_id=group.id))
            s.commit()
            added += 1
        except SQLAlchemyError as e:
            s.rollback()
            failed += 1
            logger.warning("Backfill: could not add user_id=%s to %r: %s", user_id, group.name, e)
    if added or failed:
        logger.info("Backfill into %r complete: added=%s failed=%s", group.name, added, failed)
    return added, failed

