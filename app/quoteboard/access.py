"""
Group-scoped access control.

Every group-scoped read or write resolves the caller's scope through
`visible_groups_for()` and narrows its query with `GroupScope.clause()`.
Admins get the unrestricted scope; everyone else gets exactly the set of
groups they are a member of (possibly empty, which means "sees nothing").

Membership lookups fail closed: a storage error aborts the operation with
StorageFailure rather than falling back to any default scope.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from flask import current_app, has_app_context
from sqlalchemy import ColumnElement, false, select, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.quoteboard.config import load_settings
from app.quoteboard.errors import StorageFailure
from app.quoteboard.models import Group, UserGroup

logger = logging.getLogger(__name__)

DEFAULT_EVERYONE_GROUP_NAME = "Everyone"


@dataclass(frozen=True)
class Principal:
    """The authenticated identity a request acts as."""

    user_id: int
    is_admin: bool = False


@dataclass(frozen=True)
class GroupScope:
    """Either every group (admins) or a finite set of group ids."""

    unrestricted: bool = False
    group_ids: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def of(cls, group_ids: Iterable[int]) -> "GroupScope":
        return cls(unrestricted=False, group_ids=frozenset(int(gid) for gid in group_ids))

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.group_ids

    def allows(self, group_id: int) -> bool:
        return self.unrestricted or group_id in self.group_ids

    def clause(self, column) -> ColumnElement[bool]:
        """Bound-parameter filter for `column` (a group id column)."""
        if self.unrestricted:
            return true()
        if not self.group_ids:
            return false()
        return column.in_(sorted(self.group_ids))


ALL_GROUPS = GroupScope(unrestricted=True)


def everyone_group_name() -> str:
    if has_app_context():
        return current_app.config.get("EVERYONE_GROUP_NAME") or DEFAULT_EVERYONE_GROUP_NAME
    return load_settings().everyone_group_name or DEFAULT_EVERYONE_GROUP_NAME


def resolve_visible_groups(s: Session, user_id: int) -> frozenset[int]:
    """All group ids `user_id` is a member of. Empty when there are none."""
    try:
        rows = s.execute(select(UserGroup.group_id).where(UserGroup.user_id == user_id)).scalars().all()
    except SQLAlchemyError as e:
        logger.error("Membership lookup failed for user_id=%s: %s", user_id, e)
        raise StorageFailure() from e
    return frozenset(rows)


def visible_groups_for(s: Session, principal: Principal) -> GroupScope:
    """The one place the admin bypass is decided."""
    if principal.is_admin:
        return ALL_GROUPS
    return GroupScope.of(resolve_visible_groups(s, principal.user_id))


def _membership_names(s: Session, user_id: int) -> list[str]:
    try:
        return list(
            s.execute(
                select(Group.name)
                .join(UserGroup, UserGroup.group_id == Group.id)
                .where(UserGroup.user_id == user_id)
            ).scalars()
        )
    except SQLAlchemyError as e:
        logger.error("Membership lookup failed for user_id=%s: %s", user_id, e)
        raise StorageFailure() from e


def should_show_group_selector(s: Session, principal: Principal) -> bool:
    """
    UI hint only: hide the group picker when a non-admin's sole membership is
    the Everyone group. Never use this to restrict data.
    """
    if principal.is_admin:
        return True
    names = _membership_names(s, principal.user_id)
    return not (len(names) == 1 and names[0] == everyone_group_name())


def everyone_group_id(s: Session) -> int | None:
    try:
        return s.execute(select(Group.id).where(Group.name == everyone_group_name())).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error("Everyone group lookup failed: %s", e)
        raise StorageFailure() from e


def user_visible_in_scope(s: Session, scope: GroupScope, user_id: int) -> bool:
    """True if `user_id` belongs to at least one group of `scope`."""
    if scope.unrestricted:
        return True
    if scope.is_empty:
        return False
    try:
        hit = s.execute(
            select(UserGroup.user_id)
            .where(UserGroup.user_id == user_id)
            .where(scope.clause(UserGroup.group_id))
            .limit(1)
        ).first()
    except SQLAlchemyError as e:
        logger.error("Membership lookup failed for user_id=%s: %s", user_id, e)
        raise StorageFailure() from e
    return hit is not None
