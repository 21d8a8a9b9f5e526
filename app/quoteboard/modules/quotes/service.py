from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

from flask import current_app, has_app_context
from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from app.quoteboard.access import (
    Principal,
    everyone_group_id,
    resolve_visible_groups,
    visible_groups_for,
)
from app.quoteboard.audit import record_event
from app.quoteboard.errors import Forbidden, InvalidInput, parse_id
from app.quoteboard.models import Group, Quote, User

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_MAX_LENGTH = 4096

SORT_DATE_DESC = "date_desc"
SORT_DATE_ASC = "date_asc"
SORT_PERSON = "person"
VALID_SORTS = (SORT_DATE_DESC, SORT_DATE_ASC, SORT_PERSON)


def normalize_sort(sort: str | None) -> str:
    """Unknown sort values fall back to newest-first."""
    sort = (sort or "").strip()
    return sort if sort in VALID_SORTS else SORT_DATE_DESC


def quote_max_length() -> int:
    if has_app_context():
        return int(current_app.config.get("QUOTE_MAX_LENGTH") or DEFAULT_QUOTE_MAX_LENGTH)
    return DEFAULT_QUOTE_MAX_LENGTH


def validate_quote_text(raw: str | None) -> str:
    if raw is not None and not isinstance(raw, str):
        raise InvalidInput("Quote text must be a string.")
    text = (raw or "").strip()
    if not text:
        raise InvalidInput("Quote text is required.")
    limit = quote_max_length()
    if len(text) > limit:
        raise InvalidInput(f"Quote text must be at most {limit} characters.")
    return text


def list_quotes(s: "Session", principal: Principal, sort: str | None = None) -> list[Quote]:
    scope = visible_groups_for(s, principal)
    if scope.is_empty:
        return []

    subject = aliased(User)
    q = select(Quote).join(subject, Quote.subject_user_id == subject.id).where(scope.clause(Quote.group_id))

    sort = normalize_sort(sort)
    if sort == SORT_DATE_ASC:
        q = q.order_by(Quote.created_at.asc(), Quote.id.asc())
    elif sort == SORT_PERSON:
        q = q.order_by(subject.display_name.asc(), Quote.created_at.desc(), Quote.id.desc())
    else:
        q = q.order_by(Quote.created_at.desc(), Quote.id.desc())
    return list(s.execute(q).scalars().unique())


def random_quote(s: "Session", principal: Principal) -> Quote | None:
    """One visible quote chosen uniformly at random, or None if nothing is visible."""
    scope = visible_groups_for(s, principal)
    if scope.is_empty:
        return None

    total = s.execute(select(func.count(Quote.id)).where(scope.clause(Quote.group_id))).scalar_one()
    if not total:
        return None
    offset = random.randrange(total)
    return s.execute(
        select(Quote).where(scope.clause(Quote.group_id)).order_by(Quote.id.asc()).offset(offset).limit(1)
    ).scalars().first()


def add_quote(
    s: "Session",
    principal: Principal,
    text: str | None,
    subject_user_id: object,
    group_id: object = None,
) -> int:
    """
    Insert a quote and return its id.

    The target group must be one the submitter is a member of. This holds for
    admins as well: the admin read bypass does not extend to writes.
    """
    text = validate_quote_text(text)
    subject_id = parse_id(subject_user_id, "subjectUserId")

    if group_id is None or (isinstance(group_id, str) and not group_id.strip()):
        target_group = everyone_group_id(s)
        if target_group is None:
            raise InvalidInput("groupId is required.")
    else:
        target_group = parse_id(group_id, "groupId")

    group = s.get(Group, target_group)
    if not group:
        raise InvalidInput("Unknown group.")

    if target_group not in resolve_visible_groups(s, principal.user_id):
        logger.warning(
            "Quote submission denied: user_id=%s is not a member of group_id=%s",
            principal.user_id,
            target_group,
        )
        raise Forbidden("You are not a member of that group.")

    subject = s.get(User, subject_id)
    if not subject:
        raise InvalidInput("Unknown subject.")

    quote = Quote(
        text=text,
        subject_user_id=subject.id,
        submitter_user_id=principal.user_id,
        group_id=group.id,
    )
    s.add(quote)
    s.flush()

    record_event(
        s,
        actor=s.get(User, principal.user_id),
        action="quote.create",
        entity_type="Quote",
        entity_id=str(quote.id),
        metadata={"subject_user_id": subject.id, "group_id": group.id},
    )
    return quote.id
