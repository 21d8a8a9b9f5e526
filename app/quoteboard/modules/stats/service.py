from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from app.quoteboard.access import Principal, user_visible_in_scope, visible_groups_for
from app.quoteboard.errors import NotFound
from app.quoteboard.models import Quote, User

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def leaderboard(s: "Session", principal: Principal) -> list[dict]:
    """
    Quote counts per subject within the principal's scope.

    Users with no visible quotes are left out. Ordered by count descending,
    then display name ascending (id as a last resort so output is stable).
    """
    scope = visible_groups_for(s, principal)
    if scope.is_empty:
        return []

    quote_count = func.count(Quote.id).label("quote_count")
    rows = s.execute(
        select(User.id, User.display_name, quote_count)
        .join(Quote, Quote.subject_user_id == User.id)
        .where(scope.clause(Quote.group_id))
        .group_by(User.id, User.display_name)
        .order_by(quote_count.desc(), User.display_name.asc(), User.id.asc())
    ).all()
    return [
        {"id": user_id, "displayName": display_name, "quoteCount": int(count)}
        for user_id, display_name, count in rows
    ]


def user_stats(s: "Session", principal: Principal, target_user_id: int) -> dict:
    """
    Quotes said by and added by `target_user_id`, counted within the
    principal's scope.

    Non-admins only see users who share one of their groups; anyone else is
    reported as NotFound so existence is not leaked.
    """
    user = s.get(User, target_user_id)
    if not user:
        raise NotFound("User not found")

    scope = visible_groups_for(s, principal)
    if not user_visible_in_scope(s, scope, user.id):
        raise NotFound("User not found")

    total_quotes = s.execute(
        select(func.count(Quote.id))
        .where(Quote.subject_user_id == user.id)
        .where(scope.clause(Quote.group_id))
    ).scalar_one()
    quotes_added = s.execute(
        select(func.count(Quote.id))
        .where(Quote.submitter_user_id == user.id)
        .where(scope.clause(Quote.group_id))
    ).scalar_one()

    return {
        "id": user.id,
        "username": user.username,
        "displayName": user.display_name,
        "totalQuotes": int(total_quotes),
        "quotesAdded": int(quotes_added),
    }
