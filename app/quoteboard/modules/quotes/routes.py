from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.quoteboard.db import db_session
from app.quoteboard.errors import NotFound
from app.quoteboard.modules.quotes.service import add_quote, list_quotes, random_quote
from app.quoteboard.rbac import current_principal, require_login
from app.quoteboard.utils import first_present, request_payload

bp = Blueprint("quotes", __name__)


@bp.get("/quotes")
@require_login
def quotes_list():
    s = db_session()
    quotes = list_quotes(s, current_principal(), request.args.get("sort"))
    return jsonify([q.to_dict() for q in quotes])


@bp.get("/quotes/random")
@require_login
def quotes_random():
    s = db_session()
    quote = random_quote(s, current_principal())
    if quote is None:
        raise NotFound("No quotes found")
    return jsonify(quote.to_dict())


@bp.post("/quotes")
@require_login
def quotes_create():
    s = db_session()
    payload = request_payload(request)
    quote_id = add_quote(
        s,
        current_principal(),
        first_present(payload, "quoteText", "text"),
        first_present(payload, "personId", "subjectUserId"),
        first_present(payload, "groupId"),
    )
    s.commit()
    return jsonify({"success": True, "quoteId": quote_id}), 201
