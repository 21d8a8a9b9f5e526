from __future__ import annotations

import uuid

from flask import Blueprint, current_app, g, jsonify, request, session

from app.quoteboard.access import should_show_group_selector
from app.quoteboard.audit import record_event
from app.quoteboard.db import db_session
from app.quoteboard.errors import Unauthorized, parse_text
from app.quoteboard.models import User
from app.quoteboard.modules.users.service import authenticate
from app.quoteboard.rbac import current_principal, require_login
from app.quoteboard.utils import request_payload

bp = Blueprint("auth", __name__)


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "displayName": user.display_name,
        "isAdmin": bool(user.is_admin),
    }


@bp.post("/login")
def login_post():
    payload = request_payload(request)
    username = parse_text(payload.get("username"), "Username")
    password = payload.get("password")

    s = db_session()
    user = authenticate(s, username, password)
    if not user:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=username.lower(),
            reason="Invalid credentials",
        )
        s.commit()
        current_app.logger.info("Login failed (username=%s request_id=%s)", username, g.request_id)
        raise Unauthorized("Invalid credentials")

    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return jsonify({"success": True, "user": _user_payload(user)})


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return jsonify({"success": True})


@bp.get("/me")
@require_login
def me():
    s = db_session()
    principal = current_principal()
    body = _user_payload(g.current_user)
    body["showGroupSelector"] = should_show_group_selector(s, principal)
    # Memberships, not the admin's full scope: this drives the submit form.
    body["groups"] = [{"id": grp.id, "name": grp.name} for grp in g.current_user.groups]
    return jsonify(body)
