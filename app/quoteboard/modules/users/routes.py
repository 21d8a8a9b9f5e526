from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.quoteboard.db import db_session
from app.quoteboard.modules.users.service import create_user, list_users, user_to_dict
from app.quoteboard.rbac import current_principal, require_admin, require_login
from app.quoteboard.utils import first_present, request_payload

bp = Blueprint("users", __name__)


@bp.get("/users")
@require_login
def users_list():
    s = db_session()
    return jsonify([user_to_dict(u) for u in list_users(s, current_principal())])


@bp.post("/users")
@require_admin
def users_create():
    s = db_session()
    payload = request_payload(request)
    user = create_user(
        s,
        {
            "username": payload.get("username"),
            "password": payload.get("password"),
            "display_name": first_present(payload, "displayName", "display_name"),
            "is_admin": first_present(payload, "isAdmin", "is_admin") in (True, "1", "true", "on"),
        },
        g.current_user,
    )
    s.commit()
    return jsonify({"success": True, "userId": user.id}), 201
