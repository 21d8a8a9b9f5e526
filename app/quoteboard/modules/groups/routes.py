from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.quoteboard.db import db_session
from app.quoteboard.errors import parse_id
from app.quoteboard.modules.groups.service import (
    add_membership,
    create_group,
    list_groups,
    list_members,
    remove_membership,
)
from app.quoteboard.rbac import current_principal, require_admin, require_login
from app.quoteboard.utils import first_present, request_payload

bp = Blueprint("groups", __name__)


@bp.get("/groups")
@require_login
def groups_list():
    s = db_session()
    return jsonify(list_groups(s, current_principal()))


# ---------- Admin ----------
@bp.post("/admin/groups")
@require_admin
def groups_create():
    s = db_session()
    payload = request_payload(request)
    group = create_group(s, g.current_user, payload.get("name"))
    s.commit()
    return jsonify({"success": True, "groupId": group.id}), 201


@bp.get("/admin/groups/<int:group_id>/members")
@require_admin
def group_members(group_id: int):
    s = db_session()
    return jsonify(list_members(s, group_id))


@bp.post("/admin/groups/<int:group_id>/members")
@require_admin
def group_member_add(group_id: int):
    s = db_session()
    payload = request_payload(request)
    user_id = parse_id(first_present(payload, "userId", "user_id"), "userId")
    added = add_membership(s, g.current_user, user_id, group_id)
    s.commit()
    return jsonify({"success": True, "added": added})


@bp.delete("/admin/groups/<int:group_id>/members/<int:user_id>")
@require_admin
def group_member_remove(group_id: int, user_id: int):
    s = db_session()
    removed = remove_membership(s, g.current_user, user_id, group_id)
    s.commit()
    return jsonify({"success": True, "removed": removed})
