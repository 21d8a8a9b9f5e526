from __future__ import annotations

from flask import Blueprint, jsonify

from app.quoteboard.db import db_session
from app.quoteboard.modules.stats.service import leaderboard, user_stats
from app.quoteboard.rbac import current_principal, require_login

bp = Blueprint("stats", __name__)


@bp.get("/leaderboard")
@require_login
def leaderboard_get():
    s = db_session()
    return jsonify(leaderboard(s, current_principal()))


@bp.get("/users/<int:user_id>/stats")
@require_login
def user_stats_get(user_id: int):
    s = db_session()
    return jsonify(user_stats(s, current_principal(), user_id))
