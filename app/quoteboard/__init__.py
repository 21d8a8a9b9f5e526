import logging
from datetime import timedelta

from flask import Flask, g, jsonify
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app.quoteboard.config import load_config
from app.quoteboard.db import init_db, teardown_db_session
from app.quoteboard.errors import QuoteBoardError, StorageFailure
from app.quoteboard.routes import bp as routes_bp
from app.quoteboard.auth import bp as auth_bp, load_current_user
from app.quoteboard.modules.quotes.routes import bp as quotes_bp
from app.quoteboard.modules.stats.routes import bp as stats_bp
from app.quoteboard.modules.users.routes import bp as users_bp
from app.quoteboard.modules.groups.routes import bp as groups_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=24)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(quotes_bp, url_prefix="/api")
    app.register_blueprint(stats_bp, url_prefix="/api")
    app.register_blueprint(users_bp, url_prefix="/api")
    app.register_blueprint(groups_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(QuoteBoardError)
    def _err_domain(e: QuoteBoardError):  # type: ignore[no-redef]
        if isinstance(e, StorageFailure):
            app.logger.error("Storage failure (request_id=%s)", getattr(g, "request_id", None))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _err_storage(e: SQLAlchemyError):  # type: ignore[no-redef]
        app.logger.exception("Database error (request_id=%s)", getattr(g, "request_id", None))
        failure = StorageFailure()
        return jsonify(failure.to_dict()), failure.status_code

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
