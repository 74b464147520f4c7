from __future__ import annotations

import logging
import os
from flask import Flask, jsonify

from .extensions import db, migrate
from .draw import InsufficientParticipants, InvalidRoster, InternalInvariantViolation
from .services.groups import GroupNotFound, ValidationError, RegistrationClosed, DuplicateParticipant, RosterChanged
from .services.notifications import NoAssignments, NotificationError
from .views.groups import groups_bp
from .views.draws import draws_bp


logger = logging.getLogger(__name__)


def _configure(app: Flask, config: dict | None) -> None:
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///giftdraw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Fernet key for receivers at rest; derived from SECRET_KEY when empty
    app.config["ASSIGNMENT_ENC_KEY"] = os.environ.get("ASSIGNMENT_ENC_KEY", "").strip()

    app.config["DRAW_MAX_ATTEMPTS"] = int(os.environ.get("DRAW_MAX_ATTEMPTS", "100"))
    app.config["DRAW_STRATEGY"] = os.environ.get("DRAW_STRATEGY", "incremental")
    app.config["NOTIFIER_BACKEND"] = os.environ.get("NOTIFIER_BACKEND", "logging")
    app.config["RESULT_BASE_URL"] = os.environ.get("RESULT_BASE_URL", "http://localhost:5000")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")

    if config:
        app.config.update(config)


def _register_error_handlers(app: Flask) -> None:
    def error_response(status: int):
        def handler(e):
            return jsonify(error=str(e)), status
        return handler

    app.register_error_handler(GroupNotFound, error_response(404))
    app.register_error_handler(ValidationError, error_response(400))
    for exc in (
        InsufficientParticipants, InvalidRoster, RegistrationClosed, DuplicateParticipant, RosterChanged, NoAssignments,
    ):
        app.register_error_handler(exc, error_response(409))
    app.register_error_handler(NotificationError, error_response(500))

    @app.errorhandler(InternalInvariantViolation)
    def invariant_violation(e):
        # Already logged by the generator; this is a bug, not bad input.
        logger.critical("Draw aborted: %s", e)
        return jsonify(error="Internal error while drawing names."), 500


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__)
    _configure(app, config)

    logging.getLogger(__name__).setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)

    # Blueprints
    app.register_blueprint(groups_bp)
    app.register_blueprint(draws_bp)

    _register_error_handlers(app)

    @app.cli.command("init-db")
    def init_db():
        """Create tables for a fresh database (no migrations needed)."""
        db.create_all()
        logger.info("Created tables on %s", app.config["SQLALCHEMY_DATABASE_URI"])

    return app
