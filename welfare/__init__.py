# welfare/__init__.py
from __future__ import annotations

from flask import Flask, jsonify

from .extensions import db, migrate, login_manager
from .errors import WelfareError
from .settings import Config


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # CLI (flask sweep-overdue, ...)
    # ======================
    from .commands import register_commands

    register_commands(app)

    # ======================
    # Domain errors -> JSON
    # ======================
    @app.errorhandler(WelfareError)
    def welfare_error(e):
        return jsonify(e.to_dict()), e.code

    # ======================
    # Forbidden handler
    # ======================
    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"error": "Forbidden", "message": "Access denied."}), 403

    # ======================
    # Not found handler
    # ======================
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "NotFound", "message": "Not found."}), 404

    return app
