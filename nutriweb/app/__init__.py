"""Application factory for the nutriweb frontend."""
from __future__ import annotations

import logging

from flask import Flask
from flask_cors import CORS

from nutriweb.app.errors import register_error_handlers
from nutriweb.app.middleware import register_session_middleware
from nutriweb.app.state.doctor_notes_store import drafts
from nutriweb.config import get_config
from nutriweb.extensions import db


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)
    config_cls = get_config(config_name or app.config.get("ENV"))
    app.config.from_object(config_cls)

    logging.basicConfig(level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    register_extensions(app)
    register_blueprints(app)
    register_session_middleware(app)
    register_error_handlers(app)

    with app.app_context():
        db.create_all()

    CORS(app, supports_credentials=True)
    return app


def register_extensions(app: Flask) -> None:
    """Initialize Flask extensions."""

    db.init_app(app)
    drafts.init_app(app)


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""

    from nutriweb.app.views.admin import admin_bp
    from nutriweb.app.views.auth import auth_bp
    from nutriweb.app.views.booking import booking_bp
    from nutriweb.app.views.pages import pages_bp

    app.register_blueprint(pages_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp, url_prefix="/book")
    app.register_blueprint(admin_bp, url_prefix="/admin")
