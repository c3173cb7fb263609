# backend/rahmah/__init__.py
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.tenants import tenants_bp, public_tenants_bp
    from .routes.applicants import applicants_bp  # Intake + case workflow
    from .routes.applicant_portal import applicant_portal_bp  # Magic-link portal
    from .routes.documents import documents_bp
    from .routes.notes import notes_bp
    from .routes.assignments import assignments_bp
    from .routes.grants import grants_bp
    from .routes.payments import payments_bp
    from .routes.messages import messages_bp, applicant_messages_bp
    from .routes.admin import admin_bp  # Admin: users and historical import
    from .routes.shared_profiles import shared_profiles_bp  # Read-only sharing across tenants

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(tenants_bp)
    app.register_blueprint(public_tenants_bp)
    app.register_blueprint(applicants_bp)
    app.register_blueprint(applicant_portal_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(notes_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(grants_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(messages_bp)
    app.register_blueprint(applicant_messages_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(shared_profiles_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            app.config.get("APP_BASE_URL", "").rstrip("/"),
        }
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Applicant-Token"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Queued emails go out after the response is sent
    from .services.notification_service import schedule_dispatch
    app.after_request(schedule_dispatch)

    from .validation import format_money
    app.add_template_filter(format_money, "money")

    @app.errorhandler(413)
    def request_too_large(_e):
        return jsonify({"error": "Upload too large"}), 413

    @app.errorhandler(Exception)
    def unhandled_error(e):
        # Domain errors are mapped in the routes; the rest become a JSON 500
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        from .errors import internal_error_response
        return internal_error_response(e, f"Unhandled error on {request.method} {request.path}")

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
