"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, so tests can build isolated
         app instances and `alembic` can import the models without a server.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Set the app logger level from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register the project and project line blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a JSON provider that writes Decimal as string and dates as ISO
"""

from __future__ import annotations

import logging
import traceback
from datetime import date, datetime
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from planboard.config import ActiveConfig, config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Quantities and amounts leave the API as strings so no client ever rounds
# them through a float. Flask's default would also render dates as HTTP dates.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Serialises Decimal as str and date/datetime as ISO-8601.

    Example: Decimal("333.33") → "333.33", date(2024, 3, 4) → "2024-03-04"
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, (date, datetime)):
            return o.isoformat()
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     None picks the class selected by FLASK_ENV.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, ActiveConfig) if config_name else ActiveConfig
    app.config.from_object(config_class)

    if config_class is config_by_name["production"]:
        validate_production_config(app)  # raises ValueError if misconfigured

    # ── Logging ────────────────────────────────────────────────────────────
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if isinstance(level, int):
        app.logger.setLevel(level)
        logging.getLogger("planboard").setLevel(level)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from planboard.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Populates SQLAlchemy's MetaData for create_all() and Alembic.
    with app.app_context():
        from planboard.app.models import (  # noqa: F401
            article,
            booking,
            client,
            client_contact,
            consultant,
            project,
            project_line,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    projects_bp owns /projects and /projects/<id>. project_lines_bp owns
    /projects/<id>/lines, /project-lines/<id>... and /line-groups/<gid>/health,
    so it sits directly on /api/v1.
    """
    from planboard.app.routes.project_lines import project_lines_bp
    from planboard.app.routes.projects import projects_bp

    app.register_blueprint(projects_bp, url_prefix="/api/v1/projects")
    app.register_blueprint(project_lines_bp, url_prefix="/api/v1")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the error's status
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_FIELD (or the code the schema raised) with 400
      Exception       → generic INTERNAL_ERROR (500); traceback logged only

    Stack traces never leave the server.
    """
    from planboard.app.errors import AppError, ConsistencyError, ErrorCode

    _HTTP_ERROR_CODES = {
        404: ErrorCode.ROUTE_NOT_FOUND,
        405: ErrorCode.METHOD_NOT_ALLOWED,
    }

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError; it propagates here."""
        if isinstance(error, ConsistencyError):
            app.logger.warning("Consistency error %s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST field error only. A message that is itself an
        ErrorCode constant becomes the response code.
        """
        known_codes = set(vars(ErrorCode).values())
        messages = error.messages  # e.g. {"amount": ["INVALID_AMOUNT_PRECISION"]}

        field = None
        raw_message = "Invalid input."

        if isinstance(messages, dict) and messages:
            field_name, field_errors = next(iter(messages.items()))
            field = field_name if field_name != "_schema" else None
            raw_message = _first_message(field_errors)
        elif isinstance(messages, list) and messages:
            raw_message = str(messages[0])

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        response_body = {"error": {"code": code, "message": message}}
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        # Unknown routes, wrong methods and unparseable JSON bodies.
        if isinstance(error, HTTPException):
            return jsonify({
                "error": {
                    "code": _HTTP_ERROR_CODES.get(error.code, ErrorCode.INVALID_FIELD),
                    "message": error.description,
                }
            }), error.code

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _first_message(field_errors) -> str:
    """Digs the first message out of marshmallow's nested error structure."""
    # List fields report per-index errors: {"days": {0: ["Not a valid date."]}}
    while isinstance(field_errors, dict) and field_errors:
        field_errors = next(iter(field_errors.values()))
    if isinstance(field_errors, list):
        return str(field_errors[0]) if field_errors else "Invalid value."
    return str(field_errors)


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers when DEBUG or TESTING is on, so a planning board served
    from another local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if app.config.get("DEBUG") or app.config.get("TESTING"):
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response


def _code_to_message(code: str) -> str:
    """
    Human-readable default message for a code raised as a ValidationError
    message inside a schema.
    """
    _messages = {
        "INVALID_AMOUNT_PRECISION":   "Amount must have at most 2 decimal places.",
        "INVALID_QUANTITY_PRECISION": "Quantity must have at most 2 decimal places.",
        "INVALID_DATE_RANGE":         "planned_start must not be after planned_end.",
        "EMPTY_DAY_SELECTION":        "Select at least one day to allocate.",
    }
    return _messages.get(code, "Invalid input.")
