"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - `alembic upgrade` to import the models without starting a server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) and the AdminPolicy
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Serialise Decimal as string (gross amounts never travel as JS numbers)
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from royalty_ledger.config import config_by_name, validate_production_config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("1200.50") → "1200.50" (not 1200.5)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from royalty_ledger.app.extensions import db, ma
    from royalty_ledger.app.middleware.admin_policy import AdminPolicy
    db.init_app(app)
    ma.init_app(app)
    app.extensions["admin_policy"] = AdminPolicy.from_config(app.config)

    # ── Model registration ─────────────────────────────────────────────────
    # Populates SQLAlchemy's MetaData for create_all() and Alembic.
    with app.app_context():
        from royalty_ledger.app.models import (  # noqa: F401
            agreement,
            event,
            license_request,
            payout_instruction,
            receipt,
            refresh_token,
            user,
            work,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    One stream handler on the package logger; services log through
    logging.getLogger(__name__) and propagate to it.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    package_logger = logging.getLogger("royalty_ledger")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)

    app.logger.setLevel(level)


def _register_blueprints(app: Flask) -> None:
    from royalty_ledger.app.routes.auth import auth_bp
    from royalty_ledger.app.routes.notifications import notifications_bp
    from royalty_ledger.app.routes.payouts import admin_payouts_bp, payouts_bp
    from royalty_ledger.app.routes.receipts import receipts_bp
    from royalty_ledger.app.routes.works import works_bp

    app.register_blueprint(auth_bp,          url_prefix="/api/v1/auth")
    # works_bp owns both /works and /licenses/requests.
    app.register_blueprint(works_bp,         url_prefix="/api/v1")
    app.register_blueprint(receipts_bp,      url_prefix="/api/v1/receipts")
    app.register_blueprint(payouts_bp,       url_prefix="/api/v1/payouts")
    app.register_blueprint(admin_payouts_bp, url_prefix="/api/v1/admin")
    app.register_blueprint(notifications_bp, url_prefix="/api/v1/notifications")


def _first_validation_error(messages, path: tuple[str, ...] = ()) -> tuple[str | None, str]:
    """
    Walks marshmallow's (possibly nested) messages and returns the first
    (dotted field path, message) pair.

    e.g. {"split": {"creator": ["INVALID_SPLIT"]}} → ("split.creator", "INVALID_SPLIT")
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            child_path = path if key == "_schema" else path + (str(key),)
            return _first_validation_error(value, child_path)
        return (".".join(path) or None, "Invalid input.")
    if isinstance(messages, list):
        if not messages:
            return (".".join(path) or None, "Invalid value.")
        first = messages[0]
        if isinstance(first, (dict, list)):
            return _first_validation_error(first, path)
        return (".".join(path) or None, str(first))
    return (".".join(path) or None, str(messages))


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

      AppError        → structured JSON error envelope with its HTTP status
      ValidationError → first schema error as MISSING_FIELD / INVALID_FIELD
                        or the ErrorCode the schema raised (400)
      HTTPException   → Werkzeug 404/405 etc. in the same envelope
      Exception       → INTERNAL_ERROR (500); traceback to the app logger only
    """
    from royalty_ledger.app.errors import AppError, ErrorCode

    known_codes = {
        value for name, value in vars(ErrorCode).items()
        if not name.startswith("_")
    }

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        field, raw_message = _first_validation_error(error.messages)

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"error": {"code": code, "message": message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = "NOT_FOUND" if error.code == 404 else "HTTP_ERROR"
        return jsonify({
            "error": {"code": code, "message": error.description},
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """Stack traces never leave the server."""
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


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development when DEBUG or
    TESTING is true.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Expose-Headers"] = "Content-Disposition"

        return response


def _code_to_message(code: str) -> str:
    """Default message when a ValidationError message IS an error code."""
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
        "INVALID_CURRENCY": "currency must be a 3-letter ISO 4217 code.",
        "INVALID_ICC_CODE": "ICC code must match CC-RRRRR-NNNNNN.",
        "INVALID_PERIOD": "month must be in YYYY-MM format.",
        "INVALID_SPLIT": "Each share must be between 0 and 1 and the creator share must be greater than 0.",
    }
    return _messages.get(code, "Invalid input.")
