"""
main_app - Flask Application Package

This package contains the talk page service using the factory pattern.
The create_app() function is the entry point for creating application instances.

Usage:
    # Development
    from main_app import create_app
    app = create_app()

    # Production
    from main_app import create_app
    from config import ProductionConfig
    app = create_app(ProductionConfig)

    # Testing
    from main_app import create_app
    from config import TestingConfig
    app = create_app(TestingConfig)
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from flask import Flask, Response, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from config import Config, DevelopmentConfig
from extensions import csrf, limiter, wiki
from talkops.errors import TalkError

# HTTP status for each TalkError type
ERROR_STATUS = {
    "parse": 422,
    "api": 502,
    "network": 504,
}


def create_app(config_class: Optional[type] = None) -> Flask:
    """
    Create and configure a Flask application with extensions, blueprints, error handlers, and request hooks registered.

    Parameters:
        config_class (type, optional): Configuration class to apply to the app. If omitted, uses DevelopmentConfig when the environment variable FLASK_DEBUG is "1", otherwise uses Config.

    Returns:
        Flask: The configured Flask application instance.
    """
    # Determine config class if not provided
    if config_class is None:
        if os.environ.get("FLASK_DEBUG") == "1":
            config_class = DevelopmentConfig
        else:
            config_class = Config

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    csrf.init_app(app)
    limiter.init_app(app)
    wiki.init_app(app)

    # Ensure the snapshot root directory exists
    root: Path = app.config["TALK_DATA_ROOT"]
    root.mkdir(parents=True, exist_ok=True)

    # Register blueprints
    from main_app.main import bp as main_bp
    from main_app.talk import bp as talk_bp

    # JSON clients send no CSRF token
    csrf.exempt(talk_bp)

    app.register_blueprint(main_bp)
    app.register_blueprint(talk_bp, url_prefix="/api")

    # Register error handlers
    app.register_error_handler(RequestEntityTooLarge, _handle_large_request)
    app.register_error_handler(TalkError, _handle_talk_error)

    # Register request handlers
    app.before_request(_check_user)
    app.after_request(_add_security_headers)

    # Configure logging for production
    if not app.debug and not app.testing:
        _configure_logging(app)

    return app


def _handle_large_request(e: RequestEntityTooLarge) -> tuple[Response, int]:
    """
    Return a 413 JSON response for requests that exceed the configured maximum content length.
    """
    return jsonify({
        "error": "Request too large",
        "message": "Uploaded data exceeds the allowed size limit"
    }), 413


def _handle_talk_error(e: TalkError) -> tuple[Response, int]:
    """
    Turn an engine or wiki API failure into a JSON error response.

    parse -> 422, api -> 502 (404 for a missing page), network -> 504.
    """
    from flask import current_app

    status = ERROR_STATUS.get(e.type, 500)
    if e.type == "api" and e.code == "missingtitle":
        status = 404
    current_app.logger.info("Talk operation failed: %r %s", e, e.details or "")
    return jsonify({"error": e.to_dict()}), status


def _check_user() -> Optional[Response]:
    """
    Ensure a username is present in the session before processing a request.

    Page requests are redirected to "main.set_user" with the original path as `next`;
    API requests get a 401 JSON response. The "main.set_user", "main.health" and
    "static" endpoints are not checked.

    Returns:
        Response or None: A redirect or error `Response` when no username is present, `None` to continue normal request handling.
    """
    from flask import request, session, redirect, url_for

    # Skip check for user setup, health checks and static files
    if request.endpoint in ["main.set_user", "main.health", "static"]:
        return None

    if not session.get("username"):
        if request.blueprint == "talk":
            return jsonify({"error": {"type": "auth", "message": "Username is required"}}), 401
        # Preserve the original destination
        next_path = request.path
        if request.query_string:
            next_path = f"{request.path}?{request.query_string.decode('utf-8')}"
        return redirect(url_for("main.set_user", next=next_path))
    return None


def _add_security_headers(response: Response) -> Response:
    """
    Attach common security-related HTTP headers to the given response.

    Adds the following headers to mitigate common web vulnerabilities:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: SAMEORIGIN
    - X-XSS-Protection: 1; mode=block

    If the application's SESSION_COOKIE_SECURE config is enabled, also adds
    Strict-Transport-Security set to "max-age=31536000; includeSubDomains".
    """
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["X-XSS-Protection"] = "1; mode=block"

    # Only add HSTS in production with HTTPS
    from flask import current_app
    if current_app.config.get("SESSION_COOKIE_SECURE"):
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


def _configure_logging(app: Flask) -> None:
    """
    Set up rotating file logging for production.

    Creates a "logs" directory if it does not exist, attaches a RotatingFileHandler writing to "logs/talkpages.log" (max 10240 bytes per file, 10 backup files), sets the handler and application logger level to INFO, and logs a startup message.
    """
    if not os.path.exists("logs"):
        os.mkdir("logs")

    file_handler = RotatingFileHandler(
        "logs/talkpages.log",
        maxBytes=10240,  # 10KB per file
        backupCount=10
    )
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"
    ))
    file_handler.setLevel(logging.INFO)

    app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)

    # Engine warnings (skipped comments, failed diff requests) go to the same file
    logging.getLogger("talkops").addHandler(file_handler)

    app.logger.info("TalkPages startup")
