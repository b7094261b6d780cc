"""
extensions.py - Flask Extensions Module

This module initializes Flask extensions without binding them to a specific
application instance. This allows the extensions to be imported anywhere in
the application without creating circular import issues.

The extensions are bound to the Flask app in the application factory function
(create_app) using the init_app pattern.

Besides CSRF protection and rate limiting, `wiki` holds what the talk page API
needs per application: the MediaWiki client and the wiki's conventions.

Example:
    from extensions import csrf, limiter, wiki

    def create_app(config_class=Config):
        app = Flask(__name__)
        app.config.from_object(config_class)

        # Initialize extensions with the app
        csrf.init_app(app)
        limiter.init_app(app)
        wiki.init_app(app)

        return app
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from flask import Flask, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect

from talkops.api import MediaWikiClient
from talkops.conventions import Conventions, load_conventions

# Initialize extensions without app (deferred initialization)
# These will be bound to the app in create_app()
csrf = CSRFProtect()

# Rate limiter with default limits
# Limits can be customized per-route using @limiter.limit()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://",  # Use Redis in production: "redis://localhost:6379"
    strategy="fixed-window",  # or "moving-window" for more accurate limiting
)


class WikiExtension:
    """Per-app MediaWiki client and talk page conventions."""

    def __init__(self, app: Optional[Flask] = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        conventions_file = app.config.get("TALK_CONVENTIONS_FILE")
        conventions = load_conventions(
            app.config.get("TALK_CONVENTIONS", "mw"),
            Path(conventions_file) if conventions_file else None,
        )
        client = MediaWikiClient(
            api_url=app.config["TALK_API_URL"],
            timeout=app.config.get("TALK_REQUEST_TIMEOUT", 10),
        )
        app.extensions["wiki"] = {"client": client, "conventions": conventions}

    @property
    def client(self) -> MediaWikiClient:
        return current_app.extensions["wiki"]["client"]

    @property
    def conventions(self) -> Conventions:
        return current_app.extensions["wiki"]["conventions"]


wiki = WikiExtension()
