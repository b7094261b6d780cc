"""
tests/test_extensions.py - Tests for Flask extensions

Tests for CSRF protection, rate limiting and the wiki extension.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

from flask_limiter import Limiter

from config import Config, TestingConfig
from extensions import limiter, wiki
from main_app import create_app
from talkops.api import MediaWikiClient


def _config(base: type, root: Path, **extra) -> type:
    return type("TestConfig", (base,), {"TALK_DATA_ROOT": root, **extra})


class TestCSRFProtection:
    """Tests for CSRF protection extension."""

    def test_csrf_initialized(self, app):
        assert "csrf" in app.extensions

    def test_csrf_enabled_in_production(self):
        """Test that CSRF is enabled in production-like configuration."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            app = create_app(_config(Config, Path(tmp_dir)))
            assert app.config["WTF_CSRF_ENABLED"] is True

    def test_talk_api_exempt_from_csrf(self):
        """Test that JSON API calls need no CSRF token even with CSRF enabled."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            app = create_app(_config(Config, Path(tmp_dir), RATELIMIT_ENABLED=False))
            client = app.test_client()
            with client.session_transaction() as sess:
                sess["username"] = "B"

            response = client.post("/api/parse", json={"wikitext": ""})

            assert response.status_code == 200

    def test_set_user_form_requires_csrf_token(self):
        """Test that form posts outside the API are still protected."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            app = create_app(_config(Config, Path(tmp_dir), RATELIMIT_ENABLED=False))
            response = app.test_client().post("/set_user", data={"username": "B"})
            assert response.status_code == 400


class TestRateLimiter:
    """Tests for rate limiting extension."""

    def test_limiter_configured(self, app):
        """Test that the shared limiter exists and is switched off for tests."""
        assert isinstance(limiter, Limiter)
        assert app.config["RATELIMIT_ENABLED"] is False

    def test_reply_rate_limited(self):
        """Test that the reply endpoint refuses requests over its limit."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            app = create_app(_config(TestingConfig, Path(tmp_dir), RATELIMIT_ENABLED=True))
            client = app.test_client()
            with client.session_transaction() as sess:
                sess["username"] = "B"

            statuses = [
                client.post("/api/reply", json={"wikitext": ""}).status_code
                for _ in range(31)
            ]

            assert statuses[-1] == 429
            assert 429 not in statuses[:30]


class TestWikiExtension:
    """Tests for the per-app MediaWiki client and conventions."""

    def test_client_configured(self, app):
        with app.app_context():
            assert isinstance(wiki.client, MediaWikiClient)
            assert wiki.client.api_url == app.config["TALK_API_URL"]
            assert wiki.client.timeout == app.config["TALK_REQUEST_TIMEOUT"]

    def test_default_conventions(self, app):
        with app.app_context():
            assert wiki.conventions.is_unsigned_template("unsigned")

    def test_conventions_file(self, tmp_path):
        """Test that a conventions file overrides the preset."""
        conventions_file = tmp_path / "conventions.json"
        conventions_file.write_text(json.dumps({"unsigned_templates": ["Nicht signiert"]}),
                                    encoding="utf-8")
        app = create_app(_config(TestingConfig, tmp_path / "data",
                                 TALK_CONVENTIONS_FILE=str(conventions_file)))
        with app.app_context():
            assert wiki.conventions.is_unsigned_template("Nicht signiert")

    def test_extensions_initialized_per_app(self):
        """Test that each app gets its own client."""
        with tempfile.TemporaryDirectory() as tmp_dir1, tempfile.TemporaryDirectory() as tmp_dir2:
            app1 = create_app(_config(TestingConfig, Path(tmp_dir1)))
            app2 = create_app(_config(TestingConfig, Path(tmp_dir2), TALK_API_URL="https://other.invalid/api.php"))

            assert app1.extensions["wiki"]["client"] is not app2.extensions["wiki"]["client"]
            assert app2.extensions["wiki"]["client"].api_url == "https://other.invalid/api.php"
