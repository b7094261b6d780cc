"""
main/routes.py - Main Blueprint Routes

Routes for user identification and the page overview.
"""

from __future__ import annotations

from typing import Tuple

from flask import (
    Response,
    current_app,
    jsonify,
    redirect,
    request,
    session,
    url_for,
)
from werkzeug.wrappers import Response as WerkzeugResponse

from main_app.main import bp
from talkops import __version__
from talkops.snapshots import list_snapshots
from talkops.utils import normalize_user_name

# Type alias for route return values
RouteResponse = Response | WerkzeugResponse | Tuple[Response, int]

# MediaWiki doesn't allow these characters in user names
INVALID_USERNAME_CHARS = ["#", "<", ">", "[", "]", "|", "{", "}", "/", "@", ":"]

MAX_USERNAME_LENGTH = 85


def _is_safe_redirect_url(url: str) -> bool:
    """
    Determine whether a redirect URL is a relative path and therefore safe to use.

    Parameters:
        url (str): The URL to validate.

    Returns:
        bool: `True` if the URL is relative (has no scheme and no network location), `False` otherwise.
    """
    from urllib.parse import urlparse

    parsed = urlparse(url)
    # Safe if both scheme and netloc are empty (relative URL)
    if not parsed.scheme and not parsed.netloc:
        return True
    return False


def _validate_username(username: str) -> bool:
    """
    Check whether a name can be a wiki user name.

    Rejects empty names, names longer than 85 characters and names containing
    characters MediaWiki does not allow in user names.
    """
    if not username:
        return False
    if len(username) > MAX_USERNAME_LENGTH:
        return False
    return not any(char in username for char in INVALID_USERNAME_CHARS)


@bp.route("/set_user", methods=["GET", "POST"])
def set_user() -> RouteResponse:
    """
    Store the wiki user name in the session.

    GET: describes what to send. POST: accepts a JSON body or a form with a
    `username` field, validates it, marks the session permanent and stores the
    normalized name. Form posts are redirected to a safe `next` URL; JSON posts
    get the stored name back.
    """
    if request.method == "GET":
        return jsonify({
            "message": "POST a username to identify yourself",
            "username": session.get("username"),
            "next": request.args.get("next"),
        })

    data = request.get_json(silent=True) if request.is_json else request.form
    username = normalize_user_name((data or {}).get("username", "") or "")

    if not _validate_username(username):
        return jsonify({"error": {"type": "input", "message": "Invalid username."}}), 400

    # Set session as permanent
    session.permanent = True
    session["username"] = username

    if request.is_json:
        return jsonify({"username": username})

    # Validate redirect target
    next_url = request.args.get("next")
    if not next_url or not _is_safe_redirect_url(next_url):
        next_url = url_for("main.index")
    return redirect(next_url)


@bp.route("/logout")
def logout() -> RouteResponse:
    """
    Clear the current username from the session and redirect to the username setup page.
    """
    session.pop("username", None)
    return redirect(url_for("main.set_user"))


@bp.route("/health")
def health() -> Response:
    """
    Health check endpoint returning service status and metadata.

    Returns:
        JSON object with keys:
            - "status": service health string (e.g., "healthy").
            - "service": service name.
            - "version": service version.
    """
    return jsonify({
        "status": "healthy",
        "service": "talkpages",
        "version": __version__,
    })


@bp.route("/")
def index() -> Response:
    """
    Overview for the current user: the pages with a stored comment snapshot,
    most recently updated first.
    """
    pages = list_snapshots(current_app.config["TALK_DATA_ROOT"])
    return jsonify({
        "username": session.get("username"),
        "pages": pages,
    })
