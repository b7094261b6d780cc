"""
talk/routes.py - Talk Page API Routes

Every endpoint takes a JSON body carrying either the page code (`wikitext`, with
an optional `title` and `revision_id`) or a page title (`page`) whose current
code is fetched from the wiki. Comments are named by the anchors returned from
/parse; sections by their section anchors.

Mutating endpoints return the new wikitext. With `"save": true` the new code is
also saved to the wiki, based on the revision it was computed from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from flask import Response, current_app, jsonify, request, session
from werkzeug.exceptions import BadRequest, HTTPException

from main_app.talk import bp
from extensions import limiter, wiki
from talkops.api import SaveStatus, validate_page_title
from talkops.attribution import diff_link, find_comment_adding_edit
from talkops.errors import TalkError
from talkops.identity import find_section_by_headline_parts
from talkops.locator import locate_comment, locate_section
from talkops.models import CommentData, MutationResult, PageModel
from talkops.mutator import (
    add_section,
    delete_comment,
    edit_comment,
    edit_comment_text,
    reply_to_comment,
    reply_to_section,
)
from talkops.parser import parse_page
from talkops.snapshots import detect_changes, load_snapshot, save_snapshot

# Type alias for route return values
RouteResponse = Response | Tuple[Response, int]

DEFAULT_SUMMARIES = {
    "reply": "Reply",
    "replyInSection": "Reply",
    "addSection": "New section",
    "edit": "Editing comment",
    "delete": "Deleting comment",
}


@dataclass
class PageInput:
    """Page code a request operates on, and where it came from."""
    code: str
    title: Optional[str] = None
    revision_id: Optional[int] = None


@bp.errorhandler(BadRequest)
def _handle_bad_request(e: HTTPException) -> Tuple[Response, int]:
    return jsonify({"error": {"type": "input", "message": e.description}}), 400


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("A JSON object body is required")
    return data


def _optional_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"'{key}' must be an integer")


def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"'{key}' is required")
    return value


def _validated_title(title: Any) -> str:
    max_length = current_app.config.get("MAX_TITLE_LENGTH", 255)
    is_valid, error_msg = validate_page_title(title if isinstance(title, str) else "", max_length)
    if not is_valid:
        raise BadRequest(error_msg)
    return title.strip()


def _load_page(data: Dict[str, Any]) -> PageInput:
    """
    The page code from the request body: given as `wikitext`, or fetched by title.

    Raises:
        BadRequest: Neither `wikitext` nor a valid `page` title is given.
        TalkError: The wiki could not be queried.
    """
    revision_id = _optional_int(data, "revision_id")
    if isinstance(data.get("wikitext"), str):
        title = data.get("title")
        return PageInput(
            code=data["wikitext"],
            title=_validated_title(title) if title else None,
            revision_id=revision_id,
        )

    if "page" not in data:
        raise BadRequest("Either 'wikitext' or 'page' is required")
    title = _validated_title(data["page"])
    source = wiki.client.get_page_source(title, revision_id)
    return PageInput(code=source.code, title=source.title, revision_id=source.revision_id)


def _parse(page_input: PageInput, is_active: bool = False) -> PageModel:
    return parse_page(
        page_input.code,
        wiki.conventions,
        title=page_input.title,
        current_user=session.get("username"),
        revision_id=page_input.revision_id,
        is_active=is_active,
    )


def _comment_data(data: Dict[str, Any], page_input: PageInput) -> CommentData:
    """
    What is known about the target comment.

    Either sent whole as `comment` (from an earlier /locate or /parse), or named by
    `anchor` in the page state the client saw: `base_wikitext`, `base_revision_id`,
    or the current code when neither is given.
    """
    if isinstance(data.get("comment"), dict):
        return CommentData.from_dict(data["comment"])

    anchor = _required_str(data, "anchor")
    base = page_input
    if isinstance(data.get("base_wikitext"), str):
        base = PageInput(code=data["base_wikitext"], title=page_input.title)
    elif data.get("base_revision_id") and page_input.title:
        base_revision_id = _optional_int(data, "base_revision_id")
        if base_revision_id != page_input.revision_id:
            base = PageInput(
                code=wiki.client.get_page_wikitext(page_input.title, base_revision_id),
                title=page_input.title,
                revision_id=base_revision_id,
            )

    page = _parse(base)
    comment = page.get_comment(anchor)
    if comment is None:
        raise TalkError("parse", "locateComment", "No comment with this anchor", anchor=anchor)
    return page.comment_data(comment)


def _finish(data: Dict[str, Any], page_input: PageInput, result: MutationResult) -> RouteResponse:
    """Return the mutation result, saving the new code first when asked to."""
    body = result.to_dict()
    if not data.get("save"):
        return jsonify(body)

    if not page_input.title:
        raise BadRequest("A page title is required to save")
    summary = data.get("summary") or DEFAULT_SUMMARIES.get(result.action, "")
    status = wiki.client.save_page(
        page_input.title,
        result.new_code,
        summary,
        base_revision_id=page_input.revision_id,
    )
    body["saved"] = status.value
    current_app.logger.info("Saved %s on %s: %s", result.action, page_input.title, status.value)
    if status is SaveStatus.EDIT_CONFLICT:
        return jsonify(body), 409
    if status is SaveStatus.ERROR:
        return jsonify(body), 502
    return jsonify(body)


@bp.route("/parse", methods=["POST"])
def parse() -> RouteResponse:
    """
    Parse a page into comments and sections.

    With `"track": true` the page is active: comments are compared with the stored
    snapshot (new, changed, deleted) and the snapshot is updated, marking the
    anchors listed in `seen` as seen.
    """
    data = _json_body()
    page_input = _load_page(data)
    track = bool(data.get("track"))
    if track and not page_input.title:
        raise BadRequest("A page title is required to track changes")

    page = _parse(page_input, is_active=track)
    report = None
    if track:
        root = current_app.config["TALK_DATA_ROOT"]
        report = detect_changes(page, load_snapshot(root, page.title))
        try:
            save_snapshot(root, page, seen=data.get("seen") or ())
        except ValueError as e:
            raise BadRequest(str(e))

    body = page.to_dict()
    if report is not None:
        body["changes"] = report.to_dict()
    return jsonify(body)


@bp.route("/locate", methods=["POST"])
def locate() -> RouteResponse:
    """
    Locate a comment in the page code.

    `best_effort` returns the best candidate even below the confidence threshold,
    flagged is_low_confidence.
    """
    data = _json_body()
    page_input = _load_page(data)
    comment_data = _comment_data(data, page_input)
    location = locate_comment(
        page_input.code,
        comment_data,
        wiki.conventions,
        best_effort=bool(data.get("best_effort")),
    )
    return jsonify({
        "comment": comment_data.to_dict(),
        "location": location.to_dict(),
        "revision_id": page_input.revision_id,
    })


@bp.route("/reply", methods=["POST"])
@limiter.limit("30 per minute")
def reply() -> RouteResponse:
    """
    Reply to a comment (`anchor` or `comment`) or, with `section`, add a top-level
    comment at the end of that section.
    """
    data = _json_body()
    text = _required_str(data, "text")
    page_input = _load_page(data)
    conventions = wiki.conventions

    if data.get("section"):
        page = _parse(page_input)
        section = page.get_section_by_anchor(data["section"])
        if section is None:
            section = find_section_by_headline_parts(page.sections, str(data["section"]).replace("_", " "))
        if section is None:
            raise TalkError("parse", "locateSection", "No section with this anchor", anchor=data["section"])
        location = locate_section(page_input.code, page.section_data(section), conventions)
        result = reply_to_section(page_input.code, location, text, conventions)
        return _finish(data, page_input, result)

    comment_data = _comment_data(data, page_input)
    location = locate_comment(page_input.code, comment_data, conventions)
    result = reply_to_comment(
        page_input.code,
        location,
        text,
        conventions,
        is_in_single_comment_table=comment_data.is_in_single_comment_table,
    )
    return _finish(data, page_input, result)


@bp.route("/add-section", methods=["POST"])
@limiter.limit("30 per minute")
def new_section() -> RouteResponse:
    """Append a section with a headline and a first comment."""
    data = _json_body()
    headline = _required_str(data, "headline")
    text = _required_str(data, "text")
    page_input = _load_page(data)
    level = _optional_int(data, "level") or 2
    if not 1 <= level <= 6:
        raise BadRequest("'level' must be between 1 and 6")
    result = add_section(page_input.code, headline, text, wiki.conventions, level=level)
    return _finish(data, page_input, result)


@bp.route("/edit", methods=["POST"])
@limiter.limit("30 per minute")
def edit() -> RouteResponse:
    """
    Replace a comment's body, given as editable `text` or as raw `code`. For a
    comment opening a section, `headline` also rewrites the heading.
    """
    data = _json_body()
    if not isinstance(data.get("text"), str) and not isinstance(data.get("code"), str):
        raise BadRequest("Either 'text' or 'code' is required")
    page_input = _load_page(data)
    conventions = wiki.conventions
    comment_data = _comment_data(data, page_input)
    location = locate_comment(page_input.code, comment_data, conventions)

    headline = data.get("headline") if comment_data.is_opening_section else None
    if isinstance(data.get("code"), str):
        result = edit_comment(page_input.code, location, data["code"], conventions, headline=headline)
    else:
        result = edit_comment_text(page_input.code, location, data["text"], conventions, headline=headline)
    return _finish(data, page_input, result)


@bp.route("/delete", methods=["POST"])
@limiter.limit("30 per minute")
def delete() -> RouteResponse:
    """Delete a comment without replies, or the section it opens when it is alone there."""
    data = _json_body()
    page_input = _load_page(data)
    conventions = wiki.conventions
    comment_data = _comment_data(data, page_input)
    location = locate_comment(page_input.code, comment_data, conventions)
    result = delete_comment(
        page_input.code,
        location,
        conventions,
        is_opening_section=comment_data.is_opening_section,
    )
    return _finish(data, page_input, result)


@bp.route("/adding-edit", methods=["POST"])
@limiter.limit("10 per minute")  # Each call fans out to several wiki API requests
def adding_edit() -> RouteResponse:
    """Find the revision that added a comment, with a link to its diff."""
    data = _json_body()
    anchor = _required_str(data, "anchor")
    page_input = _load_page(data)
    if not page_input.title:
        raise BadRequest("A page title is required")

    page = _parse(page_input)
    comment = page.get_comment(anchor)
    if comment is None:
        raise TalkError("parse", "locateComment", "No comment with this anchor", anchor=anchor)

    match = find_comment_adding_edit(comment, page_input.title, wiki.client, wiki.client)
    body = match.to_dict()
    body["link"] = diff_link(current_app.config["TALK_SERVER"], page_input.title, match.revision.revid)
    return jsonify(body)
