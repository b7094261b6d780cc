"""
talkops - Talk Page Operations Package

This package identifies comments on wiki talk pages and keeps them in sync with the
page's wikitext:

Modules:
    conventions: Per-wiki option bag (templates, timestamp format, user namespaces)
    masking: Hiding comments, tags, templates and tables before scanning
    signatures: Signature extraction (user link + timestamp, "unsigned" templates)
    headings: Section heading extraction
    parser: Assembly of comments and sections into a PageModel
    identity: Comment and section anchors
    locator: Re-identification of a comment in another revision of the page
    mutator: Reply, edit and delete splices
    composer: Conversion between comment code and editable text
    attribution: Search for the edit that added a comment
    snapshots: Persisted comment snapshots and change detection
    api: MediaWiki API client and collaborator interfaces

Typical Usage:
    >>> from talkops import get_preset, parse_page, locate_comment, reply_to_comment
    >>> conventions = get_preset("mw")
    >>> page = parse_page(code, conventions, current_user="Alice")
    >>> comment = page.get_comment("Bob#2021-05-01T10:00Z")
    >>>
    >>> # Later, against the current revision of the page
    >>> location = locate_comment(current_code, page.comment_data(comment), conventions)
    >>> result = reply_to_comment(current_code, location, "Thanks!", conventions)

Errors:
    Every failure is a TalkError with type "parse", "api" or "network".
"""

from __future__ import annotations

# Re-export commonly used functions for convenience.
from .conventions import Conventions, get_preset, load_conventions
from .errors import TalkError
from .models import (
    Comment,
    CommentData,
    CommentLocation,
    MutationResult,
    PageModel,
    Section,
    SectionData,
    SectionLocation,
)
from .parser import parse_page
from .identity import find_previous_comment_by_time, find_section_by_headline_parts, parse_anchor
from .locator import locate_comment, locate_section, search_in_code
from .mutator import (
    add_section,
    delete_comment,
    edit_comment,
    edit_comment_text,
    reply_to_comment,
    reply_to_section,
)
from .composer import code_to_text, text_to_code
from .attribution import diff_link, find_adding_edit, find_comment_adding_edit

__all__ = [
    # conventions module
    "Conventions",
    "get_preset",
    "load_conventions",
    # errors module
    "TalkError",
    # models module
    "Comment",
    "CommentData",
    "CommentLocation",
    "MutationResult",
    "PageModel",
    "Section",
    "SectionData",
    "SectionLocation",
    # parser and identity modules
    "parse_page",
    "parse_anchor",
    "find_previous_comment_by_time",
    "find_section_by_headline_parts",
    # locator module
    "locate_comment",
    "locate_section",
    "search_in_code",
    # mutator module
    "add_section",
    "delete_comment",
    "edit_comment",
    "edit_comment_text",
    "reply_to_comment",
    "reply_to_section",
    # composer module
    "code_to_text",
    "text_to_code",
    # attribution module
    "diff_link",
    "find_adding_edit",
    "find_comment_adding_edit",
]

__version__ = "1.0.0"
