"""
talkops/signatures.py - Signature Extraction

A talk page comment has no markup of its own; it ends where its author's signature
(a user link followed by a timestamp) ends. This module finds those signatures in a
wikitext blob:

    - Regular signatures: the last timestamp on a line, with the author taken from the
      last user link within `signature_scan_limit` characters before it. A run of links
      to the same user ([[User:A|A]] ([[User talk:A|talk]])) belongs to one signature.
    - "Unsigned" templates ({{unsigned|User|date}}) added by others afterwards. When the
      template names no user, the author is the UNDATED placeholder.

Timestamps that do not resolve to a real instant are discarded. Matches inside HTML
comments and non-wikitext tags are ignored.

Example:
    >>> from talkops.conventions import get_preset
    >>> code = "Hi. [[User:Alice|Alice]] 12:34, 5 January 2021 (UTC)"
    >>> [s.author for s in extract_signatures(code, get_preset("mw"))]
    ['Alice']
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, List, Optional

import wikitextparser as wtp

from .indentation import line_end, scan_lines
from .masking import apply_mask, mask_code
from .models import UNDATED, SignatureOccurrence
from .timestamps import date_from_match, parse_timestamp
from .utils import normalize_user_name

if TYPE_CHECKING:
    from .conventions import Conventions

logger = logging.getLogger(__name__)

SIGNATURE_TAIL = re.compile(r"(?:\}\}|</small>)", re.IGNORECASE)

# Markup that separates two comments even when their signatures are identical
BLOCK_LEVEL_GAP = re.compile(
    r"\n[ \t]*\n|\n[:*#;=]|\n\{\||\n----|<(?:div|p|br|table|blockquote|hr|ul|ol|dl)\b",
    re.IGNORECASE,
)


def _link_author(match: re.Match) -> str:
    return normalize_user_name(match.group(1) or match.group(2) or "")


def _extract_regular(code: str, masked: str, conventions: "Conventions") -> List[dict]:
    found = []
    timestamp_regexp = conventions.timestamp_regexp
    user_link_regexp = conventions.user_link_regexp
    for line in scan_lines(masked):
        timestamps = list(timestamp_regexp.finditer(masked, line.start, line.end))
        if not timestamps:
            continue
        timestamp = timestamps[-1]
        date = date_from_match(timestamp, conventions)
        if date is None:
            logger.debug("Discarding unparsable timestamp %r", timestamp.group(0))
            continue

        window_start = max(line.start, timestamp.start() - conventions.signature_scan_limit)
        links = list(user_link_regexp.finditer(masked, window_start, timestamp.start()))
        if not links:
            continue
        author = _link_author(links[-1])
        if not author:
            continue
        start = links[-1].start()
        for link in reversed(links[:-1]):
            if _link_author(link) != author:
                break
            start = link.start()

        end = timestamp.end()
        tail = SIGNATURE_TAIL.match(masked, end)
        if tail:
            end = tail.end()

        found.append({
            "author": author,
            "timestamp": code[timestamp.start():timestamp.end()],
            "date": date,
            "start_index": start,
            "end_index": end,
            "is_unsigned": False,
        })
    return found


def _template_arg(template: wtp.Template, *names: str) -> str:
    for name in names:
        argument = template.get_arg(name)
        if argument is not None and argument.value.strip():
            return argument.value.strip()
    return ""


def _extract_unsigned(code: str, masked: str, conventions: "Conventions") -> List[dict]:
    found = []
    for template in wtp.parse(code).templates:
        if not conventions.is_unsigned_template(template.name):
            continue
        start, end = template.span
        # Inside a comment or <nowiki>
        if masked[start] != "{":
            continue
        author = normalize_user_name(_template_arg(template, "1", "user", "User"))
        timestamp = _template_arg(template, "2", "date", "Date")
        found.append({
            "author": author or UNDATED,
            "timestamp": timestamp,
            "date": parse_timestamp(timestamp, conventions) if timestamp else None,
            "start_index": start,
            "end_index": end,
            "is_unsigned": True,
        })
    return found


def _comment_start(code: str, previous_end: Optional[int], signature_start: int) -> int:
    if previous_end is None:
        index = 0
    else:
        index = min(line_end(code, previous_end) + 1, signature_start)
    while index < signature_start and code[index] == "\n":
        index += 1
    return index


def _is_inline_gap(gap: str) -> bool:
    return not BLOCK_LEVEL_GAP.search(gap)


def extract_signatures(code: str, conventions: "Conventions") -> List[SignatureOccurrence]:
    """
    Find all signatures in `code`, ordered by position.

    Two consecutive signatures with the same author and timestamp separated only by
    inline content are one comment split by markup; the earlier one is folded into
    the later one.
    """
    basic_masked = mask_code(code, conventions)
    unsigned = _extract_unsigned(code, basic_masked, conventions)
    masked = apply_mask(basic_masked, [(s["start_index"], s["end_index"]) for s in unsigned])

    raw = sorted(_extract_regular(code, masked, conventions) + unsigned, key=lambda s: s["start_index"])

    merged: List[dict] = []
    for signature in raw:
        if merged:
            previous = merged[-1]
            if (
                previous["author"] == signature["author"]
                and previous["timestamp"] == signature["timestamp"]
                and _is_inline_gap(code[previous["end_index"]:signature["start_index"]])
            ):
                signature["merged_start"] = previous.get("merged_start", previous["comment_start_index"])
                merged.pop()
        previous_end = merged[-1]["end_index"] if merged else None
        signature["comment_start_index"] = signature.get(
            "merged_start", _comment_start(code, previous_end, signature["start_index"])
        )
        merged.append(signature)

    return [
        SignatureOccurrence(
            id=i,
            author=s["author"],
            timestamp=s["timestamp"],
            date=s["date"],
            start_index=s["start_index"],
            end_index=s["end_index"],
            dirty_code=code[s["start_index"]:s["end_index"]],
            comment_start_index=s["comment_start_index"],
            is_unsigned=s["is_unsigned"],
        )
        for i, s in enumerate(merged)
    ]
