"""
talkops/mutator.py - Source Mutator

Computes the wikitext splice for replying to, editing or deleting a located comment,
for replying to a section and for adding a new section.

Design Decisions:
    - Every function takes the page code and a location computed on that same code and
      returns a MutationResult; nothing outside the changed span is touched
    - Replies go after the whole reply chain of the target: the lines following it that
      are indented deeper than the reply will be
    - Deleting refuses when replies would be orphaned: a deeper-indented line right
      after the comment, or more than one signature in a section being removed
    - Low-confidence locations are refused; a wrong guess would corrupt someone
      else's comment

Example:
    >>> from talkops.conventions import get_preset
    >>> from talkops.models import CommentData
    >>> from talkops.locator import locate_comment
    >>> code = "Question? [[User:A|A]] 10:00, 1 May 2021 (UTC)\\n"
    >>> data = CommentData(id=0, author="A", timestamp="10:00, 1 May 2021 (UTC)", text="Question?")
    >>> location = locate_comment(code, data, get_preset("mw"))
    >>> reply_to_comment(code, location, "Answer.", get_preset("mw")).new_code.splitlines()[1]
    ': Answer. ~~~~'
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional

from .composer import compose_reply, text_to_code
from .errors import TalkError
from .headings import extract_headings
from .indentation import LineState, line_end, scan_lines, stops_reply_chain
from .masking import mask_code
from .models import CommentLocation, MutationResult, SectionLocation
from .signatures import extract_signatures

if TYPE_CHECKING:
    from .conventions import Conventions
    from .indentation import Line

logger = logging.getLogger(__name__)

NEXT_HEADING = re.compile(r"\n+(=+).*?\1[ \t\x01\x02]*\n|$")
CHANGED_INDENTATION = re.compile(r"^(?:[:*#]{2,}|#[:*#]*)$")


def _check_confidence(location: CommentLocation, action: str) -> None:
    if location.is_low_confidence:
        raise TalkError(
            "parse",
            "locateComment",
            "The comment location is a guess and cannot be used for changes",
            action=action,
        )


def _chunk_end(code: str, masked: str, start: int, conventions: "Conventions") -> int:
    """End of the section part after `start`: right after the newline before the next heading."""
    match = NEXT_HEADING.search(masked, start)
    end = match.start() + 1 if match.group(0) else len(code)
    end = min(end, len(code))
    for regexp in conventions.keep_in_section_ending_regexps:
        ending = regexp.search(code[start:end])
        if ending:
            end = start + ending.start() + 1
            break
    return end


def _ends_comment(line: "Line", code: str, conventions: "Conventions") -> bool:
    text = code[line.start:line.end].rstrip()
    if line.text.startswith("\x01"):
        return True
    if conventions.timestamp_regexp.search(text):
        return True
    unsigned = conventions.unsigned_template_regexp
    if unsigned is not None and unsigned.search(text):
        return True
    return False


def find_reply_insertion_point(
    code: str,
    location: CommentLocation,
    conventions: "Conventions",
    is_in_single_comment_table: bool = False,
):
    """
    Where a reply to the located comment goes.

    Returns:
        (index, reply_indentation_chars). The reply is inserted at `index`, which is
        the end of a line (before its newline), prefixed with a newline.
    """
    masked = mask_code(code, conventions, closed_discussions=True)
    signature_end = location.signature_end_index
    chunk_end = _chunk_end(code, masked, signature_end, conventions)
    reply_chars = location.reply_indentation_chars
    max_length = len(reply_chars) - 1

    insertion = line_end(code, signature_end)
    last_line_ends_comment = True
    last_indentation = ""
    if insertion < chunk_end:
        for line in scan_lines(masked, insertion + 1, chunk_end):
            if line.state == LineState.BLANK:
                continue
            if stops_reply_chain(line, max_length) and last_line_ends_comment:
                break
            last_line_ends_comment = _ends_comment(line, code, conventions) or (
                location.signature_code and code[line.start:line.end].rstrip().endswith(
                    location.signature_code.strip()))
            last_indentation = line.indentation if line.state == LineState.IN_LIST else ""
            insertion = line.end

    if is_in_single_comment_table and code.startswith("|}", insertion + 1):
        insertion = line_end(code, insertion + 1)
        last_indentation = ""

    if CHANGED_INDENTATION.match(last_indentation) and len(last_indentation) >= len(reply_chars):
        reply_chars = last_indentation[:len(reply_chars)]
        if reply_chars.endswith(":"):
            reply_chars = reply_chars[:-1] + conventions.default_indentation_char
    return insertion, reply_chars


def reply_to_comment(
    code: str,
    location: CommentLocation,
    text: str,
    conventions: "Conventions",
    signature: str = "~~~~",
    is_in_single_comment_table: bool = False,
) -> MutationResult:
    """Insert a reply to the located comment after its reply chain."""
    _check_confidence(location, "reply")
    insertion, reply_chars = find_reply_insertion_point(
        code, location, conventions, is_in_single_comment_table
    )
    reply = "\n" + compose_reply(text, reply_chars, conventions, signature)
    logger.debug("Reply inserted at %d with %r", insertion, reply_chars)
    return MutationResult(
        new_code=code[:insertion] + reply + code[insertion:],
        action="reply",
        start_index=insertion,
        end_index=insertion,
        inserted_code=reply,
    )


def edit_comment(
    code: str,
    location: CommentLocation,
    new_body_code: str,
    conventions: "Conventions",
    headline: Optional[str] = None,
) -> MutationResult:
    """
    Replace the body of the located comment. The indentation, small-font opener and
    signature around it stay as they are, so passing location.code back reproduces
    the page exactly.

    For a comment that opens a section, `headline` replaces the heading text.
    """
    _check_confidence(location, "edit")
    start, end = location.start_index, location.end_index
    new_code = code[:start] + new_body_code + code[end:]

    if headline is not None and location.heading_start_index is not None:
        heading_start = location.heading_start_index
        heading_end = line_end(code, heading_start)
        level = location.heading_level or 2
        marks = "=" * level
        new_heading = f"{marks} {headline.strip()} {marks}"
        new_code = code[:heading_start] + new_heading + code[heading_end:start] + new_body_code + code[end:]
        return MutationResult(
            new_code=new_code,
            action="edit",
            start_index=heading_start,
            end_index=end,
            inserted_code=new_heading + code[heading_end:start] + new_body_code,
            removed_code=code[heading_start:end],
        )

    return MutationResult(
        new_code=new_code,
        action="edit",
        start_index=start,
        end_index=end,
        inserted_code=new_body_code,
        removed_code=code[start:end],
    )


def edit_comment_text(
    code: str,
    location: CommentLocation,
    text: str,
    conventions: "Conventions",
    headline: Optional[str] = None,
) -> MutationResult:
    """edit_comment() with the new body composed from plain text."""
    body = text_to_code(text, location.indentation_chars, conventions)
    return edit_comment(code, location, body, conventions, headline=headline)


def _section_end(code: str, heading_start: int, level: int, conventions: "Conventions") -> int:
    for heading in extract_headings(code, conventions):
        if heading.start_index > heading_start and heading.level <= level:
            return heading.start_index
    return len(code)


def delete_comment(
    code: str,
    location: CommentLocation,
    conventions: "Conventions",
    is_opening_section: bool = False,
) -> MutationResult:
    """
    Remove the located comment, or its whole section when it opens one.

    Raises:
        TalkError: type "parse", code "delete-repliesInSection" when the section holds
            other comments, "delete-repliesToComment" when replies follow the comment.
    """
    _check_confidence(location, "delete")

    if is_opening_section and location.heading_start_index is not None:
        start = location.heading_start_index
        end = _section_end(code, start, location.heading_level or 2, conventions)
        if len(extract_signatures(code[start:end], conventions)) > 1:
            raise TalkError(
                "parse",
                "delete-repliesInSection",
                "The section contains other comments",
                action="delete",
            )
        return MutationResult(
            new_code=code[:start] + code[end:],
            action="delete",
            start_index=start,
            end_index=end,
            removed_code=code[start:end],
        )

    level = len(location.indentation_chars)
    replies = re.compile(r".+\n+[:*#]{" + str(level + 1) + ",}")
    masked = mask_code(code, conventions)
    if replies.match(masked, location.end_index):
        raise TalkError(
            "parse",
            "delete-repliesToComment",
            "The comment has replies",
            action="delete",
        )

    start = location.line_start_index
    end = location.signature_end_index
    if code.startswith("\n", end):
        end += 1
    return MutationResult(
        new_code=code[:start] + code[end:],
        action="delete",
        start_index=start,
        end_index=end,
        removed_code=code[start:end],
    )


def reply_to_section(
    code: str,
    section: SectionLocation,
    text: str,
    conventions: "Conventions",
    signature: str = "~~~~",
) -> MutationResult:
    """Add a top-level comment at the end of the section's own content."""
    content = code[section.content_start_index:section.content_end_index]
    kept_ending = len(content)
    for regexp in conventions.keep_in_section_ending_regexps:
        ending = regexp.search(content)
        if ending:
            kept_ending = ending.start()
            break
    insertion = section.content_start_index + len(content[:kept_ending].rstrip("\n \t"))
    body = text_to_code(text, "", conventions)
    if insertion == section.content_start_index:
        # Empty section: the heading line already ends with a newline
        inserted = f"{body} {signature}\n"
    else:
        inserted = f"\n{body} {signature}"
    return MutationResult(
        new_code=code[:insertion] + inserted + code[insertion:],
        action="replyInSection",
        start_index=insertion,
        end_index=insertion,
        inserted_code=inserted,
    )


def add_section(
    code: str,
    headline: str,
    text: str,
    conventions: "Conventions",
    level: int = 2,
    signature: str = "~~~~",
) -> MutationResult:
    """Append a new section with its first comment to the end of the page."""
    marks = "=" * level
    body = text_to_code(text, "", conventions)
    head = code.rstrip("\n")
    separator = "\n\n" if head else ""
    inserted = f"{separator}{marks} {headline.strip()} {marks}\n{body} {signature}\n"
    return MutationResult(
        new_code=head + inserted,
        action="addSection",
        start_index=len(head),
        end_index=len(code),
        inserted_code=inserted,
        removed_code=code[len(head):],
    )
