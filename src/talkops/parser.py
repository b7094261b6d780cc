"""
talkops/parser.py - Structural Assembler

Turns the flat signature and heading streams of a talk page into a PageModel: comments
with levels, parents and sections, and sections with their nesting.

Design Decisions:
    - A comment's body runs from the line after the previous signature (or the last
      heading in between) to its own signature; see talkops.spans for the trimming rules
    - The level is the number of indentation characters on the first body line
    - The parent is the nearest earlier comment of the same section with a lower level;
      a comment without one has no parent
    - A section is the innermost heading before a comment; it ends at the next heading
      of the same or a higher level
    - One malformed comment is logged and skipped, the rest of the page is still parsed

Thread Safety:
    parse_page() builds a fresh PageModel on every call and keeps no state between calls.

Example:
    >>> from talkops.conventions import get_preset
    >>> code = (
    ...     "== Topic ==\\n"
    ...     "Comment A [[User:A|A]] 10:00, 1 May 2021 (UTC)\\n"
    ...     ": Reply B [[User:B|B]] 10:05, 1 May 2021 (UTC)\\n"
    ... )
    >>> page = parse_page(code, get_preset("mw"))
    >>> [(c.author, c.level, c.parent_id) for c in page.comments]
    [('A', 0, None), ('B', 1, 0)]
"""

from __future__ import annotations

import bisect
import logging
from typing import TYPE_CHECKING, List, Optional

import wikitextparser as wtp

from .errors import TalkError
from .headings import extract_headings
from .identity import assign_anchors, assign_section_anchors
from .indentation import comment_level
from .models import (
    Comment,
    HeadingOccurrence,
    PageModel,
    Section,
    SignatureOccurrence,
)
from .signatures import extract_signatures
from .spans import adjust_comment_beginning, adjust_comment_code_data
from .utils import normalize_user_name, remove_wiki_markup

if TYPE_CHECKING:
    from .conventions import Conventions

logger = logging.getLogger(__name__)


def build_sections(code: str, headings: List[HeadingOccurrence]) -> List[Section]:
    """Sections in document order, with end indices and parent links."""
    sections: List[Section] = []
    stack: List[Section] = []
    for i, heading in enumerate(headings):
        end_index = len(code)
        for following in headings[i + 1:]:
            if following.level <= heading.level:
                end_index = following.start_index
                break
        section = Section(
            id=i,
            level=heading.level,
            headline=heading.headline,
            headline_code=heading.headline_code,
            start_index=heading.start_index,
            content_start_index=heading.end_index,
            end_index=end_index,
        )
        while stack and stack[-1].level >= section.level:
            stack.pop()
        if stack:
            section.parent_id = stack[-1].id
            stack[-1].subsection_ids.append(section.id)
        stack.append(section)
        sections.append(section)
    assign_section_anchors(sections)
    return sections


def single_comment_table_signatures(code: str, signatures: List[SignatureOccurrence]) -> set:
    """Ids of signatures that are the only signature in their (top-level) table."""
    result = set()
    for table in wtp.parse(code).get_tables(recursive=False):
        start, end = table.span
        inside = [s.id for s in signatures if start <= s.start_index < end]
        if len(inside) == 1:
            result.add(inside[0])
    return result


def locate_signature_comment(
    code: str,
    signature: SignatureOccurrence,
    conventions: "Conventions",
    level: Optional[int] = None,
    is_opening_section: Optional[bool] = None,
):
    """
    Work out the body of the comment ending with `signature`.

    When `level` or `is_opening_section` is not given, it is derived from the code.

    Returns:
        (location, level, follows_heading, is_opening_section)
    """
    chunk = code[signature.comment_start_index:signature.start_index]
    span = adjust_comment_beginning(chunk, signature.comment_start_index, 0, False, conventions)
    follows_heading = span.has_heading
    if level is None:
        level = comment_level(span.code)
    if is_opening_section is None:
        is_opening_section = follows_heading and level == 0
    if level > 0 or is_opening_section:
        span = adjust_comment_beginning(
            chunk, signature.comment_start_index, level, is_opening_section, conventions
        )
    location = adjust_comment_code_data(code, span, signature, conventions, is_opening_section)
    return location, level, follows_heading, is_opening_section


def _build_comment(
    code: str,
    signature: SignatureOccurrence,
    conventions: "Conventions",
    comment_id: int,
) -> Comment:
    if signature.start_index < signature.comment_start_index:
        raise TalkError("parse", "signatureOrder", "Signature starts before its comment")
    location, level, follows_heading, is_opening_section = locate_signature_comment(
        code, signature, conventions
    )
    return Comment(
        id=comment_id,
        author=signature.author,
        timestamp=signature.timestamp,
        date=signature.date,
        level=level,
        start_index=location.start_index,
        end_index=location.end_index,
        line_start_index=location.line_start_index,
        signature_end_index=location.signature_end_index,
        code=location.code,
        text=remove_wiki_markup(location.code),
        signature_code=location.signature_code,
        indentation_chars=location.indentation_chars,
        is_opening_section=is_opening_section,
        follows_heading=follows_heading,
        in_code=location,
    )


def _section_id(sections: List[Section], starts: List[int], index: int) -> Optional[int]:
    position = bisect.bisect_left(starts, index) - 1
    return sections[position].id if position >= 0 else None


def parse_page(
    code: str,
    conventions: "Conventions",
    title: Optional[str] = None,
    current_user: Optional[str] = None,
    revision_id: Optional[int] = None,
    is_active: bool = True,
) -> PageModel:
    """
    Parse talk page wikitext into a PageModel.

    Args:
        code: Page wikitext.
        conventions: Wiki conventions (templates, timestamp format...).
        title: Page title, kept on the model.
        current_user: User name; that user's comments get is_own.
        revision_id: Revision the code belongs to, kept on the model.
        is_active: Whether lifecycle flags (new/seen/changed) are tracked for the page.

    Returns:
        The PageModel. Running it twice on the same code gives equal models.
    """
    page = PageModel(code=code, title=title, revision_id=revision_id,
                     current_user=current_user, is_active=is_active)
    signatures = extract_signatures(code, conventions)
    page.sections = build_sections(code, extract_headings(code, conventions))
    section_starts = [s.start_index for s in page.sections]
    in_single_tables = single_comment_table_signatures(code, signatures)
    own_name = normalize_user_name(current_user) if current_user else None

    for signature in signatures:
        try:
            comment = _build_comment(code, signature, conventions, len(page.comments))
        except (TalkError, ValueError, IndexError) as e:
            logger.warning("Skipping comment signed by %s at %d: %s",
                           signature.author, signature.start_index, e)
            continue
        comment.is_in_single_comment_table = signature.id in in_single_tables
        comment.is_own = own_name is not None and comment.author == own_name
        comment.section_id = _section_id(page.sections, section_starts, signature.start_index)

        for previous in reversed(page.comments):
            if previous.section_id != comment.section_id:
                break
            if previous.level < comment.level:
                comment.parent_id = previous.id
                previous.child_ids.append(comment.id)
                break

        section = page.get_section(comment.section_id)
        if section is not None:
            section.comment_ids.append(comment.id)
        page.comments.append(comment)

    assign_anchors(page.comments)
    page.index()
    logger.debug("Parsed %d comments in %d sections", len(page.comments), len(page.sections))
    return page
