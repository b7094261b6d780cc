# talkops/headings.py
# Section heading extraction

from __future__ import annotations

import re
from typing import TYPE_CHECKING, List, Optional

from .masking import mask_code
from .models import HeadingOccurrence
from .utils import remove_wiki_markup

if TYPE_CHECKING:
    from .conventions import Conventions

HEADING_LINE = re.compile(r"^(={1,6})(.+?)\1[ \t\x01\x02]*(?:\n|$)", re.MULTILINE)


def extract_headings(code: str, conventions: Optional["Conventions"] = None) -> List[HeadingOccurrence]:
    """
    Find section headings ("== Headline ==") in document order.

    Headings inside HTML comments and non-wikitext tags are ignored. The headline is
    the plain text of the heading; headline_code is its wikitext, stripped.
    """
    masked = mask_code(code, conventions)
    headings = []
    for match in HEADING_LINE.finditer(masked):
        start, end = match.span()
        inner_start, inner_end = match.span(2)
        headline_code = code[inner_start:inner_end].strip()
        if not headline_code:
            continue
        headings.append(HeadingOccurrence(
            level=len(match.group(1)),
            headline=remove_wiki_markup(headline_code),
            headline_code=headline_code,
            start_index=start,
            end_index=end,
        ))
    return headings
