"""
talkops/identity.py - Comment and Section Anchors

Comments live only as long as one parse pass; anchors are what survives a reload.

    comment anchor:  "<author>#<UTC minute in ISO form>", e.g. "Alice#2021-01-05T12:34Z"
                     the N-th comment sharing author and minute gets "_N" (N >= 2),
                     counted in document order
    section anchor:  the headline with spaces replaced by underscores, duplicates
                     suffixed the same way

The suffix depends on document order, so inserting an earlier comment with the same
author and minute shifts the suffixes of later ones.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Comment, Section
from .timestamps import iso_minute, parse_iso_minute
from .utils import words

ANCHOR_PATTERN = re.compile(r"^(.+)#(\d{4}-\d\d-\d\dT\d\d:\d\dZ|undated)(?:_(\d+))?$")


def generate_anchor(author: str, date: Optional[datetime]) -> str:
    return f"{author}#{iso_minute(date) if date else 'undated'}"


def _suffix(base: str, counts: Dict[str, int]) -> str:
    counts[base] = counts.get(base, 0) + 1
    return base if counts[base] == 1 else f"{base}_{counts[base]}"


def assign_anchors(comments: Iterable[Comment]) -> None:
    """Give every comment a page-unique anchor, in document order."""
    counts: Dict[str, int] = {}
    for comment in comments:
        comment.anchor = _suffix(generate_anchor(comment.author, comment.date), counts)


def section_anchor_base(headline: str) -> str:
    return re.sub(r"\s+", "_", headline.strip())


def assign_section_anchors(sections: Iterable[Section]) -> None:
    counts: Dict[str, int] = {}
    for section in sections:
        section.anchor = _suffix(section_anchor_base(section.headline), counts)


def parse_anchor(anchor: str) -> Optional[Tuple[str, Optional[datetime], int]]:
    """
    Split a comment anchor into (author, date, ordinal); ordinal is 1 for unsuffixed
    anchors. Returns None when the string is not a comment anchor.
    """
    match = ANCHOR_PATTERN.match(anchor or "")
    if not match:
        return None
    author, stamp, ordinal = match.groups()
    date = None if stamp == "undated" else parse_iso_minute(stamp)
    return author, date, int(ordinal) if ordinal else 1


def find_previous_comment_by_time(
    comments: List[Comment],
    date: datetime,
    author: Optional[str] = None,
) -> Optional[Comment]:
    """
    The comment with the closest date not later than `date`, for pointing at a
    neighbour of a comment that is gone. Comments by `author` are preferred.
    """
    earlier = [c for c in comments if c.date is not None and c.date <= date]
    if not earlier:
        return None
    if author:
        own = [c for c in earlier if c.author == author]
        if own:
            earlier = own
    return max(earlier, key=lambda c: (c.date, -c.id))


def find_section_by_headline_parts(sections: List[Section], headline: str) -> Optional[Section]:
    """
    The section whose headline shares the largest part of the words of `headline`.
    At least half of the words have to match.
    """
    parts = words(headline.replace("_", " "))
    if not parts:
        return None
    best: Optional[Section] = None
    best_score = 0.0
    for section in sections:
        section_words = set(words(section.headline))
        score = sum(1 for p in parts if p in section_words) / len(parts)
        if score > best_score:
            best, best_score = section, score
    return best if best_score >= 0.5 else None
