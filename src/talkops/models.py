# talkops/models.py
# Data structures shared by the extractors, the parser, the locator and the mutator

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from .timestamps import iso_minute

# Author placeholder of "unsigned" templates that name nobody
UNDATED = "<undated>"


@dataclass(frozen=True)
class SignatureOccurrence:
    """A signature found in one wikitext blob. Indices refer to that blob."""
    id: int
    author: str
    timestamp: str
    date: Optional[datetime]
    start_index: int
    end_index: int
    dirty_code: str
    comment_start_index: int = 0
    is_unsigned: bool = False


@dataclass(frozen=True)
class HeadingOccurrence:
    """A section heading line; end_index points past the line's newline, if any."""
    level: int
    headline: str
    headline_code: str
    start_index: int
    end_index: int


@dataclass
class CommentSpan:
    """Body of a candidate comment after the beginning adjustments."""
    code: str
    start_index: int
    line_start_index: int
    heading_start_index: Optional[int] = None
    heading_level: Optional[int] = None
    headline_code: Optional[str] = None
    indentation_chars: str = ""
    original_indentation_chars: str = ""

    @property
    def has_heading(self) -> bool:
        return self.heading_start_index is not None


@dataclass
class CommentLocation:
    """
    Where a comment sits in one wikitext snapshot.

    Layout in the source:
        [line_start_index, start_index)          indentation prefix (or heading)
        [start_index, end_index)                 small-font opener + body code
        [end_index, signature_end_index)         signature dirty code
    """
    code: str
    start_index: int
    end_index: int
    line_start_index: int
    signature_end_index: int
    signature_dirty_code: str
    signature_code: str
    indentation_chars: str
    original_indentation_chars: str
    reply_indentation_chars: str
    small_wrapper_start: str = ""
    in_small_font: bool = False
    heading_start_index: Optional[int] = None
    heading_level: Optional[int] = None
    headline_code: Optional[str] = None
    signature_id: int = 0
    score: float = 0.0
    is_low_confidence: bool = False

    def to_dict(self) -> dict:
        return {
            "start_index": self.start_index,
            "end_index": self.end_index,
            "line_start_index": self.line_start_index,
            "signature_end_index": self.signature_end_index,
            "code": self.code,
            "signature_code": self.signature_code,
            "indentation_chars": self.indentation_chars,
            "reply_indentation_chars": self.reply_indentation_chars,
            "in_small_font": self.in_small_font,
            "heading_start_index": self.heading_start_index,
            "score": round(self.score, 4),
            "is_low_confidence": self.is_low_confidence,
        }


@dataclass
class MatchCandidate:
    """One scored signature occurrence produced while locating a comment."""
    signature: SignatureOccurrence
    span: CommentSpan
    word_overlap: float
    has_previous_comments_data_matched: bool
    has_previous_comment_data_matched: bool
    is_previous_comments_data_equal: bool
    has_headline_matched: float
    has_id_matched: bool
    score: float = 0.0


@dataclass
class CommentData:
    """
    What the locator needs to know about a comment, possibly taken from an older
    parse of the page.
    """
    id: int
    author: str
    timestamp: str
    text: str
    level: int = 0
    anchor: Optional[str] = None
    is_opening_section: bool = False
    follows_heading: bool = False
    section_headline: Optional[str] = None
    # (author, timestamp) of the preceding comments, nearest first
    previous_comments: List[Tuple[str, str]] = field(default_factory=list)
    is_own: bool = False
    is_in_single_comment_table: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "CommentData":
        return cls(
            id=int(data.get("id", 0)),
            author=data.get("author", ""),
            timestamp=data.get("timestamp", ""),
            text=data.get("text", ""),
            level=int(data.get("level", 0)),
            anchor=data.get("anchor"),
            is_opening_section=bool(data.get("is_opening_section", False)),
            follows_heading=bool(data.get("follows_heading", False)),
            section_headline=data.get("section_headline"),
            previous_comments=[tuple(p) for p in data.get("previous_comments", [])],
            is_own=bool(data.get("is_own", False)),
            is_in_single_comment_table=bool(data.get("is_in_single_comment_table", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author": self.author,
            "timestamp": self.timestamp,
            "text": self.text,
            "level": self.level,
            "anchor": self.anchor,
            "is_opening_section": self.is_opening_section,
            "follows_heading": self.follows_heading,
            "section_headline": self.section_headline,
            "previous_comments": [list(p) for p in self.previous_comments],
            "is_own": self.is_own,
            "is_in_single_comment_table": self.is_in_single_comment_table,
        }


@dataclass
class Comment:
    """A signed comment. Created by one parse pass and discarded by the next."""
    id: int
    author: str
    timestamp: str
    date: Optional[datetime]
    level: int
    start_index: int
    end_index: int
    line_start_index: int
    signature_end_index: int
    code: str
    text: str
    signature_code: str
    indentation_chars: str = ""
    anchor: str = ""
    parent_id: Optional[int] = None
    section_id: Optional[int] = None
    is_opening_section: bool = False
    follows_heading: bool = False
    is_own: bool = False
    is_in_single_comment_table: bool = False
    # False for comments built from wikitext alone, True once bound to rendered output
    is_rendered: bool = False
    child_ids: List[int] = field(default_factory=list)
    # Lifecycle flags, only set on active pages
    is_new: Optional[bool] = None
    is_seen: Optional[bool] = None
    is_changed: Optional[bool] = None
    is_deleted: Optional[bool] = None
    # Last known source location; cleared when the page state changes
    in_code: Optional[CommentLocation] = None

    @property
    def iso_timestamp(self) -> Optional[str]:
        return iso_minute(self.date) if self.date else None

    @property
    def signature_text(self) -> str:
        from .utils import remove_wiki_markup

        return remove_wiki_markup(self.signature_code)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "anchor": self.anchor,
            "author": self.author,
            "timestamp": self.timestamp,
            "date": self.date.isoformat() if self.date else None,
            "level": self.level,
            "parent_id": self.parent_id,
            "section_id": self.section_id,
            "child_ids": list(self.child_ids),
            "is_opening_section": self.is_opening_section,
            "is_own": self.is_own,
            "is_rendered": self.is_rendered,
            "text": self.text,
            "is_new": self.is_new,
            "is_seen": self.is_seen,
            "is_changed": self.is_changed,
            "is_deleted": self.is_deleted,
        }


@dataclass
class Section:
    """A section heading and the comments directly under it."""
    id: int
    level: int
    headline: str
    headline_code: str
    start_index: int
    content_start_index: int
    end_index: int = 0
    anchor: str = ""
    parent_id: Optional[int] = None
    comment_ids: List[int] = field(default_factory=list)
    subsection_ids: List[int] = field(default_factory=list)
    is_watched: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "anchor": self.anchor,
            "level": self.level,
            "headline": self.headline,
            "parent_id": self.parent_id,
            "comment_ids": list(self.comment_ids),
            "subsection_ids": list(self.subsection_ids),
            "is_watched": self.is_watched,
        }


@dataclass
class SectionData:
    """What the section locator needs: headline, level and ordinal among equal headlines."""
    headline: str
    level: int
    id: int = 0
    ordinal: int = 0
    first_comment: Optional[Tuple[str, str]] = None


@dataclass
class SectionLocation:
    """Section span in one wikitext snapshot; end indices point past the last character."""
    start_index: int
    content_start_index: int
    end_index: int
    content_end_index: int
    code: str
    heading_code: str
    level: int
    headline_code: str


@dataclass
class MutationResult:
    """New page wikitext and the span that changed, in old-text coordinates."""
    new_code: str
    action: str
    start_index: int
    end_index: int
    inserted_code: str = ""
    removed_code: str = ""

    @property
    def code_before_insertion(self) -> str:
        return self.new_code[:self.start_index]

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "inserted_code": self.inserted_code,
            "removed_code": self.removed_code,
            "wikitext": self.new_code,
        }


@dataclass
class PageModel:
    """
    Result of one parse pass: every comment and section of one page state.

    Owned by the caller and passed explicitly to the locator and mutator; there is no
    page-wide registry elsewhere.
    """
    code: str
    title: Optional[str] = None
    revision_id: Optional[int] = None
    current_user: Optional[str] = None
    is_active: bool = True
    comments: List[Comment] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    _by_anchor: Dict[str, Comment] = field(default_factory=dict, repr=False)

    def index(self) -> None:
        self._by_anchor = {c.anchor: c for c in self.comments}

    def get_comment(self, anchor: str) -> Optional[Comment]:
        if not self._by_anchor and self.comments:
            self.index()
        return self._by_anchor.get(anchor)

    def get_comment_by_id(self, comment_id: Optional[int]) -> Optional[Comment]:
        if comment_id is None or not 0 <= comment_id < len(self.comments):
            return None
        return self.comments[comment_id]

    def get_section(self, section_id: Optional[int]) -> Optional[Section]:
        if section_id is None or not 0 <= section_id < len(self.sections):
            return None
        return self.sections[section_id]

    def get_section_by_anchor(self, anchor: str) -> Optional[Section]:
        return next((s for s in self.sections if s.anchor == anchor), None)

    def parent_of(self, comment: Comment) -> Optional[Comment]:
        return self.get_comment_by_id(comment.parent_id)

    def children_of(self, comment: Comment) -> List[Comment]:
        return [self.comments[i] for i in comment.child_ids]

    def section_comments(self, section: Section) -> List[Comment]:
        return [self.comments[i] for i in section.comment_ids]

    def walk_thread(self, comment: Comment) -> Iterator[Comment]:
        """The comment and all its descendants, depth first."""
        yield comment
        for child in self.children_of(comment):
            yield from self.walk_thread(child)

    def comment_data(self, comment: Comment) -> CommentData:
        """Snapshot of a comment for locating it in another revision of the page."""
        previous = self.comments[max(0, comment.id - 2):comment.id]
        section = self.get_section(comment.section_id)
        return CommentData(
            id=comment.id,
            author=comment.author,
            timestamp=comment.timestamp,
            text=comment.text,
            level=comment.level,
            anchor=comment.anchor,
            is_opening_section=comment.is_opening_section,
            follows_heading=comment.follows_heading,
            section_headline=section.headline if section else None,
            previous_comments=[(c.author, c.timestamp) for c in reversed(previous)],
            is_own=comment.is_own,
            is_in_single_comment_table=comment.is_in_single_comment_table,
        )

    def section_data(self, section: Section) -> SectionData:
        same = [s for s in self.sections if s.headline == section.headline and s.level == section.level]
        first = self.section_comments(section)[:1]
        return SectionData(
            headline=section.headline,
            level=section.level,
            id=section.id,
            ordinal=same.index(section),
            first_comment=(first[0].author, first[0].timestamp) if first else None,
        )

    def invalidate_locations(self) -> None:
        for comment in self.comments:
            comment.in_code = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "revision_id": self.revision_id,
            "comments": [c.to_dict() for c in self.comments],
            "sections": [s.to_dict() for s in self.sections],
        }
