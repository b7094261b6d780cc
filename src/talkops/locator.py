"""
talkops/locator.py - Source Locator

Finds where a comment (known from an earlier parse, possibly of another revision)
sits in a wikitext snapshot.

Every signature with the comment's author and timestamp is a candidate. A candidate's
score is built from:

    x2      it is the only candidate, its text overlaps the comment's by more than
            half, or the signatures before it match the comment's predecessors
            (for the first comment: it is first and its heading matches)
    +0..1   word overlap with the comment's text
    +1      the headline matches (a comment that followed a heading and now has none
            gets -5 instead)
    +0.5    the predecessors' signatures match
    +0.0001 the occurrence has the same sequence number as the comment

Candidates scoring 2.5 or less are dropped; the best of the rest wins. Word overlap
is the only signal that survives other people's edits, the other terms separate
comments that have nothing else to tell them apart.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from .errors import TalkError
from .headings import extract_headings
from .models import (
    UNDATED,
    CommentData,
    CommentLocation,
    MatchCandidate,
    SectionData,
    SectionLocation,
    SignatureOccurrence,
)
from .signatures import extract_signatures
from .spans import adjust_comment_beginning, adjust_comment_code_data
from .utils import calculate_word_overlap, normalize_code, remove_wiki_markup

if TYPE_CHECKING:
    from .conventions import Conventions

logger = logging.getLogger(__name__)

SCORE_THRESHOLD = 2.5
MISSING_HEADLINE_PENALTY = -5


def signature_matches(signature: SignatureOccurrence, data: CommentData) -> bool:
    """
    Author and timestamp filter. An "unsigned" template without a user matches any
    author, and a timestamp without the timezone part matches as a prefix.
    """
    if signature.author != data.author:
        if signature.author != UNDATED or not signature.timestamp:
            return False
    return data.timestamp == signature.timestamp or data.timestamp.startswith(signature.timestamp)


def _score_previous_comments(
    candidate: MatchCandidate,
    signatures: List[SignatureOccurrence],
    data: CommentData,
) -> None:
    match = candidate.signature
    if not data.previous_comments:
        # No previous comment on the page and none in the code
        candidate.has_previous_comments_data_matched = match.id == 0
        candidate.has_previous_comment_data_matched = match.id == 0
        return

    is_equal: Optional[bool] = None
    for i, (author, timestamp) in enumerate(data.previous_comments):
        index = match.id - 1 - i
        if index < 0:
            break
        previous = signatures[index]
        matched = previous.timestamp == timestamp and previous.author == author
        candidate.has_previous_comments_data_matched = matched
        # Runs of comments with one author and timestamp prove nothing
        if is_equal is not False:
            is_equal = match.timestamp == previous.timestamp and match.author == previous.author
        if i == 0:
            candidate.has_previous_comment_data_matched = matched
        if not matched:
            break
    candidate.is_previous_comments_data_equal = bool(is_equal)


def _score(candidate: MatchCandidate, data: CommentData, candidate_count: int) -> float:
    decisive = (
        candidate_count == 1
        or candidate.word_overlap > 0.5
        or (
            data.id != 0
            and candidate.has_previous_comments_data_matched
            and not candidate.is_previous_comments_data_equal
        )
        or (
            data.id == 0
            and candidate.has_previous_comments_data_matched
            and bool(candidate.has_headline_matched)
        )
    )
    return (
        decisive * 2
        + candidate.word_overlap
        + candidate.has_headline_matched * 1
        + candidate.has_previous_comments_data_matched * 0.5
        + candidate.has_id_matched * 0.0001
    )


def search_in_code(
    code: str,
    data: CommentData,
    conventions: "Conventions",
    signatures: Optional[List[SignatureOccurrence]] = None,
) -> List[MatchCandidate]:
    """
    Score every signature that could be the comment's. Returns all candidates,
    including those below the threshold, in document order.
    """
    if signatures is None:
        signatures = extract_signatures(code, conventions)
    matching = [s for s in signatures if signature_matches(s, data)]

    candidates = []
    for signature in matching:
        chunk = code[signature.comment_start_index:signature.start_index]
        span = adjust_comment_beginning(
            chunk, signature.comment_start_index, data.level, data.is_opening_section, conventions
        )
        if data.follows_heading:
            if span.has_heading:
                has_headline_matched = float(
                    normalize_code(remove_wiki_markup(span.headline_code))
                    == normalize_code(data.section_headline or "")
                )
            else:
                has_headline_matched = float(MISSING_HEADLINE_PENALTY)
        else:
            has_headline_matched = float(not span.has_heading)

        candidate = MatchCandidate(
            signature=signature,
            span=span,
            word_overlap=calculate_word_overlap(data.text, remove_wiki_markup(span.code)),
            has_previous_comments_data_matched=False,
            has_previous_comment_data_matched=False,
            is_previous_comments_data_equal=False,
            has_headline_matched=has_headline_matched,
            has_id_matched=data.id == signature.id,
        )
        _score_previous_comments(candidate, signatures, data)
        candidates.append(candidate)

    for candidate in candidates:
        candidate.score = _score(candidate, data, len(candidates))
    return candidates


def best_candidate(candidates: List[MatchCandidate]) -> Optional[MatchCandidate]:
    best = None
    for candidate in candidates:
        if best is None or candidate.score > best.score:
            best = candidate
    return best


def locate_comment(
    code: str,
    data: CommentData,
    conventions: "Conventions",
    best_effort: bool = False,
) -> CommentLocation:
    """
    Locate a comment in `code`.

    Args:
        code: Wikitext snapshot to search.
        data: The comment as known from an earlier parse.
        conventions: Wiki conventions.
        best_effort: Return the best candidate even if it scored at or below the
            threshold, flagged is_low_confidence. Only for read-only use.

    Raises:
        TalkError: type "parse", code "locateComment", when nothing qualifies.
    """
    candidates = search_in_code(code, data, conventions)
    qualified = [c for c in candidates if c.score > SCORE_THRESHOLD]
    best = best_candidate(qualified)
    is_low_confidence = False
    if best is None and best_effort:
        best = best_candidate(candidates)
        is_low_confidence = best is not None

    if best is None:
        logger.debug("No match for %s among %d candidates", data.anchor, len(candidates))
        raise TalkError(
            "parse",
            "locateComment",
            "The comment could not be found in the page code",
            anchor=data.anchor,
        )

    logger.debug("Located %s at signature %d (score %.4f)", data.anchor, best.signature.id, best.score)
    location = adjust_comment_code_data(
        code, best.span, best.signature, conventions, data.is_opening_section
    )
    location.score = best.score
    location.is_low_confidence = is_low_confidence
    return location


def locate_section(code: str, data: SectionData, conventions: "Conventions") -> SectionLocation:
    """
    Find a section by its headline in `code`.

    Sections with an equal headline and level are told apart by their ordinal and,
    when known, by the author and timestamp of their first comment.

    Raises:
        TalkError: type "parse", code "locateSection".
    """
    headings = extract_headings(code, conventions)
    wanted = normalize_code(data.headline)
    same = [
        (i, h) for i, h in enumerate(headings)
        if normalize_code(h.headline) == wanted and (not data.level or h.level == data.level)
    ]
    if not same:
        raise TalkError("parse", "locateSection", "The section could not be found in the page code",
                        headline=data.headline)

    signatures = extract_signatures(code, conventions) if data.first_comment else []
    best = None
    best_score = -1.0
    for ordinal, (i, heading) in enumerate(same):
        next_start = headings[i + 1].start_index if i + 1 < len(headings) else len(code)
        score = 0.0
        if ordinal == data.ordinal:
            score += 1
        if data.first_comment:
            first = next((s for s in signatures if s.start_index >= heading.end_index), None)
            if first is not None and first.start_index < next_start and (
                    first.author, first.timestamp) == tuple(data.first_comment):
                score += 2
        if score > best_score:
            best, best_score = i, score

    heading = headings[best]
    end_index = len(code)
    for following in headings[best + 1:]:
        if following.level <= heading.level:
            end_index = following.start_index
            break
    content_end_index = headings[best + 1].start_index if best + 1 < len(headings) else len(code)
    content_end_index = min(content_end_index, end_index)
    return SectionLocation(
        start_index=heading.start_index,
        content_start_index=heading.end_index,
        end_index=end_index,
        content_end_index=content_end_index,
        code=code[heading.start_index:end_index],
        heading_code=code[heading.start_index:heading.end_index],
        level=heading.level,
        headline_code=heading.headline_code,
    )
