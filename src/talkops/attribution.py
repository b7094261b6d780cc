"""
talkops/attribution.py - Edit Attribution Search

Finds the revision that added a comment: the comment author's edits within two
minutes of the comment's timestamp are diffed against their predecessors, and the
lines each edit added are compared with the comment's text.

Design Decisions:
    - Diffs are requested in parallel; a failed request is logged and skipped, the
      search only fails when every request failed
    - Added lines are compared both as a whole and one by one (an edit may add
      several comments); the better overlap counts
    - Diffs with templates are rendered to HTML when the overlap is not already
      complete; a failed render keeps the wikitext overlap
    - The best revision has the highest overlap; among equal overlaps the one
      closest to the comment's timestamp wins
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup

from .api import Renderer, Revision, RevisionProvider, revision_window
from .errors import TalkError
from .models import Comment
from .utils import calculate_word_overlap, remove_wiki_markup

logger = logging.getLogger(__name__)

# Signatures show minutes only; the edit was made somewhere within that minute
TIMESTAMP_ROUNDING = timedelta(seconds=30)


@dataclass
class AttributionMatch:
    revision: Revision
    word_overlap: float
    date_proximity: float

    def to_dict(self) -> dict:
        return {
            "revision": self.revision.to_dict(),
            "word_overlap": round(self.word_overlap, 4),
            "date_proximity": self.date_proximity,
        }


def extract_added_lines(diff_html: str) -> List[str]:
    """
    Wikitext of the lines a diff adds without replacing anything. Headings are
    skipped; they are not part of comment text.
    """
    if not diff_html:
        return []
    # Compare bodies are bare table rows
    soup = BeautifulSoup(f"<table>{diff_html}</table>", "lxml")
    added = []
    for row in soup.find_all("tr"):
        if row.find("td", class_="diff-empty") is None:
            continue
        cell = row.find("td", class_="diff-addedline")
        if cell is None:
            continue
        text = cell.get_text()
        if not text or text.startswith("="):
            continue
        added.append(text)
    return added


def html_to_text(html: str) -> str:
    return BeautifulSoup(html, "lxml").get_text(" ")


def _fetch_diffs(
    provider: RevisionProvider,
    title: str,
    revisions: List[Revision],
    max_workers: int,
) -> Dict[int, str]:
    diffs: Dict[int, str] = {}
    # Use ThreadPoolExecutor for parallel requests
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_revision = {
            executor.submit(provider.get_diff, title, revision.revid): revision
            for revision in revisions
        }
        for future in as_completed(future_to_revision):
            revision = future_to_revision[future]
            try:
                diffs[revision.revid] = future.result()
            except TalkError as e:
                logger.warning("Diff request for revision %s failed: %s", revision.revid, e)
    return diffs


def score_revision(
    revision: Revision,
    diff_html: str,
    comment_text: str,
    date: datetime,
    title: str,
    renderer: Optional[Renderer] = None,
) -> Optional[AttributionMatch]:
    """Score one revision's diff; None when the diff adds nothing."""
    lines = extract_added_lines(diff_html)
    original_text = "\n".join(lines)
    if not original_text.strip():
        return None

    best_part = 0.0
    parts = []
    for line in lines:
        part = remove_wiki_markup(line)
        best_part = max(best_part, calculate_word_overlap(part, comment_text))
        parts.append(part)
    word_overlap = max(calculate_word_overlap("\n".join(parts), comment_text), best_part)

    if word_overlap < 1 and "{{" in original_text and renderer is not None:
        try:
            rendered = html_to_text(renderer.render_to_html(original_text, title))
        except TalkError as e:
            logger.warning("Rendering the diff of revision %s failed: %s", revision.revid, e)
        else:
            word_overlap = calculate_word_overlap(rendered, comment_text)

    proximity = abs((date + TIMESTAMP_ROUNDING - revision.timestamp).total_seconds())
    return AttributionMatch(revision=revision, word_overlap=word_overlap, date_proximity=proximity)


def find_adding_edit(
    comment_text: str,
    author: str,
    date: datetime,
    title: str,
    provider: RevisionProvider,
    renderer: Optional[Renderer] = None,
    max_workers: int = 10,
) -> AttributionMatch:
    """
    Find the revision that added a comment.

    Args:
        comment_text: Comment text followed by its signature text.
        author: Comment author.
        date: Comment date.
        title: Page title.
        provider: Revision and diff source.
        renderer: Optional wikitext renderer for diffs with templates.
        max_workers: Parallel diff requests.

    Raises:
        TalkError: "api"/"noData" without revisions in the window, "network" when
            every diff request failed, "parse"/"noMatch" when no diff adds anything.
    """
    start, end = revision_window(date)
    revisions = provider.list_revisions(title, author, start, end)
    if not revisions:
        raise TalkError("api", "noData", "No edits by the author around the comment's time",
                        author=author)

    diffs = _fetch_diffs(provider, title, revisions, max_workers)
    if not diffs:
        raise TalkError("network", "diffs", "None of the diffs could be loaded", author=author)

    best: Optional[AttributionMatch] = None
    for revision in revisions:
        if revision.revid not in diffs:
            continue
        match = score_revision(revision, diffs[revision.revid], comment_text, date, title, renderer)
        if match is None:
            continue
        if (
            best is None
            or match.word_overlap > best.word_overlap
            or (match.word_overlap == best.word_overlap and match.date_proximity < best.date_proximity)
        ):
            best = match

    if best is None:
        raise TalkError("parse", "noMatch", "No edit adding the comment was found", author=author)
    logger.debug("Comment by %s attributed to revision %s", author, best.revision.revid)
    return best


def find_comment_adding_edit(
    comment: Comment,
    title: str,
    provider: RevisionProvider,
    renderer: Optional[Renderer] = None,
) -> AttributionMatch:
    if comment.date is None:
        raise TalkError("parse", "noDate", "The comment has no date", anchor=comment.anchor)
    text = f"{comment.text} {comment.signature_text}"
    return find_adding_edit(text, comment.author, comment.date, title, provider, renderer)


def diff_link(server: str, title: str, revision_id: int, short: bool = False) -> str:
    """Link to the diff of a revision, e.g. https://en.wikipedia.org/?diff=123."""
    server = server.rstrip("/")
    if server.startswith("//"):
        server = "https:" + server
    if short:
        return f"{server}/?diff={revision_id}"
    return f"{server}/w/index.php?title={quote(title.replace(' ', '_'))}&diff={revision_id}"
