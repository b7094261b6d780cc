# talkops/snapshots.py
# Persisted comment snapshots, safe paths, atomic writes and change detection

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from .models import PageModel
from .utils import normalize_code, slugify_title

SNAPSHOT_FILENAME = "comments.json"

# Hex digits of the title hash appended to every snapshot directory name
TITLE_HASH_LENGTH = 12


@dataclass
class ChangeReport:
    """Anchors of comments that appeared, changed or disappeared since the snapshot."""
    new: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"new": self.new, "changed": self.changed, "deleted": self.deleted}


def snapshot_slug(title: str) -> str:
    """
    Directory name for a page's snapshot: the readable ASCII slug of the title
    followed by a hash of the full title, e.g. "talk-foo-1b2c3d4e5f60".

    The slug drops non-ASCII characters, so titles in other scripts are told apart
    by the hash alone. Spaces and underscores in the title are equivalent.
    """
    normalized = normalize_code(title)
    digest = hashlib.sha1(normalized.encode("utf-8")).hexdigest()[:TITLE_HASH_LENGTH]
    slug = slugify_title(normalized)
    return f"{slug}-{digest}" if slug else digest


def safe_page_path(root: Path, slug: str) -> Optional[Path]:
    """
    The page directory for a slug directly under root, or None if the slug is
    empty or would leave the root directory.
    """
    if not slug or slug in (".", "..") or "/" in slug or "\\" in slug:
        return None
    try:
        resolved = (root / slug).resolve()
        if resolved.parent != root.resolve():
            return None
    except (OSError, ValueError):
        return None
    return resolved


def atomic_write(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write content through a temporary file in the same directory, then rename it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
        os.replace(temp_path, path)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data: dict) -> None:
    """
    Write JSON content to a file atomically.
    """
    content = json.dumps(data, ensure_ascii=False, indent=2)
    atomic_write(path, content)


def snapshot_path(root: Path, title: str) -> Optional[Path]:
    page_path = safe_page_path(root, snapshot_slug(title))
    if page_path is None:
        return None
    return page_path / SNAPSHOT_FILENAME


def build_snapshot(page: PageModel, seen: Optional[Iterable[str]] = None, previous: Optional[dict] = None) -> dict:
    """
    Snapshot of the page's comment texts keyed by anchor. Anchors in `seen`, and
    anchors already seen in `previous`, are marked as seen.
    """
    seen = set(seen or ())
    previous_comments = (previous or {}).get("comments", {})
    comments = {}
    for comment in page.comments:
        was_seen = previous_comments.get(comment.anchor, {}).get("seen", False)
        comments[comment.anchor] = {
            "text": comment.text,
            "seen": was_seen or comment.anchor in seen or comment.is_own,
        }
    return {
        "title": page.title,
        "revision_id": page.revision_id,
        "updated_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "comments": comments,
    }


def load_snapshot(root: Path, title: str) -> Optional[dict]:
    """The stored snapshot of a page, or None if there is none (or it is unreadable)."""
    path = snapshot_path(root, title)
    if path is None or not path.exists():
        return None
    try:
        return read_json(path)
    except (json.JSONDecodeError, OSError):
        return None


def save_snapshot(root: Path, page: PageModel, seen: Optional[Iterable[str]] = None) -> Path:
    """
    Store the page's snapshot, keeping what was already marked seen.

    Raises:
        ValueError: If the page has no title or the title gives no safe path.
    """
    if not page.title:
        raise ValueError("A page title is required to store a snapshot")
    path = snapshot_path(root, page.title)
    if path is None:
        raise ValueError("Invalid snapshot path")
    write_json(path, build_snapshot(page, seen, load_snapshot(root, page.title)))
    return path


def detect_changes(page: PageModel, snapshot: Optional[dict]) -> ChangeReport:
    """
    Set the lifecycle flags of the page's comments from a stored snapshot.

    Inactive pages keep all flags None. Without a snapshot (first visit) nothing is
    considered new or changed.
    """
    report = ChangeReport()
    if not page.is_active:
        for comment in page.comments:
            comment.is_new = comment.is_seen = comment.is_changed = comment.is_deleted = None
        return report

    previous = (snapshot or {}).get("comments")
    for comment in page.comments:
        comment.is_deleted = False
        if previous is None:
            comment.is_new, comment.is_seen, comment.is_changed = False, True, False
            continue
        stored = previous.get(comment.anchor)
        if stored is None:
            comment.is_new = True
            comment.is_seen = comment.is_own
            comment.is_changed = False
            report.new.append(comment.anchor)
        else:
            comment.is_new = False
            comment.is_seen = bool(stored.get("seen", True))
            comment.is_changed = stored.get("text") != comment.text
            if comment.is_changed:
                report.changed.append(comment.anchor)

    if previous is not None:
        current = {c.anchor for c in page.comments}
        report.deleted = [anchor for anchor in previous if anchor not in current]
    return report


def list_snapshots(root: Path) -> list:
    """
    List pages with a stored snapshot, most recently updated first.

    Returns a list of dicts with page info.
    """
    pages = []

    if not root.exists():
        return pages

    for item in root.iterdir():
        snapshot_file = item / SNAPSHOT_FILENAME
        if item.is_dir() and snapshot_file.exists():
            try:
                snapshot = read_json(snapshot_file)
            except (json.JSONDecodeError, OSError):
                # Skip unreadable snapshots
                continue
            pages.append({
                "slug": item.name,
                "title": snapshot.get("title") or item.name,
                "revision_id": snapshot.get("revision_id"),
                "updated_at": snapshot.get("updated_at", ""),
                "comments_count": len(snapshot.get("comments", {})),
            })

    # Sort by updated_at descending (most recent first)
    pages.sort(key=lambda p: p.get("updated_at", ""), reverse=True)

    return pages
