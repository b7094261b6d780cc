from __future__ import annotations

import re
import unicodedata
from typing import List

import wikitextparser as wtp

# Runs of two or more letters (any script)
WORD_PATTERN = re.compile(r"[^\W\d_]{2,}")

INDENTATION_AT_LINE_START = re.compile(r"^[:*#;]+[ \t]*", re.MULTILINE)
HEADING_MARKUP = re.compile(r"^(=+)[ \t]*(.*?)[ \t]*\1[ \t]*$", re.MULTILINE)


def remove_wiki_markup(code: str) -> str:
    """
    Reduce wikitext to the words a reader would see.

    Links become their labels, templates, tags and comments disappear, bold and
    italics are unwrapped, indentation and heading markup is dropped, and all
    whitespace is collapsed.
    """
    if not code:
        return ""
    # Masking placeholders never carry words
    code = code.replace("\x01", " ").replace("\x02", " ")
    text = wtp.parse(code).plain_text()
    text = HEADING_MARKUP.sub(r"\2", text)
    text = INDENTATION_AT_LINE_START.sub("", text)
    text = text.replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


def normalize_code(code: str) -> str:
    """Collapse whitespace and underscores so headlines compare equal across edits."""
    return re.sub(r"[\s_]+", " ", code or "").strip()


def words(text: str) -> List[str]:
    """Unique lower-cased words of the text, in order of first appearance."""
    seen = []
    for word in WORD_PATTERN.findall((text or "").lower()):
        if word not in seen:
            seen.append(word)
    return seen


def calculate_word_overlap(text1: str, text2: str) -> float:
    """
    Share of unique words two texts have in common (0 to 1).

    The ratio is |common| / |union| over words of at least two letters; an empty
    side yields 0.
    """
    words1 = words(text1)
    words2 = set(words(text2))
    if not words1 or not words2:
        return 0.0
    total = len(words2)
    overlap = 0
    for word in words1:
        if word in words2:
            overlap += 1
        else:
            total += 1
    return overlap / total


def normalize_user_name(name: str) -> str:
    """Canonical MediaWiki user name: underscores to spaces, first letter upper-cased."""
    name = re.sub(r"[\s_]+", " ", name or "").strip()
    return name[:1].upper() + name[1:]


def slugify_title(title: str) -> str:
    """
    Convert a title to a safe slug for use as a file or folder name.

    - Normalize Unicode to NFKD form
    - Convert to lowercase
    - Replace spaces and special characters with hyphens
    - Allow only alphanumeric, hyphen, and underscore
    - Remove consecutive hyphens
    - Strip leading/trailing hyphens
    """
    # Normalize Unicode characters
    normalized = unicodedata.normalize("NFKD", title)

    # Encode to ASCII, ignoring non-ASCII characters
    ascii_str = normalized.encode("ascii", "ignore").decode("ascii")

    # Convert to lowercase
    lower = ascii_str.lower()

    # Replace any non-alphanumeric characters with hyphen
    slug = re.sub(r"[^a-z0-9_]+", "-", lower)

    # Remove consecutive hyphens
    slug = re.sub(r"-+", "-", slug)

    # Strip leading/trailing hyphens
    slug = slug.strip("-")

    return slug
