"""
talkops/masking.py - Hiding Opaque Wikitext Regions

Signatures and indentation are found with line-oriented regular expressions, which
misfire inside HTML comments, <nowiki>/<pre> blocks, templates and tables. This module
hides such regions before scanning.

Two flavours are provided:

    mask_code(): length-preserving. Every hidden region becomes "\\x01" + spaces + "\\x02"
        (indentation characters in front of closed discussions become "\\x01"), so every
        index found in the masked text is valid in the original. Reversal is simply
        slicing the original text with those indices.

    hide_sensitive_code() / unhide_text(): placeholder-based. Regions are replaced by
        "\\x01N_kind\\x02" keys and restored verbatim later, in the manner of the
        [refN] placeholders used for references. Used when converting comment code to
        editable text and back.

Spans come from wikitextparser, the same parser used for everything else in talkops.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

import wikitextparser as wtp

if TYPE_CHECKING:
    from .conventions import Conventions

MASK_START = "\x01"
MASK_END = "\x02"

# Tags whose content is never wikitext
OPAQUE_TAGS = frozenset({
    "nowiki", "pre", "syntaxhighlight", "source", "math", "templatedata",
    "score", "timeline", "graph", "chem", "ce", "hiero", "code",
})

HIDDEN_PLACEHOLDER = re.compile(r"\x01(\d+)_(\w+)\x02")

Span = Tuple[int, int]


def outermost_spans(spans: Iterable[Span]) -> List[Span]:
    """Drop spans nested inside (or overlapping the start of) an earlier one."""
    result: List[Span] = []
    for start, end in sorted(spans):
        if result and start < result[-1][1]:
            if end > result[-1][1]:
                result[-1] = (result[-1][0], end)
            continue
        result.append((start, end))
    return result


def _fill(length: int) -> str:
    if length <= 0:
        return ""
    if length == 1:
        return MASK_START
    return MASK_START + " " * (length - 2) + MASK_END


def apply_mask(code: str, spans: Iterable[Span]) -> str:
    """Replace each span by a same-length placeholder."""
    chars = list(code)
    for start, end in outermost_spans(spans):
        chars[start:end] = _fill(end - start)
    return "".join(chars)


def comment_spans(parsed: wtp.WikiText) -> List[Span]:
    return [c.span for c in parsed.comments]


def tag_spans(parsed: wtp.WikiText, names: Optional[Iterable[str]] = None) -> List[Span]:
    names = OPAQUE_TAGS if names is None else frozenset(n.lower() for n in names)
    return [t.span for t in parsed.get_tags() if (t.name or "").lower() in names]


def template_spans(parsed: wtp.WikiText, predicate=None) -> List[Span]:
    spans = []
    for template in parsed.templates:
        if predicate is None or predicate(template.name):
            spans.append(template.span)
    return spans


def table_spans(parsed: wtp.WikiText) -> List[Span]:
    return [t.span for t in parsed.get_tables(recursive=False)]


def mask_code(
    code: str,
    conventions: Optional["Conventions"] = None,
    *,
    comments: bool = True,
    tags: bool = True,
    unsigned_templates: bool = False,
    templates: bool = False,
    tables: bool = False,
    closed_discussions: bool = False,
) -> str:
    """
    Return a same-length copy of `code` with distracting regions masked.

    Args:
        code: Wikitext.
        conventions: Needed for unsigned_templates and closed_discussions.
        comments: Mask HTML comments.
        tags: Mask the content of non-wikitext tags (<nowiki>, <pre>, ...).
        unsigned_templates: Mask "unsigned" templates (their arguments look like signatures).
        templates: Mask all templates.
        tables: Mask all tables.
        closed_discussions: Mask closed-discussion blocks, keeping their indentation
            characters visible as "\\x01".
    """
    if not code:
        return code
    parsed = wtp.parse(code)
    spans: List[Span] = []
    if comments:
        spans += comment_spans(parsed)
    if tags:
        spans += tag_spans(parsed)
    if templates:
        spans += template_spans(parsed)
    elif unsigned_templates and conventions is not None:
        spans += template_spans(parsed, conventions.is_unsigned_template)
    if tables:
        spans += table_spans(parsed)
    masked = apply_mask(code, spans)
    if closed_discussions and conventions is not None:
        masked = mask_closed_discussions(masked, conventions)
    return masked


def _closed_fill(indentation: str, length: int) -> str:
    if length <= len(indentation):
        return MASK_START * length
    return MASK_START * len(indentation) + " " * (length - len(indentation) - 1) + MASK_END


def mask_closed_discussions(code: str, conventions: "Conventions") -> str:
    """
    Mask closed discussions: paired opening/closing templates and single templates
    wrapping the whole discussion. Line breaks inside them disappear, so the block
    reads as one line whose indentation characters are "\\x01".
    """
    pair_regexp = conventions.closed_discussion_pair_regexp
    if pair_regexp is not None:
        code = pair_regexp.sub(lambda m: _closed_fill(m.group(1), len(m.group(0))), code)

    single_regexp = conventions.closed_discussion_single_regexp
    if single_regexp is None:
        return code
    opening_names = {n.lower() for n in conventions.closed_discussion_templates[0]}
    parsed = wtp.parse(code)
    spans = []
    for template in parsed.templates:
        if template.name.strip().replace("_", " ").lower() not in opening_names:
            continue
        start, end = template.span
        line_start = code.rfind("\n", 0, start) + 1
        prefix = code[line_start:start]
        if not single_regexp.match(code, line_start) or prefix.strip(" :*#") != "":
            continue
        indentation = prefix.replace(" ", "")
        spans.append((line_start, end, indentation))
    chars = list(code)
    for start, end, indentation in sorted(spans, reverse=True):
        chars[start:end] = _closed_fill(indentation, end - start)
    return "".join(chars)


def hide_sensitive_code(code: str, hidden: Optional[List[str]] = None) -> Tuple[str, List[str]]:
    """
    Replace templates, tags, tables and comments with numbered placeholders.

    Returns:
        (hidden_code, hidden) where hidden[N] is the original text of placeholder N.
        Table placeholders stand on their own kind ("table") so that line logic can
        tell them apart from inline blocks.
    """
    hidden = [] if hidden is None else hidden
    parsed = wtp.parse(code)
    spans = []
    spans += [(s, e, "block") for s, e in comment_spans(parsed)]
    spans += [(t.span[0], t.span[1], "block") for t in parsed.get_tags()
              if (t.name or "").lower() in OPAQUE_TAGS]
    spans += [(s, e, "template") for s, e in template_spans(parsed)]
    spans += [(s, e, "table") for s, e in table_spans(parsed)]

    kept: List[Tuple[int, int, str]] = []
    for start, end, kind in sorted(spans):
        if kept and start < kept[-1][1]:
            continue
        kept.append((start, end, kind))

    replacements = []
    for start, end, kind in kept:
        hidden.append(code[start:end])
        replacements.append((start, end, f"{MASK_START}{len(hidden) - 1}_{kind}{MASK_END}"))

    # Apply from the end so that earlier indices stay valid
    result = code
    for start, end, placeholder in reversed(replacements):
        result = result[:start] + placeholder + result[end:]
    return result, hidden


def unhide_text(text: str, hidden: List[str]) -> str:
    """Restore placeholders produced by hide_sensitive_code(); unknown ones are kept."""
    def _repl(match: re.Match) -> str:
        index = int(match.group(1))
        if index < len(hidden):
            return hidden[index]
        return match.group(0)

    return HIDDEN_PLACEHOLDER.sub(_repl, text)
