# talkops/spans.py
# Derivation of a comment's body span from the text between two signatures

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional

from .conventions import PAIRED_INLINE_ELEMENTS
from .models import CommentLocation, CommentSpan, SignatureOccurrence

if TYPE_CHECKING:
    from .conventions import Conventions

# Last heading in a chunk of code, with everything before it
LAST_HEADING = re.compile(r"(^[\s\S]*(?:^|\n))((=+)(.*?)\3[ \t\x01\x02]*\n)")
LINES_WITH_NEWLINE = re.compile(r"^(.+)\n", re.MULTILINE)
LINK_LABEL = re.compile(r"\[\[:?(?:[^|\[\]<>\n]+\|)?(.+?)\]\]")
LEADING_INDENTATION = re.compile(r"^()([:*#]+)( *)")
# Indentation after foreign code, when no non-indented line follows
LATE_INDENTATION = re.compile(r"(^[\s\S]*?(?:^|\n))([:*#]+)( *)(?![\s\S]*\n[^:*#])")

SIGNATURE_TAGS = re.compile(r"(?:<(?:" + PAIRED_INLINE_ELEMENTS + r")(?: [\w ]+?=[^<>]+?)?> *)+$", re.IGNORECASE)
AUTOSIGNED_SMALL = re.compile(r'<small class="autosigned">.*$')
UNSIGNED_COMMENT = re.compile(r"<!-- *Template:Unsigned.*$")
LAST_LINE_INDENTATION = re.compile(r"\n([:*#]*[:*])[^\n]*\Z")


def _strip_previous_signature_lines(code: str, conventions: "Conventions") -> int:
    """
    Length of the leading part of `code` that ends with a line looking like the end of
    another signature (3 or 5 tildes instead of 4 leave such fragments behind).
    """
    shift = 0
    for pattern in (conventions.signature_ending_regexp, conventions.timezone_regexp):
        if pattern is None:
            continue
        regexp = re.compile("(?:" + pattern.pattern + ")$")
        indent = 0
        for line_match in LINES_WITH_NEWLINE.finditer(code):
            line = LINK_LABEL.sub(r"\1", line_match.group(1))
            if regexp.search(line):
                if line_match.end() == len(code):
                    break
                indent = line_match.end()
        if indent:
            code = code[indent:]
            shift += indent
    return shift


def adjust_comment_beginning(
    code: str,
    start_index: int,
    level: int,
    is_opening_section: bool,
    conventions: "Conventions",
) -> CommentSpan:
    """
    Cut the leading parts that do not belong to a comment out of the code preceding
    its signature.

    `code` starts at `start_index` in the page and ends where the signature starts.
    A heading inside it ends everything before; without a heading, leftovers of a
    previous signature, boilerplate beginnings and (for indented comments) the
    indentation characters are removed.
    """
    span = CommentSpan(code=code, start_index=start_index, line_start_index=start_index)

    heading = LAST_HEADING.match(code)
    if heading:
        span.heading_start_index = start_index + len(heading.group(1))
        span.heading_level = len(heading.group(3))
        span.headline_code = heading.group(4).strip()
        span.start_index = start_index + heading.end()
        span.code = code[heading.end():]
        span.line_start_index = span.heading_start_index if is_opening_section else span.start_index
        return span

    shift = _strip_previous_signature_lines(span.code, conventions)
    if shift:
        span.code = span.code[shift:]
        span.start_index += shift
        span.line_start_index += shift

    for pattern in conventions.bad_comment_beginning_regexps:
        match = pattern.match(span.code)
        if match:
            span.code = span.code[match.end():]
            span.line_start_index = span.start_index + match.group(0).rfind("\n") + 1
            span.start_index += match.end()

    # A level 0 comment may start with ":" indenting a side note
    if level > 0:
        match = LEADING_INDENTATION.match(span.code)
        if not match:
            match = LATE_INDENTATION.match(span.code)
        if match:
            _apply_indentation(span, match, level)
    return span


def _apply_indentation(span: CommentSpan, match: re.Match, level: int) -> None:
    before, chars, after = match.group(1), match.group(2), match.group(3)
    remainder = ""
    shift = match.end()
    if "\n" in span.code and chars.endswith("#"):
        # A numbered list inside the comment, not part of the indentation
        chars = chars[:-1]
        span.original_indentation_chars = chars
        if len(chars) < level:
            chars += ":"
        shift -= 1 + len(after)
        remainder = "#" + after
    else:
        span.original_indentation_chars = chars
    span.indentation_chars = chars
    span.line_start_index = span.start_index + len(before)
    span.start_index += shift
    span.code = remainder + span.code[match.end():]


def _move_to_signature(code: str, signature_code: str, regexp: Optional[re.Pattern]):
    if regexp is None:
        return code, signature_code
    match = regexp.search(code)
    if not match or match.end() != len(code):
        return code, signature_code
    return code[:match.start()], match.group(0) + signature_code


def adjust_comment_code_data(
    page_code: str,
    span: CommentSpan,
    signature: SignatureOccurrence,
    conventions: "Conventions",
    is_opening_section: bool = False,
) -> CommentLocation:
    """
    Finish a comment location: move signature prefixes and wrapping tags from the
    body to the signature, detect small-font wrapping and work out the indentation
    characters of a reply.

    The body always satisfies code == page_code[start_index:end_index].
    """
    code = span.code
    signature_dirty_code = signature.dirty_code
    for regexp in (
        conventions.signature_prefix_regexp,
        SIGNATURE_TAGS,
        conventions.signature_prefix_regexp,
        SIGNATURE_TAGS,
        AUTOSIGNED_SMALL,
        UNSIGNED_COMMENT,
        conventions.signature_prefix_regexp,
    ):
        code, signature_dirty_code = _move_to_signature(code, signature_dirty_code, regexp)

    start_index = span.start_index
    end_index = start_index + len(code)
    signature_code = signature_dirty_code
    small_wrapper_start = ""
    for start_regexp, end_regexp in conventions.small_wrapper_regexps:
        start_match = start_regexp.match(code)
        end_match = end_regexp.search(signature_code)
        if start_match and end_match:
            small_wrapper_start = start_match.group(0)
            start_index += len(small_wrapper_start)
            signature_code = signature_code[:end_match.start()]
            break

    original_indentation_chars = span.original_indentation_chars
    reply_indentation_chars = original_indentation_chars
    if not is_opening_section:
        # The last line of a comment, unless it ends a numbered list, shows how replies
        # to it are indented
        match = LAST_LINE_INDENTATION.search(code + signature_dirty_code)
        if match:
            reply_indentation_chars = match.group(1)
            if len(reply_indentation_chars) < len(original_indentation_chars):
                # The first line's extra characters serve another purpose; keep them in
                # the body
                extra = original_indentation_chars[len(reply_indentation_chars):]
                prefix = extra + (" " if conventions.space_after_indentation_chars else "")
                if page_code[start_index - len(prefix):start_index] != prefix:
                    prefix = extra
                start_index -= len(prefix)
                original_indentation_chars = original_indentation_chars[:len(reply_indentation_chars)]
    reply_indentation_chars += conventions.default_indentation_char

    return CommentLocation(
        code=page_code[start_index:end_index],
        start_index=start_index,
        end_index=end_index,
        line_start_index=span.line_start_index,
        signature_end_index=signature.end_index,
        signature_dirty_code=signature_dirty_code,
        signature_code=signature_code,
        indentation_chars=span.indentation_chars,
        original_indentation_chars=original_indentation_chars,
        reply_indentation_chars=reply_indentation_chars,
        small_wrapper_start=small_wrapper_start,
        in_small_font=bool(small_wrapper_start),
        heading_start_index=span.heading_start_index,
        heading_level=span.heading_level,
        headline_code=span.headline_code,
        signature_id=signature.id,
    )
