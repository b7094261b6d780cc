# talkops/composer.py
# Conversion between comment wikitext and the plain text a user edits

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .masking import hide_sensitive_code, unhide_text

if TYPE_CHECKING:
    from .conventions import Conventions

BR_LINE = re.compile(r"^(?![:*# ]).*<br[ \n]*/?>.*$", re.MULTILINE | re.IGNORECASE)
BR_TAG = re.compile(r"<br[ \n]*/?>\n? *", re.IGNORECASE)
CONTINUATION_INDENTATION = re.compile(r"\n([:*#]*[:*])([ \t]*)")
PARAGRAPH_BREAKS = re.compile(r"\n\n+")
SIGNATURE_TILDES = re.compile(r"\s*~{3,5}\s*$")


def code_to_text(code: str, original_indentation_chars: str, level: int, conventions: "Conventions") -> str:
    """
    Make comment code editable: <br> becomes a line break, the comment's own
    indentation characters are dropped from continuation lines and paragraph
    templates become blank lines. Templates, tags and tables are left untouched.
    """
    hidden_code, hidden = hide_sensitive_code(code)

    text = BR_LINE.sub(lambda m: BR_TAG.sub("\n", m.group(0)), hidden_code)

    def _strip_indentation(match: re.Match) -> str:
        chars, spacing = match.group(1), match.group(2)
        own = len(original_indentation_chars)
        if len(chars) >= own:
            new_chars = chars[own:]
            if len(chars) > own:
                new_chars += spacing
        else:
            new_chars = chars + spacing
        return "\n" + new_chars

    text = CONTINUATION_INDENTATION.sub(_strip_indentation, text)
    text = unhide_text(text, hidden)

    paragraph_regexp = conventions.paragraph_template_regexp
    if paragraph_regexp is not None:
        text = re.sub(
            r"^(?![:*#]).*" + paragraph_regexp.pattern,
            lambda m: paragraph_regexp.sub("\n\n", m.group(0)),
            text,
            flags=re.MULTILINE,
        )

    if level != 0:
        text = PARAGRAPH_BREAKS.sub("\n\n", text)
    return text.strip()


def text_to_code(text: str, indentation_chars: str, conventions: "Conventions") -> str:
    """
    Compose comment code (without the signature) from edited text.

    In an indented comment every line has to start with the indentation characters to
    stay in the list item; a blank line becomes the first paragraph template, or a
    continuation line when the wiki has none.
    """
    hidden_text, hidden = hide_sensitive_code(text.strip())
    hidden_text = SIGNATURE_TILDES.sub("", hidden_text)

    if indentation_chars:
        space = " " if conventions.space_after_indentation_chars else ""
        if conventions.paragraph_templates:
            hidden_text = PARAGRAPH_BREAKS.sub("{{" + conventions.paragraph_templates[0] + "}}", hidden_text)
        else:
            hidden_text = PARAGRAPH_BREAKS.sub("\n", hidden_text)

        def _indent(match: re.Match) -> str:
            rest = match.group(1)
            if rest[:1] in (":", "*", "#"):
                return "\n" + indentation_chars + rest
            return "\n" + indentation_chars + space + rest

        hidden_text = re.sub(r"\n(.*)", _indent, hidden_text)

    return unhide_text(hidden_text, hidden)


def compose_reply(
    text: str,
    reply_indentation_chars: str,
    conventions: "Conventions",
    signature: str = "~~~~",
) -> str:
    """One reply line (or block of lines), without a trailing newline."""
    body = text_to_code(text, reply_indentation_chars, conventions)
    space = " " if conventions.space_after_indentation_chars else ""
    return f"{reply_indentation_chars}{space}{body} {signature}"
