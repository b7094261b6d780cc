# talkops/indentation.py
# Line scanner for indentation markup

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

INDENTATION_CHARS = ":*#"
# "\x01" stands for the indentation of masked closed discussions
MASKED_INDENTATION_CHARS = INDENTATION_CHARS + "\x01"

_INDENTATION = re.compile(r"[:*#]*")
_MASKED_INDENTATION = re.compile(r"[:*#\x01]*")
_HEADING = re.compile(r"^(=+)(.*?)\1[ \t\x01\x02]*$")


class LineState(enum.Enum):
    BLANK = "blank"
    HEADING = "heading"
    OUTSIDE_LIST = "outside-list"
    IN_LIST = "in-list"
    IN_MASKED_SPAN = "in-masked-span"


@dataclass(frozen=True)
class Line:
    """One line of (possibly masked) wikitext. `end` excludes the newline."""
    start: int
    end: int
    text: str
    indentation: str
    state: LineState
    has_newline: bool

    @property
    def level(self) -> int:
        """Nesting depth the line's markers denote (0 outside lists)."""
        return len(self.indentation.replace("\x01", ":")) if self.state in (
            LineState.IN_LIST, LineState.IN_MASKED_SPAN) else 0

    @property
    def content(self) -> str:
        return self.text[len(self.indentation):]

    @property
    def next_start(self) -> int:
        return self.end + 1 if self.has_newline else self.end


def classify(text: str) -> LineState:
    if not text.strip():
        return LineState.BLANK
    if text.startswith("\x01"):
        return LineState.IN_MASKED_SPAN
    if _HEADING.match(text):
        return LineState.HEADING
    if text[0] in INDENTATION_CHARS:
        return LineState.IN_LIST
    return LineState.OUTSIDE_LIST


def scan_lines(code: str, start: int = 0, end: Optional[int] = None) -> Iterator[Line]:
    """
    Yield the lines of code[start:end] with their indentation state.

    The first line may begin in the middle of a physical line; indices are absolute.
    """
    end = len(code) if end is None else end
    position = start
    while position < end:
        newline = code.find("\n", position, end)
        has_newline = newline != -1
        line_end = newline if has_newline else end
        text = code[position:line_end]
        state = classify(text)
        if state == LineState.IN_MASKED_SPAN:
            indentation = _MASKED_INDENTATION.match(text).group(0)
        elif state == LineState.IN_LIST:
            indentation = _INDENTATION.match(text).group(0)
        else:
            indentation = ""
        yield Line(position, line_end, text, indentation, state, has_newline)
        if not has_newline:
            break
        position = line_end + 1


def lines(code: str, start: int = 0, end: Optional[int] = None) -> List[Line]:
    return list(scan_lines(code, start, end))


def line_start(code: str, index: int) -> int:
    return code.rfind("\n", 0, index) + 1


def line_end(code: str, index: int) -> int:
    newline = code.find("\n", index)
    return len(code) if newline == -1 else newline


def comment_level(body_code: str) -> int:
    """
    Nesting level of a comment body: the number of indentation markers on its first
    line. A trailing "#" on a multi-line body starts a numbered list inside the comment
    and does not count.
    """
    first = next((l for l in scan_lines(body_code) if l.state != LineState.BLANK), None)
    if first is None or first.state != LineState.IN_LIST:
        return 0
    chars = first.indentation
    if chars.endswith("#") and "\n" in body_code.strip("\n") and len(chars) > 1:
        chars = chars[:-1]
    return len(chars)


def stops_reply_chain(line: Line, max_length: int) -> bool:
    """
    Whether a line can follow the place where a reply of indentation length
    max_length + 1 is inserted: it is indented no deeper than max_length, or a
    numbered list starts within that depth.
    """
    prefix = _MASKED_INDENTATION.match(line.text).group(0)
    if len(prefix) <= max_length:
        return True
    return any(prefix[k] == "#" for k in range(1, max_length + 1))
