"""
talkops/conventions.py - Per-wiki Talk Page Conventions

Wikis differ in how people sign, indent and close discussions. Everything the engine
needs to know about those habits is collected in a Conventions object that callers
inject; nothing community-specific is hardcoded in the scanners.

Three presets mirror the configurations the engine was tuned against:
    - "mw": mediawiki.org style, English dates ("12:34, 5 January 2021 (UTC)")
    - "meta": Meta-Wiki style, English dates, more closed-discussion templates
    - "ja": Japanese Wikipedia style ("2021年1月5日 (火) 12:34 (UTC)")

Example:
    >>> conventions = get_preset("mw")
    >>> conventions.timestamp_regexp.search("Hi 12:34, 5 January 2021 (UTC)") is not None
    True
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields, replace
from functools import cached_property
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple

ENGLISH_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
ENGLISH_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Paired inline elements that may wrap a signature
PAIRED_INLINE_ELEMENTS = (
    "b|bdi|bdo|big|cite|code|data|del|dfn|em|font|i|ins|kbd|mark|q|s|samp|small|"
    "span|strike|strong|sub|sup|time|tt|u|var"
)


def first_char_insensitive(name: str) -> str:
    """Regex for a page name whose first letter may be in either case."""
    name = name.strip()
    if not name:
        return ""
    first = name[0]
    # Spaces and underscores are interchangeable in page names
    rest = "[ _]".join(re.escape(part) for part in re.split(r"[ _]", name[1:]))
    if first.lower() != first.upper():
        return f"[{first.upper()}{first.lower()}]{rest}"
    return re.escape(first) + rest


def names_pattern(names: List[str]) -> str:
    return "|".join(first_char_insensitive(n) for n in names if n.strip())


@dataclass(frozen=True)
class Conventions:
    """Option bag describing a wiki community's talk page conventions."""

    unsigned_templates: List[str] = field(default_factory=lambda: ["Unsigned", "Unsigned2", "Unsigned IP"])
    paragraph_templates: List[str] = field(default_factory=list)
    outdent_templates: List[str] = field(default_factory=lambda: ["outdent", "od"])
    clear_templates: List[str] = field(default_factory=lambda: ["Clear", "Clr", "-"])
    # (opening names, closing names)
    closed_discussion_templates: Tuple[List[str], List[str]] = field(
        default_factory=lambda: (["Archive top", "Hidden archive top"], ["Archive bottom", "Hidden archive bottom"])
    )
    small_div_templates: List[str] = field(default_factory=lambda: ["smalldiv", "small div"])

    signature_prefix_pattern: str = r"(?:\s[-–—―]+\xa0?[-–—―]*\s*|\s+)$"
    signature_ending_pattern: Optional[str] = r" \(talk\)$"
    bad_comment_beginnings: List[str] = field(default_factory=lambda: [
        r"^<!--[\s\S]*?-->[ \t]*\n+",
        r"^(?:----+|<hr ?/?>)[ \t]*\n+",
        r"^\[\[(?:File|Image):.+\]\][ \t]*\n+",
    ])
    keep_in_section_ending: List[str] = field(default_factory=lambda: [
        r"\n{2,}(?:<!--[^\n]*?-->\s*)+$",
        r"\n+(?:<!--[^\n]*?-->\s*)+$",
    ])

    default_indentation_char: str = ":"
    space_after_indentation_chars: bool = True

    user_namespaces: List[str] = field(default_factory=lambda: ["User", "User talk", "U", "UT"])
    contributions_page: str = "Special:Contributions"

    # MediaWiki date format codes: H i j d n m F M Y D l
    date_format: str = "H:i, j F Y"
    months: List[str] = field(default_factory=lambda: list(ENGLISH_MONTHS))
    months_short: List[str] = field(default_factory=lambda: [m[:3] for m in ENGLISH_MONTHS])
    weekdays: List[str] = field(default_factory=lambda: list(ENGLISH_WEEKDAYS))
    weekdays_short: List[str] = field(default_factory=lambda: [d[:3] for d in ENGLISH_WEEKDAYS])
    timezone: str = "UTC"
    timezone_abbreviation: str = "UTC"

    # Characters before a timestamp searched for a user link
    signature_scan_limit: int = 100

    @classmethod
    def from_dict(cls, data: dict, base: Optional["Conventions"] = None) -> "Conventions":
        """Build conventions from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "closed_discussion_templates" in values:
            opening, closing = values["closed_discussion_templates"]
            values["closed_discussion_templates"] = (list(opening), list(closing))
        if base is not None:
            return replace(base, **values)
        return cls(**values)

    # Derived patterns

    @cached_property
    def timestamp_regexp(self) -> Pattern[str]:
        from .timestamps import build_timestamp_pattern

        return re.compile(build_timestamp_pattern(self) + r"[ \xa0]\(" + re.escape(self.timezone_abbreviation) + r"\)")

    @cached_property
    def timestamp_without_timezone_regexp(self) -> Pattern[str]:
        from .timestamps import build_timestamp_pattern

        return re.compile(build_timestamp_pattern(self))

    @cached_property
    def timezone_regexp(self) -> Pattern[str]:
        return re.compile(r"\(" + re.escape(self.timezone_abbreviation) + r"\)")

    @cached_property
    def user_link_regexp(self) -> Pattern[str]:
        namespaces = names_pattern(self.user_namespaces)
        contributions = first_char_insensitive(self.contributions_page)
        return re.compile(
            r"\[\[:?(?:(?:" + namespaces + r") *: *([^|\]\[#/\n<>{}]+)"
            r"|" + contributions + r"/([^|\]\[#\n<>{}]+))[^\]\n]*\]\]",
            re.IGNORECASE,
        )

    @cached_property
    def unsigned_template_regexp(self) -> Optional[Pattern[str]]:
        if not self.unsigned_templates:
            return None
        return re.compile(r"\{\{ *(?:" + names_pattern(self.unsigned_templates) + r") *\|[^}\n]*\}\}")

    @cached_property
    def signature_prefix_regexp(self) -> Optional[Pattern[str]]:
        return re.compile(self.signature_prefix_pattern) if self.signature_prefix_pattern else None

    @cached_property
    def signature_ending_regexp(self) -> Optional[Pattern[str]]:
        return re.compile(self.signature_ending_pattern) if self.signature_ending_pattern else None

    @cached_property
    def bad_comment_beginning_regexps(self) -> List[Pattern[str]]:
        clear = names_pattern(self.clear_templates)
        patterns = list(self.bad_comment_beginnings)
        if clear:
            patterns.append(r"^\{\{ *(?:" + clear + r") *\}\}[ \t]*\n+")
        return [re.compile(p, re.IGNORECASE) for p in patterns]

    @cached_property
    def keep_in_section_ending_regexps(self) -> List[Pattern[str]]:
        return [re.compile(p) for p in self.keep_in_section_ending]

    @cached_property
    def closed_discussion_pair_regexp(self) -> Optional[Pattern[str]]:
        opening, closing = self.closed_discussion_templates
        if not opening or not closing:
            return None
        return re.compile(
            r"^([:*#]*) *\{\{ *(?:" + names_pattern(opening) + r") *(?=[|}])[\s\S]*?"
            r"\{\{ *(?:" + names_pattern(closing) + r") *(?=[|}])[^}]*\}\}",
            re.MULTILINE,
        )

    @cached_property
    def closed_discussion_single_regexp(self) -> Optional[Pattern[str]]:
        opening, _ = self.closed_discussion_templates
        if not opening:
            return None
        return re.compile(
            r"^([:*#]*) *(?=\{\{ *(?:" + names_pattern(opening) + r") *\|)",
            re.MULTILINE,
        )

    @cached_property
    def paragraph_template_regexp(self) -> Optional[Pattern[str]]:
        if not self.paragraph_templates:
            return None
        return re.compile(r"\{\{ *(?:" + names_pattern(self.paragraph_templates) + r") *\}\}")

    @cached_property
    def outdent_template_regexp(self) -> Optional[Pattern[str]]:
        if not self.outdent_templates:
            return None
        return re.compile(r"^\{\{ *(?:" + names_pattern(self.outdent_templates) + r") *(?:\|[^}]*)?\}\}", re.MULTILINE)

    @cached_property
    def small_wrapper_regexps(self) -> List[Tuple[Pattern[str], Pattern[str]]]:
        wrappers = [(re.compile(r"^<small>", re.IGNORECASE), re.compile(r"</small>[ \xa0\t]*$", re.IGNORECASE))]
        if self.small_div_templates:
            wrappers.append((
                re.compile(r"^\{\{ *(?:" + names_pattern(self.small_div_templates) + r") *\|(?: *1 *= *|(?![^{]*=))"),
                re.compile(r"\}\}[ \xa0\t]*$"),
            ))
        return wrappers

    def is_unsigned_template(self, name: str) -> bool:
        normalized = _normalize_template_name(name)
        return any(normalized == _normalize_template_name(n) for n in self.unsigned_templates)

    def is_small_div_template(self, name: str) -> bool:
        normalized = _normalize_template_name(name)
        return any(normalized == _normalize_template_name(n) for n in self.small_div_templates)


def _normalize_template_name(name: str) -> str:
    name = name.strip().replace("_", " ")
    name = re.sub(r"^[Tt]emplate *:", "", name).strip()
    return name[:1].upper() + name[1:]


PRESETS: Dict[str, dict] = {
    "mw": {
        "unsigned_templates": ["Unsigned", "Nosig", "Unsigned IP", "Unsigned2", "Unsignedr", "Nosigr"],
        "outdent_templates": ["outdent"],
        "clear_templates": ["Clear", "Clr", "-"],
        "closed_discussion_templates": (["Hidden archive top"], ["Hidden archive bottom"]),
        "signature_ending_pattern": r" \(talk\)$",
    },
    "meta": {
        "unsigned_templates": ["Unsigned", "Unsigned3", "Unsigned2", "Unsigned IP", "Unsigned-ip", "UnsignedIP"],
        "paragraph_templates": ["pb", "Paragraph break"],
        "outdent_templates": ["outdent", "Unindent", "Od", "OUTDENT"],
        "clear_templates": ["Clear", "Br"],
        "closed_discussion_templates": (
            ["Closed", "Discussion top", "Dt", "Archive top", "Hidden archive top", "Hat"],
            ["Discussion bottom", "Archive bottom", "Hidden archive bottom", "Hab"],
        ),
    },
    "ja": {
        "unsigned_templates": [
            "Unsigned", "無署名", "Unsig", "Unsigned2", "署名補完", "Unsigned/old",
            "Unsigned-IPuser", "Unsigip", "署名補完/IP", "Unsigned-IPuser2", "Unsignedip2",
        ],
        "paragraph_templates": ["pb", "Paragraph break"],
        "outdent_templates": ["outdent", "Od", "インデント戻し"],
        "clear_templates": ["Clear", "Clr", "-", "Br", "Clear both"],
        "closed_discussion_templates": (
            ["古い話題のはじめ", "Archive top", "Atop", "Vfd top"],
            ["Archive bottom", "Abtm", "Abot", "Vfd bottom"],
        ),
        "signature_ending_pattern": r"（会話）$",
        "user_namespaces": ["User", "User talk", "利用者", "利用者‐会話", "利用者・トーク"],
        "contributions_page": "特別:投稿記録",
        "date_format": "Y年n月j日 (D) H:i",
        "weekdays": ["月曜日", "火曜日", "水曜日", "木曜日", "金曜日", "土曜日", "日曜日"],
        "weekdays_short": ["月", "火", "水", "木", "金", "土", "日"],
        "months": [f"{i}月" for i in range(1, 13)],
        "months_short": [f"{i}月" for i in range(1, 13)],
    },
}


def get_preset(name: str) -> Conventions:
    """Return the named preset. Raises KeyError for unknown names."""
    return Conventions.from_dict(PRESETS[name])


def load_conventions(name: str = "mw", path: Optional[Path] = None) -> Conventions:
    """
    Load a preset and optionally override its fields from a JSON file.

    Args:
        name: Preset name ("mw", "meta", "ja").
        path: Optional JSON file whose keys are Conventions field names.
    """
    conventions = get_preset(name)
    if path is not None:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        conventions = Conventions.from_dict(data, base=conventions)
    return conventions
