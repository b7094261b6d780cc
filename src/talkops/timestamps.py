# talkops/timestamps.py
# Locale-aware signature timestamps: pattern building and parsing

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from .conventions import Conventions


def _alternation(names) -> str:
    return "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))


def build_timestamp_pattern(conventions: "Conventions") -> str:
    """
    Turn a MediaWiki date format string into a regex with one named group per code.

    Supported codes: H i (hour, minute), j d (day), n m F M (month), Y (year),
    D l (weekday, matched but not used). Any other character is literal.
    """
    codes = {
        "H": r"(?P<H>\d\d)",
        "G": r"(?P<H>\d{1,2})",
        "i": r"(?P<i>\d\d)",
        "j": r"(?P<j>\d{1,2})",
        "d": r"(?P<j>\d\d)",
        "n": r"(?P<n>\d{1,2})",
        "m": r"(?P<n>\d\d)",
        "F": "(?P<F>" + _alternation(conventions.months) + ")",
        "M": "(?P<M>" + _alternation(conventions.months_short) + ")",
        "Y": r"(?P<Y>\d{4})",
        "D": "(?:" + _alternation(conventions.weekdays_short) + ")",
        "l": "(?:" + _alternation(conventions.weekdays) + ")",
    }
    parts = []
    for char in conventions.date_format:
        if char in codes:
            parts.append(codes[char])
        elif char == " ":
            parts.append(r"[ \xa0]")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def date_from_match(match: re.Match, conventions: "Conventions") -> Optional[datetime]:
    """Resolve a timestamp match into an aware UTC datetime, or None if it is not a real date."""
    groups = match.groupdict()
    try:
        year = int(groups["Y"])
        if groups.get("n"):
            month = int(groups["n"])
        elif groups.get("F"):
            month = conventions.months.index(groups["F"]) + 1
        elif groups.get("M"):
            month = conventions.months_short.index(groups["M"]) + 1
        else:
            return None
        day = int(groups["j"])
        hour = int(groups["H"])
        minute = int(groups["i"])
        local = datetime(year, month, day, hour, minute, tzinfo=ZoneInfo(conventions.timezone))
    except (KeyError, TypeError, ValueError):
        return None
    return local.astimezone(timezone.utc)


def parse_timestamp(text: str, conventions: "Conventions") -> Optional[datetime]:
    """
    Parse a signature timestamp. The timezone suffix is optional so that dates given
    to "unsigned" templates can be parsed too.
    """
    match = conventions.timestamp_without_timezone_regexp.search(text or "")
    if not match:
        return None
    return date_from_match(match, conventions)


def format_timestamp(date: datetime, conventions: "Conventions") -> str:
    """Render a date the way signatures on this wiki show it (inverse of parse_timestamp)."""
    local = date.astimezone(ZoneInfo(conventions.timezone))
    weekday = local.weekday()
    out = []
    for char in conventions.date_format:
        if char == "H":
            out.append(f"{local.hour:02d}")
        elif char == "G":
            out.append(str(local.hour))
        elif char == "i":
            out.append(f"{local.minute:02d}")
        elif char == "j":
            out.append(str(local.day))
        elif char == "d":
            out.append(f"{local.day:02d}")
        elif char == "n":
            out.append(str(local.month))
        elif char == "m":
            out.append(f"{local.month:02d}")
        elif char == "F":
            out.append(conventions.months[local.month - 1])
        elif char == "M":
            out.append(conventions.months_short[local.month - 1])
        elif char == "Y":
            out.append(str(local.year))
        elif char == "D":
            out.append(conventions.weekdays_short[weekday])
        elif char == "l":
            out.append(conventions.weekdays[weekday])
        else:
            out.append(char)
    return "".join(out) + f" ({conventions.timezone_abbreviation})"


def iso_minute(date: datetime) -> str:
    """Compact ISO form used in anchors: 2021-01-05T12:34Z."""
    return date.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%MZ")


def parse_iso_minute(text: str) -> Optional[datetime]:
    try:
        return datetime.strptime(text, "%Y-%m-%dT%H:%MZ").replace(tzinfo=timezone.utc)
    except ValueError:
        return None
