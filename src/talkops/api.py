# talkops/api.py
# Collaborator interfaces and a MediaWiki Action API client over requests

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Protocol, Tuple

import requests

from .errors import TalkError

logger = logging.getLogger(__name__)

# MediaWiki API endpoint URL (configurable for testing)
DEFAULT_API_URL = "https://en.wikipedia.org/w/api.php"

# User-Agent header for API requests
# Following Wikimedia's User-Agent policy: https://meta.wikimedia.org/wiki/User-Agent_policy
USER_AGENT = "TalkPages/1.0 (https://github.com/MrIbrahem/WikiHelper; talk page comment engine)"


class SaveStatus(enum.Enum):
    SUCCESS = "success"
    EDIT_CONFLICT = "edit_conflict"
    ERROR = "error"


@dataclass
class Revision:
    revid: int
    timestamp: datetime
    user: str = ""
    comment: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Revision":
        return cls(
            revid=int(data["revid"]),
            timestamp=datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00")),
            user=data.get("user", ""),
            comment=data.get("comment", ""),
        )

    def to_dict(self) -> dict:
        return {
            "revid": self.revid,
            "timestamp": self.timestamp.isoformat(),
            "user": self.user,
            "comment": self.comment,
        }


@dataclass
class PageSource:
    title: str
    code: str
    revision_id: Optional[int] = None


class PageSourceProvider(Protocol):
    def get_page_wikitext(self, title: str, revision_id: Optional[int] = None) -> str: ...


class RevisionProvider(Protocol):
    def list_revisions(self, title: str, author: str, start: datetime, end: datetime) -> List[Revision]: ...

    def get_diff(self, title: str, from_revision: int, to_revision: Optional[int] = None) -> str: ...


class Renderer(Protocol):
    def render_to_html(self, code: str, title: str) -> str: ...


class SaveProvider(Protocol):
    def save_page(self, title: str, code: str, summary: str,
                  base_revision_id: Optional[int] = None) -> SaveStatus: ...


def validate_page_title(title: str, max_length: int = 255) -> Tuple[bool, Optional[str]]:
    """
    Validate a page title.

    Returns:
        Tuple of (is_valid, error_message):
        - On success: (True, None)
        - On failure: (False, error_message)
    """
    if not title or not title.strip():
        return False, "Page title is required"

    title = title.strip()

    if len(title) > max_length:
        return False, f"Page title must be {max_length} characters or less"

    # MediaWiki doesn't allow certain characters in titles
    invalid_chars = ["#", "<", ">", "[", "]", "|", "{", "}"]
    for char in invalid_chars:
        if char in title:
            return False, f"Page title contains invalid character: {char}"

    return True, None


class MediaWikiClient:
    """
    Minimal MediaWiki Action API client implementing all collaborator protocols.

    Transport failures raise TalkError(type="network"); "error" objects in API
    responses raise TalkError(type="api") with the API's error code.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def _request(self, method: str, params: dict) -> dict:
        # formatversion=2 provides cleaner response format with consistent data types
        params = {"format": "json", "formatversion": "2", **params}
        try:
            if method == "POST":
                response = self.session.post(self.api_url, data=params, timeout=self.timeout)
            else:
                response = self.session.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise TalkError("network", "timeout", "Request timed out. Please try again.") from e
        except requests.exceptions.ConnectionError as e:
            raise TalkError("network", "connection", "Failed to connect to the wiki API.") from e
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else "unknown"
            raise TalkError("network", "http", f"The wiki API returned an error (HTTP {status_code}).",
                            status=status_code) from e
        except requests.exceptions.RequestException as e:
            raise TalkError("network", "request", "Failed to reach the wiki API.") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TalkError("api", "invalidjson", "Received invalid response from the wiki API.") from e

        if "error" in data:
            error = data["error"]
            raise TalkError("api", error.get("code", "unknown"), error.get("info", "Unknown error"),
                            info=error.get("info"))
        return data

    def get_page_source(self, title: str, revision_id: Optional[int] = None) -> PageSource:
        params = {"action": "parse", "prop": "wikitext|revid"}
        if revision_id:
            params["oldid"] = revision_id
        else:
            params["page"] = title.strip()
        data = self._request("GET", params)
        parse = data.get("parse") or {}
        if "wikitext" not in parse:
            raise TalkError("api", "nowikitext", "Could not extract wikitext from the response")
        return PageSource(title=parse.get("title", title), code=parse["wikitext"],
                          revision_id=parse.get("revid"))

    def get_page_wikitext(self, title: str, revision_id: Optional[int] = None) -> str:
        return self.get_page_source(title, revision_id).code

    def list_revisions(self, title: str, author: str, start: datetime, end: datetime) -> List[Revision]:
        data = self._request("GET", {
            "action": "query",
            "prop": "revisions",
            "titles": title,
            "rvprop": "ids|comment|timestamp|user",
            "rvdir": "newer",
            "rvstart": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "rvend": end.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "rvuser": author,
            "rvlimit": "500",
        })
        pages = data.get("query", {}).get("pages", [])
        if not pages or pages[0].get("missing"):
            raise TalkError("api", "missingtitle", f"Page '{title}' not found")
        return [Revision.from_api(r) for r in pages[0].get("revisions", [])]

    def get_diff(self, title: str, from_revision: int, to_revision: Optional[int] = None) -> str:
        params = {"action": "compare", "fromrev": from_revision, "prop": "diff"}
        if to_revision:
            params["torev"] = to_revision
        else:
            params["torelative"] = "prev"
        data = self._request("POST", params)
        return data.get("compare", {}).get("body", "")

    def render_to_html(self, code: str, title: str) -> str:
        data = self._request("POST", {
            "action": "parse",
            "text": code,
            "title": title,
            "prop": "text",
            "pst": "1",
            "disablelimitreport": "1",
        })
        return data.get("parse", {}).get("text", "")

    def get_csrf_token(self) -> str:
        data = self._request("GET", {"action": "query", "meta": "tokens", "type": "csrf"})
        return data["query"]["tokens"]["csrftoken"]

    def save_page(self, title: str, code: str, summary: str,
                  base_revision_id: Optional[int] = None) -> SaveStatus:
        params = {
            "action": "edit",
            "title": title,
            "text": code,
            "summary": summary,
            "token": self.get_csrf_token(),
        }
        if base_revision_id:
            params["baserevid"] = base_revision_id
        try:
            data = self._request("POST", params)
        except TalkError as e:
            if e.type == "api" and e.code == "editconflict":
                return SaveStatus.EDIT_CONFLICT
            raise
        result = data.get("edit", {}).get("result")
        if result == "Success":
            return SaveStatus.SUCCESS
        logger.warning("Edit of %s was not saved: %s", title, data.get("edit"))
        return SaveStatus.ERROR

    def thank(self, revision_id: int) -> None:
        self._request("POST", {
            "action": "thank",
            "rev": revision_id,
            "source": "talkpages",
            "token": self.get_csrf_token(),
        })


def revision_window(date: datetime, minutes: int = 2) -> Tuple[datetime, datetime]:
    return date - timedelta(minutes=minutes), date + timedelta(minutes=minutes)
