# talkops/errors.py
# Typed failure raised by the engine and the API client

from __future__ import annotations

from typing import Any, Dict, Optional

PARSE = "parse"
API = "api"
NETWORK = "network"

ERROR_TYPES = (PARSE, API, NETWORK)


class TalkError(Exception):
    """
    Failure of an engine operation or of an external collaborator.

    Attributes:
        type: One of "parse" (extraction, matching or a mutation guard failed),
              "api" (the wiki answered with an application-level error) or
              "network" (transport failure).
        code: Machine-readable reason, e.g. "locateComment" or "delete-repliesToComment".
        message: Human-readable description.
        details: Context for user-facing messages (action, anchor, API info...).
    """

    def __init__(
        self,
        type: str,
        code: Optional[str] = None,
        message: Optional[str] = None,
        **details: Any,
    ) -> None:
        if type not in ERROR_TYPES:
            raise ValueError(f"Unknown error type: {type}")
        self.type = type
        self.code = code
        self.message = message or code or type
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        data = {"type": self.type, "code": self.code, "message": self.message}
        if self.details:
            data["details"] = {k: v for k, v in self.details.items() if v is not None}
        return data

    def __repr__(self) -> str:
        return f"TalkError(type={self.type!r}, code={self.code!r})"
