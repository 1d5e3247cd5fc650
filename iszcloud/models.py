"""
models.py - Data Model
======================
Plain dataclasses shared across the poller:

- User         : one (mobile, code) pair from the config or roster file
- StatusData   : the "data" object of an ISZCloud answer
- StatusRecord : one parsed ISZCloud answer, plus its human-readable form

Example API answer:
-------------------
    {"code": "0", "message": "ok", "success": true,
     "data": {"cityNo": "sz", "address": "...", "mobile": "138...",
              "name": "...", "applyTime": "...", "status": "PAYED",
              "winTime": "...", "expireTime": "...", "sendNo": "SF123"}}
"""

from dataclasses import dataclass, field
import json
from typing import Any, Dict

from .errors import ParseError


# Substrings of data.status that mean the user won the draw
WON_MARKERS = ("PAYED", "SUCC")


@dataclass(frozen=True)
class User:
    """One lottery applicant: the mobile number and the query code."""

    mobile: str
    code: str


def _text(data: Dict[str, Any], key: str) -> str:
    # null or missing reads as ""; any other non-string is a bad answer
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ParseError(f"expected '{key}' to be a string, got {type(value).__name__}")
    return value


def _flag(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ParseError(f"expected '{key}' to be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class StatusData:
    city_no: str = ""
    address: str = ""
    mobile: str = ""
    name: str = ""
    apply_time: str = ""
    status: str = ""
    win_time: str = ""
    expire_time: str = ""
    send_no: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusData":
        return cls(
            city_no=_text(data, "cityNo"),
            address=_text(data, "address"),
            mobile=_text(data, "mobile"),
            name=_text(data, "name"),
            apply_time=_text(data, "applyTime"),
            status=_text(data, "status"),
            win_time=_text(data, "winTime"),
            expire_time=_text(data, "expireTime"),
            send_no=_text(data, "sendNo"),
        )


@dataclass(frozen=True)
class StatusRecord:
    """Result of querying one user."""

    code: str = ""
    message: str = ""
    success: bool = False
    data: StatusData = field(default_factory=StatusData)

    @classmethod
    def from_json(cls, body: bytes | str) -> "StatusRecord":
        """
        Parse a raw ISZCloud response body.

        Missing fields fall back to empty values, so a bare {} parses into a
        record that renders as "try again".

        Raises:
            ParseError: If the body is not JSON, not a JSON object, or a
                        field has the wrong type
        """
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
            raise ParseError(f"invalid JSON response: {e}") from e

        if not isinstance(payload, dict):
            raise ParseError(f"expected a JSON object, got {type(payload).__name__}")

        data = payload.get("data")
        if data is not None and not isinstance(data, dict):
            raise ParseError(f"expected 'data' to be an object, got {type(data).__name__}")

        return cls(
            code=_text(payload, "code"),
            message=_text(payload, "message"),
            success=_flag(payload, "success"),
            data=StatusData.from_dict(data or {}),
        )

    @property
    def is_won(self) -> bool:
        # Case-sensitive substring match
        return self.success and any(marker in self.data.status for marker in WON_MARKERS)

    def __str__(self) -> str:
        d = self.data
        if self.is_won:
            return f"\n[中奖通知]恭喜你抽中奖了\n {d.name} {d.mobile} {d.status} {d.send_no}\n"
        return f"\n[再接再厉] {d.name} {d.mobile} {d.address} {d.status}\n"
