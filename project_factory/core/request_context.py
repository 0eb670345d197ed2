from __future__ import annotations

from contextvars import ContextVar
from typing import Any


_current_request_info: ContextVar[dict[str, Any] | None] = ContextVar(
    "current_request_info",
    default=None,
)


def set_current_request_info(request_info: dict[str, Any] | None) -> None:
    _current_request_info.set(dict(request_info) if request_info else None)


def get_current_request_info() -> dict[str, Any]:
    return dict(_current_request_info.get() or {})


def current_user_uuid(request_info: dict[str, Any] | None = None) -> str:
    info = request_info if request_info is not None else get_current_request_info()
    user = info.get("userInfo") or {}
    return str(user.get("uuid") or "system").strip() or "system"


def current_locale(request_info: dict[str, Any] | None, default: str) -> str:
    info = request_info or {}
    msg_id = str(info.get("msgId") or "")
    # msgId carries "<id>|<locale>" from the admin console.
    if "|" in msg_id:
        locale = msg_id.split("|", 1)[1].strip()
        if locale:
            return locale
    return default
