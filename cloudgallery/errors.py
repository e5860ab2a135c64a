"""Centralised error codes and user-facing error notification helper."""
from enum import Enum

ERROR_TITLE = "That picture didn't develop"


class ErrorCode(str, Enum):
    CFG_APP_KEYS   = "CG-CFG01"
    CFG_PROVIDER   = "CG-CFG02"
    AUTH_EXCHANGE  = "CG-AUTH01"
    AUTH_REFRESH   = "CG-AUTH02"
    AUTH_REAUTH    = "CG-AUTH03"
    AUTH_STATE     = "CG-AUTH04"
    LOOKUP         = "CG-LOOK01"
    NET_LISTING    = "CG-NET01"
    IO_CREDENTIALS = "CG-IO01"
    VAL_REQUEST    = "CG-VAL01"
    APP_UNEXPECTED = "CG-APP01"


_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.CFG_APP_KEYS:   "This account has no app key or secret on file. Add them and try again.",
    ErrorCode.CFG_PROVIDER:   "That provider type is not supported.",
    ErrorCode.AUTH_EXCHANGE:  "The account could not be linked.",
    ErrorCode.AUTH_REFRESH:   "The access token could not be refreshed.",
    ErrorCode.AUTH_REAUTH:    "The account must be authorized again.",
    ErrorCode.AUTH_STATE:     "The authorization response does not match any account.",
    ErrorCode.LOOKUP:         "That account could not be found. The list may be out of date.",
    ErrorCode.NET_LISTING:    "The provider could not be reached. Some photos may be missing.",
    ErrorCode.IO_CREDENTIALS: "The credential file could not be written. Check disk space and permissions.",
    ErrorCode.VAL_REQUEST:    "Please fill in all required fields.",
    ErrorCode.APP_UNEXPECTED: "Something unexpected happened. No credentials were lost.",
}


def app_error(widget, code: ErrorCode, *, detail: str = "") -> None:
    """Show a user-friendly error Toast without crashing the application."""
    base = _MESSAGES.get(code, "An unexpected error occurred.")
    message = f"{base}{' ' + detail if detail else ''}\n\nReference: {code.value}"
    widget.notify(message, title=ERROR_TITLE, severity="error", timeout=12)
