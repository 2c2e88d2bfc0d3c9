"""
Per-request diagnostic context and structured event logging
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request

logger = logging.getLogger("formrelay.events")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


@dataclass(frozen=True)
class DiagnosticContext:
    timestamp: str
    client_ip: str
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "DiagnosticContext":
        return cls(
            timestamp=utc_timestamp(),
            client_ip=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _log_event(
    level: int,
    event: str,
    message: Optional[str],
    error: Optional[BaseException],
    context: Optional[DiagnosticContext],
    fields: dict[str, Any],
):
    payload = {**(context.to_dict() if context else {}), **fields}
    if error is not None:
        payload["error"] = f"{type(error).__name__}: {error}"

    text = f"{event}: {message}" if message else event
    logger.log(
        level,
        f"{text} {payload}",
        exc_info=error if level >= logging.ERROR and error is not None else None,
        extra={"event": event, "context": payload},
    )


def log_info(event: str, message: str, context: Optional[DiagnosticContext] = None, **fields: Any):
    """
    Log a successful or informational event

    Args:
        event: Short event name (e.g. "Form Submission Success")
        message: Human-readable summary
        context: Request diagnostic context, merged into the payload
        **fields: Extra structured fields (e.g. email)
    """
    _log_event(logging.INFO, event, message, None, context, fields)


def log_error(
    event: str,
    error: Optional[BaseException] = None,
    context: Optional[DiagnosticContext] = None,
    **fields: Any,
):
    """Log a failure; the traceback is attached when an exception is given"""
    _log_event(logging.ERROR, event, None, error, context, fields)
