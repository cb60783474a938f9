"""
Proctoring Logger - One-line `[PROCTOR]` records for session lifecycle and alerts

Every record reads `[PROCTOR] session=<id> event=<name> key=value ...` so
a session can be followed with grep.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def format_proctor_event(
    session_id: Optional[str],
    event_type: str,
    details: Optional[Dict[str, Any]] = None
) -> str:
    parts = [f"[PROCTOR] session={session_id or '-'} event={event_type}"]
    for key, value in (details or {}).items():
        parts.append(f"{key}={value}")
    return " ".join(parts)


def log_proctor_event(
    session_id: Optional[str],
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID (None before the first start)
        event_type: session_start, alert, session_end, critical_*, ...
        details: Extra key=value pairs appended to the record
        level: debug, info, warning or error
    """
    logger.log(_LEVELS.get(level, logging.INFO), format_proctor_event(session_id, event_type, details))


def log_session_start(session_id: str, width: int, height: int):
    log_proctor_event(session_id, "session_start", {"resolution": f"{width}x{height}"})


def log_session_end(session_id: str, stats: Dict[str, int]):
    log_proctor_event(session_id, "session_end", stats)


def log_alert_emitted(session_id: Optional[str], text: str):
    """Blank-outs are only interesting when debugging."""
    if text:
        log_proctor_event(session_id, "alert", {"text": repr(text)})
    else:
        log_proctor_event(session_id, "alert_cleared", level="debug")


def log_critical_event(session_id: Optional[str], event: str, details: Optional[Dict[str, Any]] = None):
    log_proctor_event(session_id, f"critical_{event}", details, level="warning")
