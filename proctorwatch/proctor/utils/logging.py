"""
Proctoring Logger - Logs proctoring events and results
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event as a single key=value line.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (session_start, violation, session_end, ...)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, candidate_name: str, assessment_id: Optional[str] = None):
    """Log session start event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={
            "candidate": candidate_name,
            "assessment_id": assessment_id or "none"
        }
    )


def log_session_end(session_id: str, integrity_score: int, flags: list, events: int):
    """Log session end event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "integrity_score": integrity_score,
            "flags": ",".join(flags) if flags else "none",
            "violations": events
        }
    )


def log_violation(session_id: str, kind: str, occurred_at: str):
    """Log an emitted violation"""
    log_proctor_event(
        session_id=session_id,
        event_type="violation",
        details={
            "kind": kind,
            "at": occurred_at
        },
        level="warning"
    )


def log_critical_event(session_id: str, event: str, details: Optional[Dict[str, Any]] = None):
    """Log a critical proctoring event"""
    log_proctor_event(
        session_id=session_id,
        event_type=f"critical_{event}",
        details=details,
        level="warning"
    )
