"""Translation of the provider's call vocabulary into ours.

The two lookups deliberately fall back in opposite directions: an unknown
session status keeps the call visible as ``ringing`` while an unknown CDR
disposition is recorded as ``FAILED``.
"""

from typing import Literal

SessionStatus = Literal["ringing", "connected", "answered", "completed", "failed", "busy"]
Disposition = Literal["ANSWER", "BUSY", "CANCEL", "FAILED", "CONGESTION", "NOANSWER"]

ACTIVE_STATUSES: tuple[SessionStatus, ...] = ("ringing", "connected")
DISPOSITIONS: tuple[Disposition, ...] = (
    "ANSWER",
    "BUSY",
    "CANCEL",
    "FAILED",
    "CONGESTION",
    "NOANSWER",
)

DEFAULT_SESSION_STATUS: SessionStatus = "ringing"
DEFAULT_DISPOSITION: Disposition = "FAILED"

_SESSION_STATUS_MAP: dict[str, SessionStatus] = {
    "ringing": "ringing",
    "connected": "connected",
    "processing": "ringing",
    "answer": "answered",
    "answered": "answered",
    "new": "ringing",
    "noanswer": "failed",
    "busy": "busy",
    "nocredit": "failed",
    "cancel": "failed",
    "external": "failed",
    "error": "failed",
    "completed": "completed",
    "failed": "failed",
}

_DISPOSITION_MAP: dict[str, Disposition] = {
    "CONNECTED": "ANSWER",
    "ANSWERED": "ANSWER",
    "ANSWER": "ANSWER",
    "BUSY": "BUSY",
    "CANCEL": "CANCEL",
    "FAILED": "FAILED",
    "CONGESTION": "CONGESTION",
    "NOANSWER": "NOANSWER",
    "NO ANSWER": "NOANSWER",
}


def map_session_status(provider_status: str) -> SessionStatus:
    """Map a session-update ``status``; exact match, unknown values become ringing."""
    return _SESSION_STATUS_MAP.get(provider_status, DEFAULT_SESSION_STATUS)


def map_disposition(provider_disposition: str) -> Disposition:
    """Map a CDR ``disposition``; case-insensitive, unknown values become FAILED."""
    return _DISPOSITION_MAP.get(provider_disposition.upper(), DEFAULT_DISPOSITION)
