"""
Centralized error handling for engine/API failures.
Domain exceptions plus a reusable mapper so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException


class ConfigurationError(RuntimeError):
    """Invocation cannot proceed: missing credential, unreachable store, bad timezone."""


class MalformedEventError(ValueError):
    """
    One upstream availability record could not be parsed. Skip it, keep the batch.
    event_id is set when the record still identifies a session (date, start and name parsed).
    """

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(message)
        self.event_id = event_id


# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_UNAUTHORIZED = 401
STATUS_INTERNAL_ERROR = 500
STATUS_SERVICE_UNAVAILABLE = 503  # store down, channel not configured

MSG_CRON_SECRET_MISSING = "CRON_SECRET is not configured on the server"
MSG_UNAUTHORIZED = "Invalid or missing authentication token"


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code, detail_prefix)
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_store_error(msg: str) -> bool:
    lower = msg.lower()
    return "database" in lower or "store" in lower or "connection" in lower


def _is_channel_error(msg: str) -> bool:
    lower = msg.lower()
    return "telegram" in lower or "bot token" in lower


# List of (predicate, status_code, detail_prefix). First match wins.
CONFIG_ERROR_RULES: list[tuple[Callable[[str], bool], int, str]] = [
    (_is_store_error, STATUS_SERVICE_UNAVAILABLE, "Store unavailable"),
    (_is_channel_error, STATUS_SERVICE_UNAVAILABLE, "Push channel not configured"),
]


def config_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an invocation-level failure into an HTTPException.
    Uses CONFIG_ERROR_RULES for known categories; otherwise returns 500 with the exception message.
    """
    msg = str(exc)
    for predicate, status_code, prefix in CONFIG_ERROR_RULES:
        if predicate(msg):
            return HTTPException(status_code=status_code, detail=f"{prefix}: {msg}")
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=msg)
