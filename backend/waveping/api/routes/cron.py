"""
Cron trigger API: reminders, digests and schedule refresh.

Every route requires Authorization: Bearer <CRON_SECRET>. Each call is one stateless
invocation; overlapping calls are safe (database uniqueness guards every write).
"""
import hmac
import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field, model_validator

from waveping.config import settings
from waveping.core.constants import DIGEST_TYPES
from waveping.core.errors import (
    MSG_CRON_SECRET_MISSING,
    MSG_UNAUTHORIZED,
    STATUS_INTERNAL_ERROR,
    STATUS_UNAUTHORIZED,
    config_error_to_http,
)
from waveping.scheduler import digest_job, refresh_job, reminder_job
from waveping.services.changes import Acquisition

router = APIRouter()
logger = logging.getLogger(__name__)


def require_cron_secret(authorization: str | None = Header(None)) -> None:
    secret = settings.cron_secret
    if not secret:
        logger.error("Cron trigger called but CRON_SECRET is not set")
        raise HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=MSG_CRON_SECRET_MISSING)
    supplied = (authorization or "").strip()
    if not hmac.compare_digest(supplied.encode(), f"Bearer {secret}".encode()):
        logger.warning("Rejected cron trigger with bad credentials")
        raise HTTPException(status_code=STATUS_UNAUTHORIZED, detail=MSG_UNAUTHORIZED)


def _run(job_name: str, fn, *args) -> dict[str, Any]:
    try:
        return fn(*args)
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("%s invocation failed: %s", job_name, exc)
        raise config_error_to_http(exc) from exc


# --- Reminders ---


@router.api_route("/send-notifications", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
def send_notifications() -> dict[str, Any]:
    """Send every lead-time reminder whose window is currently open."""
    summary = _run("reminders", reminder_job.run_reminder_job)
    return {"ok": True, **summary}


# --- Digests ---


@router.api_route("/digest/{digest_type}", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
def send_digest(digest_type: str) -> dict[str, Any]:
    digest_type = digest_type.strip().lower()
    if digest_type not in DIGEST_TYPES:
        raise HTTPException(status_code=400, detail=f"digest_type must be one of {', '.join(DIGEST_TYPES)}")
    summary = _run("digest", digest_job.run_digest_job, digest_type)
    return {"ok": True, **summary}


# --- Schedule refresh ---


class RefreshScheduleBody(BaseModel):
    start_date: date
    end_date: date
    events: list[Any] = Field(default_factory=list, description="Raw upstream session records")

    @model_validator(mode="after")
    def check_range(self) -> "RefreshScheduleBody":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


@router.post("/refresh-schedule", dependencies=[Depends(require_cron_secret)])
def refresh_schedule(body: RefreshScheduleBody) -> dict[str, Any]:
    """
    Apply one acquisition of the upstream calendar for start_date..end_date and send
    change-triggered alerts. Sessions in the range that are not listed are marked cancelled.
    """
    acquisition = Acquisition(body.start_date, body.end_date, list(body.events))
    result = _run("refresh", refresh_job.run_refresh_job, acquisition)
    return {"ok": True, **result}
