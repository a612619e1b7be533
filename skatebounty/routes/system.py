from __future__ import annotations
from fastapi import APIRouter, Request
from datetime import datetime, timezone
from skatebounty.config import settings

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
    }

@router.get("/policy")
async def policy():
    """Which verification policy this deployment runs with."""
    return {
        "require_acceptance_before_submission": settings.require_acceptance_before_submission,
        "submission_timestamp_mode": settings.submission_timestamp_mode,
        "allow_free_text_rewards": settings.allow_free_text_rewards,
        "verified_vote_threshold": settings.verified_vote_threshold,
        "realtime_tables": settings.realtime_tables,
    }
