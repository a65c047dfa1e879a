# cadence_cli/api/routes.py
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from cadence_cli.errors import ValidationError
from cadence_cli.service import CadenceService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> CadenceService:
    return request.app.state.service


class SubmitRequest(BaseModel):
    cookie: str = Field(min_length=1)  # credential blob (JSON list of key/value entries)
    url: str = Field(min_length=1)
    amount: int = Field(gt=0)
    interval: float = Field(gt=0, allow_inf_nan=False)


class LoginRequest(BaseModel):
    appstate: str = ""


class ToggleRequest(BaseModel):
    sessionId: str = ""
    enabled: bool = False


class LogoutRequest(BaseModel):
    sessionId: str = ""


@router.get("/total")
def list_jobs(service: CadenceService = Depends(get_service)) -> List[Dict[str, Any]]:
    # "session" is the 1-based position in this listing, not a stable id
    return [
        {
            "session": index,
            "url": record.url,
            "count": record.success_count,
            "id": record.resolved_id,
            "target": record.target_count,
        }
        for index, record in enumerate(service.scheduler.jobs, start=1)
    ]


@router.post("/api/submit")
async def submit(
    req: SubmitRequest,
    request: Request,
    service: CadenceService = Depends(get_service),
):
    handle = await service.submit(req.cookie, req.url, req.amount, req.interval)
    request.state.job_id = handle.job_id
    return {"status": 200, "jobId": handle.job_id}


@router.get("/api/sessions")
def list_sessions(service: CadenceService = Depends(get_service)):
    return [s.to_api() for s in service.sessions.list_all()]


@router.post("/api/guard/login")
async def guard_login(req: LoginRequest, service: CadenceService = Depends(get_service)):
    if not req.appstate:
        raise ValidationError("Missing appstate")

    session = await service.login(req.appstate)
    return {
        "status": 200,
        "sessionId": session.id,
        "userId": session.user_id,
        "message": "Login successful",
    }


@router.post("/api/guard/toggle")
def guard_toggle(req: ToggleRequest, service: CadenceService = Depends(get_service)):
    if not req.sessionId:
        raise ValidationError("Missing sessionId")

    session = service.sessions.set_enabled(req.sessionId, req.enabled)
    return {
        "status": 200,
        "enabled": session.enabled,
        "message": f"Profile guard {'enabled' if session.enabled else 'disabled'}",
    }


@router.post("/api/guard/logout")
def guard_logout(req: LogoutRequest, service: CadenceService = Depends(get_service)):
    if not req.sessionId:
        raise ValidationError("Missing sessionId")

    service.sessions.delete(req.sessionId)
    return {"status": 200, "message": "Logout successful"}


@router.get("/health")
def health(service: CadenceService = Depends(get_service)):
    return {
        "status": "ok",
        "scheduler": service.scheduler.get_status(),
        "sessions": len(service.sessions),
    }
