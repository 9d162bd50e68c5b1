"""HTTP API endpoints for recording sessions."""

import logging

from fastapi import APIRouter, Depends

from scenably.recorder.codegen import render_transcript
from scenably.recorder.supervisor import headless_generate

from .models import HeadlessRequest, RecordingStartRequest, RecordingStopRequest
from .services import Services, get_services

logger = logging.getLogger("scenably.supervisor.api_recording")

router = APIRouter(prefix="/recording")


def _headless_payload(url: str) -> dict:
    script = headless_generate(url)
    return {
        "mode": "headless",
        "script": script.to_dict(),
        "code": render_transcript(script),
        "message": "Navigation template generated",
    }


@router.post("/start")
async def start_recording(request: RecordingStartRequest, services: Services = Depends(get_services)):
    """Start (or join) an interactive recording, or return a headless template."""
    if request.mode == "headless":
        return _headless_payload(request.url)
    session_id = await services.registry.start(request.url)
    session = services.registry.get_status(session_id)
    return {
        "mode": "interactive",
        "session_id": session_id,
        "status": session.status.value,
        "message": session.message,
    }


@router.post("/stop")
async def stop_recording(request: RecordingStopRequest, services: Services = Depends(get_services)):
    script, message = await services.registry.stop(request.session_id, request.save)
    session = services.registry.get_status(request.session_id)
    return {
        "session_id": request.session_id,
        "status": session.status.value,
        "script": script.to_dict() if script is not None else None,
        "code": render_transcript(script) if script is not None else None,
        "message": message,
    }


@router.post("/headless")
async def headless_recording(request: HeadlessRequest):
    return _headless_payload(request.url)


@router.get("/{session_id}")
async def recording_status(session_id: str, services: Services = Depends(get_services)):
    return services.registry.get_status(session_id).to_dict()


@router.post("/{session_id}/complete")
async def complete_recording(session_id: str, services: Services = Depends(get_services)):
    return services.registry.mark_completed(session_id).to_dict()
