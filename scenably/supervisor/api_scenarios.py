"""HTTP API endpoints for scenarios and their executions."""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from scenably.errors import ScenablyError
from scenably.models import Scenario, new_id, utc_now
from scenably.recorder.codegen import render_transcript, transform_transcript
from scenably.recorder.script import ActionScript
from scenably.recorder.supervisor import headless_generate
from scenably.recorder.urls import normalize_target_url

from .models import ScenarioCreate, ScenarioUpdate
from .services import Services, get_services

logger = logging.getLogger("scenably.supervisor.api_scenarios")

router = APIRouter()


def _resolve_script(script: Optional[Dict[str, Any]], transcript: Optional[str]) -> Optional[ActionScript]:
    """Return the script described by a request body, preferring an explicit transcript."""
    if transcript is not None:
        return transform_transcript(transcript)
    if script is not None:
        try:
            return ActionScript.from_dict(script)
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=f"invalid script: {exc}") from exc
    return None


@router.get("/scenarios")
async def list_scenarios(services: Services = Depends(get_services)):
    return [scenario.to_dict() for scenario in await services.store.list_scenarios()]


@router.post("/scenarios", status_code=201)
async def create_scenario(request: ScenarioCreate, services: Services = Depends(get_services)):
    """Persist a new scenario from a script, a raw transcript, or a navigation template."""
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    target_url = normalize_target_url(request.target_url)
    script = _resolve_script(request.script, request.transcript)
    if script is None:
        script = headless_generate(target_url)
    now = utc_now()
    scenario = await services.store.save_scenario(
        Scenario(
            id=new_id(),
            name=name,
            description=request.description,
            target_url=target_url,
            script=script,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("Created scenario %s with %d actions", scenario.id, len(scenario.script))

    if request.session_id:
        try:
            services.registry.mark_completed(request.session_id)
        except ScenablyError as exc:
            logger.warning("Could not mark recording session %s completed: %s", request.session_id, exc.message)
    return scenario.to_dict()


@router.get("/scenarios/{scenario_id}")
async def get_scenario(scenario_id: str, services: Services = Depends(get_services)):
    return (await services.store.load_scenario(scenario_id)).to_dict()


@router.put("/scenarios/{scenario_id}")
async def update_scenario(scenario_id: str, request: ScenarioUpdate, services: Services = Depends(get_services)):
    """Overwrite scenario fields; a new script replaces the old one wholesale."""
    existing = await services.store.load_scenario(scenario_id)
    changes: Dict[str, Any] = {"updated_at": utc_now()}
    if request.name is not None:
        if not request.name.strip():
            raise HTTPException(status_code=400, detail="name is required")
        changes["name"] = request.name.strip()
    if request.description is not None:
        changes["description"] = request.description
    if request.target_url is not None:
        changes["target_url"] = normalize_target_url(request.target_url)
    script = _resolve_script(request.script, request.transcript)
    if script is not None:
        changes["script"] = script
    scenario = await services.store.save_scenario(replace(existing, **changes))
    return scenario.to_dict()


@router.delete("/scenarios/{scenario_id}")
async def delete_scenario(scenario_id: str, services: Services = Depends(get_services)):
    await services.store.load_scenario(scenario_id)
    await services.store.delete_scenario(scenario_id)
    return {"status": "deleted", "id": scenario_id}


@router.get("/scenarios/{scenario_id}/code")
async def scenario_code(scenario_id: str, services: Services = Depends(get_services)):
    scenario = await services.store.load_scenario(scenario_id)
    return {"id": scenario.id, "code": render_transcript(scenario.script)}


@router.post("/scenarios/{scenario_id}/execute", status_code=202)
async def execute_scenario(scenario_id: str, services: Services = Depends(get_services)):
    """Start an on-demand execution; poll /executions/{id} for the outcome."""
    scenario = await services.store.load_scenario(scenario_id)
    result = await services.engine.submit(scenario)
    return result.to_dict()


@router.post("/scenarios/{scenario_id}/debug", status_code=202)
async def debug_scenario(scenario_id: str, services: Services = Depends(get_services)):
    """Start a headed, slowed-down execution for visual debugging."""
    scenario = await services.store.load_scenario(scenario_id)
    result = await services.engine.submit(scenario, debug=True)
    return result.to_dict()


@router.get("/scenarios/{scenario_id}/executions")
async def list_executions(scenario_id: str, limit: int = 50, services: Services = Depends(get_services)):
    await services.store.load_scenario(scenario_id)
    return [result.to_dict() for result in await services.store.list_executions(scenario_id, limit=limit)]


@router.get("/executions/{execution_id}")
async def get_execution(execution_id: str, services: Services = Depends(get_services)):
    return (await services.store.load_execution(execution_id)).to_dict()
