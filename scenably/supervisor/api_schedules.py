"""HTTP API endpoints for schedule triggers and run history."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from scenably.models import ScheduleTrigger

from .models import ToggleRequest, TriggerRequest
from .services import Services, get_services

logger = logging.getLogger("scenably.supervisor.api_schedules")

router = APIRouter(prefix="/schedules")


@router.put("")
async def upsert_schedule(request: TriggerRequest, services: Services = Depends(get_services)):
    trigger = ScheduleTrigger(
        scenario_id=request.scenario_id,
        frequency=request.frequency,
        time=request.time,
        enabled=request.enabled,
        day_of_week=request.day_of_week,
        day_of_month=request.day_of_month,
    )
    return (await services.scheduler.save(trigger)).to_dict()


@router.get("")
async def list_schedules(services: Services = Depends(get_services)):
    return [trigger.to_dict() for trigger in await services.scheduler.list_triggers()]


@router.post("/tick")
async def tick_schedules(services: Services = Depends(get_services)):
    """Evaluate triggers immediately instead of waiting for the periodic driver."""
    runs = await services.scheduler.tick()
    return {"dispatched": [run.to_dict() for run in runs]}


@router.get("/{scenario_id}")
async def get_schedule(scenario_id: str, services: Services = Depends(get_services)):
    return (await services.scheduler.get(scenario_id)).to_dict()


@router.delete("/{scenario_id}")
async def delete_schedule(scenario_id: str, services: Services = Depends(get_services)):
    await services.scheduler.delete(scenario_id)
    return {"status": "deleted", "scenario_id": scenario_id}


@router.post("/{scenario_id}/toggle")
async def toggle_schedule(scenario_id: str, request: ToggleRequest, services: Services = Depends(get_services)):
    return (await services.scheduler.toggle(scenario_id, request.enabled)).to_dict()


@router.get("/{scenario_id}/runs")
async def list_schedule_runs(
    scenario_id: str,
    limit: Optional[int] = None,
    services: Services = Depends(get_services),
):
    return [run.to_dict() for run in await services.scheduler.list_runs(scenario_id, limit=limit)]
