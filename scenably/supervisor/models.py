from pydantic import BaseModel
from typing import Any, Dict, Literal, Optional

from scenably.models import Frequency


class RecordingStartRequest(BaseModel):
    url: str
    mode: Literal["interactive", "headless"] = "interactive"


class RecordingStopRequest(BaseModel):
    session_id: str
    save: bool = True


class HeadlessRequest(BaseModel):
    url: str


class ScenarioCreate(BaseModel):
    name: str
    target_url: str
    description: Optional[str] = None
    script: Optional[Dict[str, Any]] = None
    transcript: Optional[str] = None
    session_id: Optional[str] = None


class ScenarioUpdate(BaseModel):
    name: Optional[str] = None
    target_url: Optional[str] = None
    description: Optional[str] = None
    script: Optional[Dict[str, Any]] = None
    transcript: Optional[str] = None


class TriggerRequest(BaseModel):
    scenario_id: str
    frequency: Frequency
    time: str
    enabled: bool = True
    day_of_week: Optional[str] = None
    day_of_month: Optional[int] = None


class ToggleRequest(BaseModel):
    enabled: bool
