from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class TimeSlotOut(BaseModel):
    start: str
    end: str


class StudySessionOut(BaseModel):
    subject: str
    title: str
    start_time: str
    end_time: str
    study_method: str
    break_interval_minutes: int
    is_ai_generated: bool


class GeneratePlanResponse(BaseModel):
    sessions: List[StudySessionOut]
    strategy: str
    time_slot: TimeSlotOut


class ErrorOut(BaseModel):
    error: str
    field: Optional[str] = None


class UsageOut(BaseModel):
    user_id: str
    premium: bool
    plans_generated_today: int
    daily_limit: Optional[int] = None
    remaining_today: Optional[int] = None


class CalendarExportIn(BaseModel):
    sessions: List[Dict[str, Any]]
