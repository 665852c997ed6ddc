from fastapi import APIRouter, Body, Depends, Response
from typing import Any, Dict
from sqlalchemy.orm import Session

from studymate.core.errors import PlanValidationError
from studymate.models.db import get_db
from studymate.models.planning import time_slot_table
from studymate.models.schemas import CalendarExportIn, ErrorOut, GeneratePlanResponse, TimeSlotOut
from studymate.services.calendar_export import sessions_to_ics
from studymate.services.generative import GroqSessionProposer
from studymate.services.normalizer import normalize_sessions
from studymate.services.plan import generate_study_plan
from studymate.services.usage_gate import DatabaseUsageGate, UsageGate
from studymate.services.validation import apply_deadline_defaults, validate_plan_request

router = APIRouter(tags=["study-plan"])

_ERROR_RESPONSES = {
    400: {"model": ErrorOut},
    402: {"model": ErrorOut},
    429: {"model": ErrorOut},
    503: {"model": ErrorOut},
}


def get_usage_gate(db: Session = Depends(get_db)) -> UsageGate:
    return DatabaseUsageGate(db)


def get_generative_proposer() -> GroqSessionProposer:
    return GroqSessionProposer()


@router.post(
    "/users/{user_id}/study-plan/generate",
    response_model=GeneratePlanResponse,
    responses=_ERROR_RESPONSES,
)
def generate_plan(
    user_id: str,
    payload: Any = Body(...),
    gate: UsageGate = Depends(get_usage_gate),
    llm: GroqSessionProposer = Depends(get_generative_proposer),
):
    if isinstance(payload, dict):
        payload = apply_deadline_defaults(payload)
    request = validate_plan_request(payload)
    result = generate_study_plan(request, user_id=user_id, gate=gate, generative=llm)
    return {
        "sessions": [s.to_row() for s in result.sessions],
        "strategy": result.strategy,
        "time_slot": request.time_slot.as_dict(),
    }


@router.get("/study-plan/time-slots", response_model=Dict[str, TimeSlotOut])
def list_time_slots():
    return time_slot_table()


@router.post("/study-plan/calendar.ics", responses={400: {"model": ErrorOut}})
def export_calendar(body: CalendarExportIn):
    sessions = normalize_sessions(body.sessions, generated=False)
    if not sessions:
        raise PlanValidationError("There are no events to export.", field="sessions")
    return Response(
        content=sessions_to_ics(sessions),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="study-sessions.ics"'},
    )
