from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from studymate.models.db import get_db
from studymate.models.schemas import UsageOut
from studymate.services.usage_gate import DatabaseUsageGate

router = APIRouter(prefix="/users", tags=["usage"])


@router.get("/{user_id}/usage", response_model=UsageOut)
def usage(user_id: str, db: Session = Depends(get_db)):
    gate = DatabaseUsageGate(db)
    decision = gate.authorize(user_id)
    remaining = None
    if decision.daily_limit is not None:
        remaining = max(0, decision.daily_limit - decision.used_today)
    return {
        "user_id": user_id,
        "premium": decision.premium,
        "plans_generated_today": decision.used_today,
        "daily_limit": decision.daily_limit,
        "remaining_today": remaining,
    }
