# studymate/models/planning.py
"""
Planning domain types.

These are the validated, immutable values the scheduler works with. Raw
request payloads never reach the allocator; they go through
services.validation first.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from studymate.utils.timeparse import format_instant

Priority = Literal["low", "medium", "high"]
StudyWindow = Literal["morning", "afternoon", "evening", "night"]
StudyMethod = Literal["review", "practice", "new_material"]
Strategy = Literal["auto", "deterministic", "generative"]

PRIORITIES: Tuple[str, ...] = ("low", "medium", "high")
STUDY_WINDOWS: Tuple[str, ...] = ("morning", "afternoon", "evening", "night")
STUDY_METHODS: Tuple[str, ...] = ("review", "practice", "new_material")
STRATEGIES: Tuple[str, ...] = ("auto", "deterministic", "generative")

DEFAULT_BREAK_INTERVAL_MINUTES = 25


class Deadline(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    title: str
    exam_at: datetime
    priority: Priority = "medium"


class TimeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_clock: str
    end_clock: str

    @property
    def start(self) -> time:
        return time.fromisoformat(self.start_clock)

    @property
    def end(self) -> time:
        return time.fromisoformat(self.end_clock)

    @property
    def crosses_midnight(self) -> bool:
        return self.end <= self.start

    def bounds_for(self, day: date) -> Tuple[datetime, datetime]:
        start = datetime.combine(day, self.start)
        end_day = day + timedelta(days=1) if self.crosses_midnight else day
        return start, datetime.combine(end_day, self.end)

    @property
    def span_minutes(self) -> int:
        start, end = self.bounds_for(date(2000, 1, 1))
        return int((end - start).total_seconds() // 60)

    def as_dict(self) -> Dict[str, str]:
        return {"start": self.start_clock, "end": self.end_clock}


_TIME_SLOTS: Dict[str, TimeSlot] = {
    "morning": TimeSlot(start_clock="08:00", end_clock="12:00"),
    "afternoon": TimeSlot(start_clock="13:00", end_clock="17:00"),
    "evening": TimeSlot(start_clock="18:00", end_clock="22:00"),
    "night": TimeSlot(start_clock="21:00", end_clock="01:00"),
}
_DEFAULT_TIME_SLOT = TimeSlot(start_clock="09:00", end_clock="13:00")


def time_slot_for(window: str) -> TimeSlot:
    return _TIME_SLOTS.get(window, _DEFAULT_TIME_SLOT)


def time_slot_table() -> Dict[str, Dict[str, str]]:
    out = {name: slot.as_dict() for name, slot in _TIME_SLOTS.items()}
    out["default"] = _DEFAULT_TIME_SLOT.as_dict()
    return out


class PlanRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    deadlines: Tuple[Deadline, ...]
    daily_study_hours: float
    preferred_window: StudyWindow
    range_start: date
    range_end: date
    break_interval_minutes: int = DEFAULT_BREAK_INTERVAL_MINUTES
    strategy: Strategy = "auto"

    @property
    def time_slot(self) -> TimeSlot:
        return time_slot_for(self.preferred_window)

    def days(self) -> List[date]:
        out: List[date] = []
        cursor = self.range_start
        while cursor <= self.range_end:
            out.append(cursor)
            cursor += timedelta(days=1)
        return out

    def last_exam_for(self, subject: str) -> Optional[datetime]:
        """Latest exam instant for a subject, None if no deadline names it."""
        matches = [d.exam_at for d in self.deadlines if d.subject == subject]
        return max(matches) if matches else None


class StudySession(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    title: str
    start_time: datetime
    end_time: datetime
    study_method: StudyMethod = "review"
    break_interval_minutes: int = DEFAULT_BREAK_INTERVAL_MINUTES
    generated: bool = False

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def to_row(self) -> Dict[str, Any]:
        """Serialize with the snake_case column names of study_sessions."""
        return {
            "subject": self.subject,
            "title": self.title,
            "start_time": format_instant(self.start_time),
            "end_time": format_instant(self.end_time),
            "study_method": self.study_method,
            "break_interval_minutes": self.break_interval_minutes,
            "is_ai_generated": self.generated,
        }
