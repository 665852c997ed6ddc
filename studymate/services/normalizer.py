# studymate/services/normalizer.py
"""
Sanitise candidate study sessions before they leave the service.

Candidates may come from the deterministic allocator or from an LLM, so
nothing about their shape is trusted. Text fields and enums fall back to
defaults; records whose timestamps do not form a valid range are dropped,
never repaired.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from studymate.core.errors import MalformedUpstreamOutput
from studymate.models.planning import (
    DEFAULT_BREAK_INTERVAL_MINUTES,
    STUDY_METHODS,
    PlanRequest,
    StudySession,
)
from studymate.utils.timeparse import parse_instant

log = logging.getLogger(__name__)

DEFAULT_SUBJECT = "General"
DEFAULT_TITLE = "Study Session"
SUBJECT_MAX_LEN = 100
TITLE_MAX_LEN = 200


def _text(value: Any, default: str, max_len: int) -> str:
    if value is None:
        return default
    s = str(value).strip()
    return s[:max_len] if s else default


def _break_interval(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_BREAK_INTERVAL_MINUTES
    try:
        minutes = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_BREAK_INTERVAL_MINUTES
    return minutes if minutes > 0 else DEFAULT_BREAK_INTERVAL_MINUTES


def _first(record: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if record.get(k) is not None:
            return record[k]
    return None


def coerce_session(record: Any, *, generated: bool) -> Optional[StudySession]:
    """One candidate record -> StudySession, or None if its times are unusable."""
    if not isinstance(record, dict):
        return None
    start = parse_instant(_first(record, "start_time", "startTime"))
    end = parse_instant(_first(record, "end_time", "endTime"))
    if start is None or end is None or end <= start:
        return None

    method = _first(record, "study_method", "studyMethod")
    return StudySession(
        subject=_text(record.get("subject"), DEFAULT_SUBJECT, SUBJECT_MAX_LEN),
        title=_text(record.get("title"), DEFAULT_TITLE, TITLE_MAX_LEN),
        start_time=start,
        end_time=end,
        study_method=method if method in STUDY_METHODS else "review",
        break_interval_minutes=_break_interval(_first(record, "break_interval_minutes", "breakIntervalMinutes")),
        generated=generated,
    )


def _within_slot(session: StudySession, request: PlanRequest) -> bool:
    """Is the session inside the slot of some day in the request range?"""
    day = session.start_time.date()
    # a slot that crosses midnight belongs to the day it started on
    days = [day, day - timedelta(days=1)] if day > request.range_start else [day]
    for d in days:
        if not request.range_start <= d <= request.range_end:
            continue
        start, end = request.time_slot.bounds_for(d)
        if start <= session.start_time and session.end_time <= end:
            return True
    return False


def _fits_request(session: StudySession, request: PlanRequest) -> bool:
    if not _within_slot(session, request):
        return False
    last_exam = request.last_exam_for(session.subject)
    return last_exam is None or session.end_time <= last_exam


def normalize_sessions(
    raw: Any,
    *,
    generated: bool,
    request: Optional[PlanRequest] = None,
) -> List[StudySession]:
    """
    Coerce a batch of loosely typed session records.

    With a request, sessions outside the request's daily study slots, ending
    after their subject's exam, or overlapping an earlier kept session of the
    same subject are dropped as well.
    """
    if not isinstance(raw, list):
        raise MalformedUpstreamOutput("Study plan output is not a list of sessions")

    coerced = [coerce_session(r, generated=generated) for r in raw]
    sessions = [s for s in coerced if s is not None]

    if request is not None:
        sessions = [s for s in sessions if _fits_request(s, request)]

    sessions.sort(key=lambda s: (s.start_time, s.subject))
    kept: List[StudySession] = []
    last_end: Dict[str, datetime] = defaultdict(lambda: datetime.min)
    for s in sessions:
        if s.start_time < last_end[s.subject]:
            continue
        kept.append(s)
        last_end[s.subject] = s.end_time

    dropped = len(raw) - len(kept)
    if dropped:
        log.warning("[NORMALIZE] dropped %d of %d session records", dropped, len(raw))
    return kept
