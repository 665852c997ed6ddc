# studymate/services/validation.py
"""
Plan request validation.

validate_plan_request() turns a raw JSON-like payload into an immutable
PlanRequest or raises PlanValidationError with a message that can be shown
to the student as-is. Structural problems (wrong container types, missing
keys) are reported before range problems.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping

from studymate.core.errors import PlanValidationError
from studymate.models.planning import (
    DEFAULT_BREAK_INTERVAL_MINUTES,
    PRIORITIES,
    STRATEGIES,
    STUDY_WINDOWS,
    Deadline,
    PlanRequest,
)
from studymate.utils.timeparse import parse_day, parse_instant

MAX_DEADLINES = 50
SUBJECT_MAX_LEN = 100
TITLE_MAX_LEN = 200
MIN_DAILY_HOURS = 1
MAX_DAILY_HOURS = 16
MIN_BREAK_INTERVAL = 5
MAX_BREAK_INTERVAL = 120
MAX_RANGE_DAYS = 366


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def apply_deadline_defaults(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of the payload with caller-side defaults filled in.

    Older clients post their deadlines under "exams"; both keys are
    accepted. Deadlines without a priority become "medium".
    """
    out = dict(payload)
    if "deadlines" not in out and "exams" in out:
        out["deadlines"] = out.pop("exams")
    deadlines = out.get("deadlines")
    if isinstance(deadlines, list):
        filled: List[Any] = []
        for item in deadlines:
            if isinstance(item, dict) and item.get("priority") is None:
                item = {**item, "priority": "medium"}
            filled.append(item)
        out["deadlines"] = filled
    return out


def _check_text(value: Any, *, label: str, max_len: int, field: str) -> str:
    if not isinstance(value, str):
        raise PlanValidationError(f"{label} must be text", field=field)
    text = value.strip()
    if not 1 <= len(text) <= max_len:
        raise PlanValidationError(f"{label} must be between 1 and {max_len} characters", field=field)
    return text


def _validate_deadline(raw: Dict[str, Any], idx: int) -> Deadline:
    n = idx + 1
    path = f"deadlines[{idx}]"
    subject = _check_text(raw.get("subject"), label=f"Deadline {n} subject", max_len=SUBJECT_MAX_LEN, field=f"{path}.subject")
    title = _check_text(raw.get("title"), label=f"Deadline {n} title", max_len=TITLE_MAX_LEN, field=f"{path}.title")

    exam_at = parse_instant(raw.get("exam_date"))
    if exam_at is None:
        raise PlanValidationError(f"Deadline {n} has an invalid exam date", field=f"{path}.exam_date")

    priority = raw.get("priority")
    if priority is None:
        return Deadline(subject=subject, title=title, exam_at=exam_at)
    if priority not in PRIORITIES:
        raise PlanValidationError(
            f"Deadline {n} priority must be one of: {', '.join(PRIORITIES)}", field=f"{path}.priority"
        )
    return Deadline(subject=subject, title=title, exam_at=exam_at, priority=priority)


def validate_plan_request(payload: Any) -> PlanRequest:
    if not isinstance(payload, dict):
        raise PlanValidationError("Request body must be a JSON object")

    # ---------- structure ----------
    deadlines_raw = payload.get("deadlines")
    if deadlines_raw is None and "exams" in payload:
        deadlines_raw = payload.get("exams")
    if not isinstance(deadlines_raw, list):
        raise PlanValidationError("Deadlines must be a list of exam deadlines", field="deadlines")
    if not deadlines_raw:
        raise PlanValidationError("At least one exam deadline is required to generate a plan", field="deadlines")
    if len(deadlines_raw) > MAX_DEADLINES:
        raise PlanValidationError(f"A plan can include at most {MAX_DEADLINES} exam deadlines", field="deadlines")
    for idx, item in enumerate(deadlines_raw):
        if not isinstance(item, dict):
            raise PlanValidationError(f"Deadline {idx + 1} must be an object", field=f"deadlines[{idx}]")

    hours = payload.get("dailyStudyHours")
    if not _is_number(hours):
        raise PlanValidationError("Daily study hours must be a number", field="dailyStudyHours")

    # ---------- content ----------
    deadlines = tuple(_validate_deadline(item, idx) for idx, item in enumerate(deadlines_raw))

    if not MIN_DAILY_HOURS <= hours <= MAX_DAILY_HOURS:
        raise PlanValidationError(
            f"Daily study hours must be between {MIN_DAILY_HOURS} and {MAX_DAILY_HOURS}", field="dailyStudyHours"
        )

    window = payload.get("preferredStudyTime")
    if window not in STUDY_WINDOWS:
        raise PlanValidationError(
            f"Preferred study time must be one of: {', '.join(STUDY_WINDOWS)}", field="preferredStudyTime"
        )

    range_start = parse_day(payload.get("startDate"))
    if range_start is None:
        raise PlanValidationError("Start date is not a valid date", field="startDate")
    range_end = parse_day(payload.get("endDate"))
    # the last day's slot may run into the next calendar day
    if range_end is None or range_end >= date.max:
        raise PlanValidationError("End date is not a valid date", field="endDate")
    if range_start > range_end:
        raise PlanValidationError("Start date must be before end date", field="startDate")
    if (range_end - range_start).days + 1 > MAX_RANGE_DAYS:
        raise PlanValidationError(f"A plan can cover at most {MAX_RANGE_DAYS} days", field="endDate")

    break_interval = payload.get("breakIntervalMinutes")
    if break_interval is None:
        break_interval = DEFAULT_BREAK_INTERVAL_MINUTES
    elif not (isinstance(break_interval, int) and not isinstance(break_interval, bool)) or not (
        MIN_BREAK_INTERVAL <= break_interval <= MAX_BREAK_INTERVAL
    ):
        raise PlanValidationError(
            f"Break interval must be a whole number of minutes between {MIN_BREAK_INTERVAL} and {MAX_BREAK_INTERVAL}",
            field="breakIntervalMinutes",
        )

    strategy = payload.get("strategy") or "auto"
    if strategy not in STRATEGIES:
        raise PlanValidationError(f"Strategy must be one of: {', '.join(STRATEGIES)}", field="strategy")

    return PlanRequest(
        deadlines=deadlines,
        daily_study_hours=float(hours),
        preferred_window=window,
        range_start=range_start,
        range_end=range_end,
        break_interval_minutes=break_interval,
        strategy=strategy,
    )
