# studymate/services/schedule.py
"""
Deterministic study-session allocator.

For every day in the requested range:
  1. rank the deadlines with at least one 45 minute block of the slot left
     before their exam,
  2. give each of the top-ranked subjects a 45 minute floor, then split the
     remaining budget by urgency weight in 15 minute units,
  3. trim each allotment to the slot time left before its exam,
  4. cut every subject's minutes into 45-90 minute blocks,
  5. lay the blocks out back to back from the start of the slot: exams
     falling inside the slot go first (earliest exam first), the rest are
     interleaved round-robin.

A subject's study method never moves backwards, even when several deadlines
share the subject. The same request always produces the same sessions.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from studymate.core.errors import ScheduleInvariantError
from studymate.models.planning import PRIORITIES, Deadline, PlanRequest, StudySession

log = logging.getLogger(__name__)

UNIT_MINUTES = 15
MIN_BLOCK_MINUTES = 45
MAX_BLOCK_MINUTES = 90

PRIORITY_WEIGHTS: Dict[str, float] = {"low": 1.0, "medium": 2.0, "high": 3.0}
URGENCY_HORIZON_DAYS = 14

# study-method phase boundaries, as a fraction of the subject's study span
NEW_MATERIAL_UNTIL = 0.40
PRACTICE_UNTIL = 0.75
REVIEW_DAYS_BEFORE_EXAM = 2

# phases in the only order a subject may go through them
METHOD_PHASES: Tuple[str, ...] = ("new_material", "practice", "review")

METHOD_LABELS: Dict[str, str] = {
    "new_material": "New material",
    "practice": "Practice",
    "review": "Review",
}


@dataclass(frozen=True)
class _Candidate:
    index: int
    deadline: Deadline
    weight: float
    # end of the usable part of the day's slot: slot end or exam, whichever is first
    limit: datetime

    def rank_key(self) -> Tuple[float, datetime, int, int]:
        # heavier first, then earlier exam, then higher priority, then input order
        return (-self.weight, self.deadline.exam_at, -PRIORITIES.index(self.deadline.priority), self.index)


def urgency_weight(deadline: Deadline, day: date) -> float:
    days_until = max(0, (deadline.exam_at.date() - day).days)
    return PRIORITY_WEIGHTS[deadline.priority] * (1.0 + URGENCY_HORIZON_DAYS / (days_until + 1))


def daily_capacity_minutes(request: PlanRequest) -> int:
    """Daily budget clipped to the slot span, in whole 15 minute units."""
    budget = int(round(request.daily_study_hours * 60))
    capacity = min(budget, request.time_slot.span_minutes)
    return capacity - capacity % UNIT_MINUTES


def study_method_for(deadline: Deadline, day: date, range_start: date) -> str:
    """
    Phase of study for a subject on a given day.

    Only moves forward: new_material -> practice -> review.
    """
    span_days = max(1, (deadline.exam_at.date() - range_start).days)
    progress = (day - range_start).days / span_days
    days_until = (deadline.exam_at.date() - day).days
    if days_until <= REVIEW_DAYS_BEFORE_EXAM or progress >= PRACTICE_UNTIL:
        return "review"
    if progress >= NEW_MATERIAL_UNTIL:
        return "practice"
    return "new_material"


def _whole_units(delta: timedelta) -> int:
    minutes = int(delta.total_seconds() // 60)
    return minutes - minutes % UNIT_MINUTES


def rank_deadlines(request: PlanRequest, day: date) -> List[_Candidate]:
    """Deadlines with room for at least one block before their exam, best first."""
    slot_start, slot_end = request.time_slot.bounds_for(day)
    active: List[_Candidate] = []
    for idx, dl in enumerate(request.deadlines):
        limit = min(slot_end, dl.exam_at)
        if _whole_units(limit - slot_start) >= MIN_BLOCK_MINUTES:
            active.append(_Candidate(index=idx, deadline=dl, weight=urgency_weight(dl, day), limit=limit))
    return sorted(active, key=lambda c: c.rank_key())


def allot_minutes(ranked: List[_Candidate], capacity: int) -> List[int]:
    """
    Minutes per ranked candidate for one day.

    Candidates that do not fit a 45 minute floor get nothing (they are last
    in rank order). Spare units go out by weight using the largest-remainder
    method, so a heavier candidate never ends up with less than a lighter one.
    """
    funded = min(len(ranked), capacity // MIN_BLOCK_MINUTES)
    if funded == 0:
        return [0] * len(ranked)
    chosen = ranked[:funded]
    spare_units = (capacity - funded * MIN_BLOCK_MINUTES) // UNIT_MINUTES
    total_weight = sum(c.weight for c in chosen)
    exact = [spare_units * c.weight / total_weight for c in chosen]
    units = [int(x) for x in exact]
    leftover = spare_units - sum(units)
    by_remainder = sorted(range(funded), key=lambda i: (-(exact[i] - units[i]), i))
    for i in by_remainder[:leftover]:
        units[i] += 1

    minutes = [MIN_BLOCK_MINUTES + u * UNIT_MINUTES for u in units]
    return minutes + [0] * (len(ranked) - funded)


def split_into_blocks(minutes: int) -> List[int]:
    """Split a subject's daily minutes into near-equal 45-90 minute blocks."""
    if minutes <= 0:
        return []
    if minutes < MIN_BLOCK_MINUTES or minutes % UNIT_MINUTES:
        raise ScheduleInvariantError(f"cannot split {minutes} minutes into study blocks")
    count = -(-minutes // MAX_BLOCK_MINUTES)
    units = minutes // UNIT_MINUTES
    base, extra = divmod(units, count)
    return [(base + (1 if i < extra else 0)) * UNIT_MINUTES for i in range(count)]


def _interleave(blocks_by_candidate: List[Tuple[_Candidate, List[int]]]) -> List[Tuple[_Candidate, int]]:
    out: List[Tuple[_Candidate, int]] = []
    rounds = max((len(blocks) for _, blocks in blocks_by_candidate), default=0)
    for r in range(rounds):
        for cand, blocks in blocks_by_candidate:
            if r < len(blocks):
                out.append((cand, blocks[r]))
    return out


def _check_session(session: StudySession, slot_start: datetime, slot_end: datetime, deadline: Deadline) -> None:
    if session.end_time <= session.start_time:
        raise ScheduleInvariantError(f"non-positive session length for {session.subject}")
    if session.start_time < slot_start or session.end_time > slot_end:
        raise ScheduleInvariantError(f"session for {session.subject} leaves the study slot")
    if session.end_time > deadline.exam_at:
        raise ScheduleInvariantError(f"session for {session.subject} ends after its exam")


def _check_no_overlap(sessions: List[StudySession]) -> None:
    by_subject: Dict[str, List[StudySession]] = defaultdict(list)
    for s in sessions:
        by_subject[s.subject].append(s)
    for subject, items in by_subject.items():
        items.sort(key=lambda s: s.start_time)
        for prev, nxt in zip(items, items[1:]):
            if nxt.start_time < prev.end_time:
                raise ScheduleInvariantError(f"overlapping sessions for {subject}")


def fit_before_exams(ranked: List[_Candidate], allotted: List[int], slot_start: datetime) -> List[Tuple[_Candidate, int]]:
    """
    Trim allotments so that, laid out earliest exam first, each ends by its exam.

    Returns (candidate, minutes) pairs in that layout order. An allotment
    trimmed below one block is dropped for the day.
    """
    order = sorted(range(len(ranked)), key=lambda i: (ranked[i].limit, i))
    used = 0
    fitted: List[Tuple[_Candidate, int]] = []
    for i in order:
        room = _whole_units(ranked[i].limit - slot_start) - used
        minutes = min(allotted[i], room)
        if minutes < MIN_BLOCK_MINUTES:
            continue
        fitted.append((ranked[i], minutes))
        used += minutes
    return fitted


def _day_methods(
    fitted: List[Tuple[_Candidate, int]], day: date, range_start: date, reached: Dict[str, int]
) -> Dict[str, str]:
    """One phase per subject for the day, never behind the phase it already reached."""
    for cand, _ in fitted:
        subject = cand.deadline.subject
        phase = METHOD_PHASES.index(study_method_for(cand.deadline, day, range_start))
        reached[subject] = max(reached.get(subject, 0), phase)
    return {cand.deadline.subject: METHOD_PHASES[reached[cand.deadline.subject]] for cand, _ in fitted}


def schedule_day(request: PlanRequest, day: date, reached: Optional[Dict[str, int]] = None) -> List[StudySession]:
    """
    Sessions for one day. `reached` maps subject -> highest phase index used so
    far and is updated in place when given.
    """
    if reached is None:
        reached = {}
    slot_start, slot_end = request.time_slot.bounds_for(day)
    ranked = rank_deadlines(request, day)
    if not ranked:
        return []

    allotted = allot_minutes(ranked, daily_capacity_minutes(request))
    fitted = fit_before_exams(ranked, allotted, slot_start)
    methods = _day_methods(fitted, day, request.range_start, reached)

    # exams inside the slot are laid out first, in exam order
    tight = [(cand, length) for cand, m in fitted if cand.limit < slot_end for length in split_into_blocks(m)]
    loose = [(cand, split_into_blocks(m)) for cand, m in fitted if cand.limit >= slot_end]

    sessions: List[StudySession] = []
    cursor = slot_start
    for cand, length in tight + _interleave(loose):
        method = methods[cand.deadline.subject]
        end = cursor + timedelta(minutes=length)
        session = StudySession(
            subject=cand.deadline.subject,
            title=f"{METHOD_LABELS[method]}: {cand.deadline.title}",
            start_time=cursor,
            end_time=end,
            study_method=method,
            break_interval_minutes=request.break_interval_minutes,
            generated=False,
        )
        _check_session(session, slot_start, slot_end, cand.deadline)
        sessions.append(session)
        cursor = end
    return sessions


def generate_schedule(request: PlanRequest) -> List[StudySession]:
    """
    Allocate study sessions for every day of the request's range.

    Returns an empty list when no deadline is open on any day of the range.
    """
    sessions: List[StudySession] = []
    reached: Dict[str, int] = {}
    for day in request.days():
        sessions.extend(schedule_day(request, day, reached))
    _check_no_overlap(sessions)

    log.info(
        "[SCHEDULE] %d sessions for %d deadlines over %s..%s (%s slot)",
        len(sessions), len(request.deadlines), request.range_start, request.range_end, request.preferred_window,
    )
    return sessions


class DeterministicProposer:
    """Default session proposer: the allocator above, rendered as rows."""

    name = "deterministic"
    generated = False

    def propose_sessions(self, request: PlanRequest) -> List[dict]:
        return [s.to_row() for s in generate_schedule(request)]
