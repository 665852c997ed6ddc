# studymate/services/calendar_export.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, List, Optional

import icalendar

from studymate.models.planning import StudySession

PRODID = "-//StudyMate//Study Sessions//EN"
REMINDER_MINUTES = 15

METHOD_DESCRIPTIONS = {
    "new_material": "Learn new material",
    "practice": "Practice problems",
    "review": "Review",
}


def sessions_to_ics(
    sessions: List[StudySession],
    *,
    now: Optional[Callable[[], datetime]] = None,
) -> bytes:
    """
    Render study sessions as an iCalendar document.

    One VEVENT per session with a display alarm 15 minutes before it starts.
    """
    stamp = (now or datetime.now)()
    cal = icalendar.Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")

    for idx, s in enumerate(sessions):
        event = icalendar.Event()
        event.add("uid", f"studymate-{int(stamp.timestamp())}-{idx}@studymate.app")
        event.add("dtstamp", stamp)
        event.add("dtstart", s.start_time)
        event.add("dtend", s.end_time)
        event.add("summary", f"{s.subject}: {s.title}")
        event.add(
            "description",
            f"{METHOD_DESCRIPTIONS.get(s.study_method, s.study_method)}. "
            f"Pomodoro interval: {s.break_interval_minutes} minutes.",
        )

        alarm = icalendar.Alarm()
        alarm.add("action", "DISPLAY")
        alarm.add("trigger", timedelta(minutes=-REMINDER_MINUTES))
        alarm.add("description", f"{s.title} starting soon")
        event.add_component(alarm)

        cal.add_component(event)
    return cal.to_ical()
