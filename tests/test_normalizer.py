from __future__ import annotations

from datetime import datetime

import pytest

from studymate.core.errors import MalformedUpstreamOutput
from studymate.services.normalizer import coerce_session, normalize_sessions
from studymate.services.validation import validate_plan_request


def _row(**overrides) -> dict:
    row = {
        "subject": "Math",
        "title": "Derivatives drill",
        "start_time": "2024-01-25T13:00:00Z",
        "end_time": "2024-01-25T14:00:00Z",
        "study_method": "practice",
        "break_interval_minutes": 25,
    }
    row.update(overrides)
    return row


def _request(**overrides):
    payload = {
        "deadlines": [{"subject": "Math", "title": "Final", "exam_date": "2024-02-01", "priority": "high"}],
        "dailyStudyHours": 3,
        "preferredStudyTime": "afternoon",
        "startDate": "2024-01-25",
        "endDate": "2024-01-31",
    }
    payload.update(overrides)
    return validate_plan_request(payload)


def test_one_good_one_reversed_record_keeps_only_the_good_one() -> None:
    bad = _row(start_time="2024-01-26T15:00:00Z", end_time="2024-01-26T14:00:00Z")
    out = normalize_sessions([_row(), bad], generated=True)
    assert len(out) == 1
    assert out[0].start_time == datetime(2024, 1, 25, 13, 0)
    assert out[0].generated is True


@pytest.mark.parametrize(
    "start, end",
    [
        (None, "2024-01-25T14:00:00Z"),
        ("2024-01-25T13:00:00Z", None),
        ("tomorrow", "2024-01-25T14:00:00Z"),
        ("2024-01-25T13:00:00Z", "2024-01-25T13:00:00Z"),
        (1706187600, 1706191200),
    ],
)
def test_unusable_timestamps_drop_the_record(start, end) -> None:
    assert normalize_sessions([_row(start_time=start, end_time=end)], generated=True) == []


def test_defaults_for_missing_text_and_enum_fields() -> None:
    s = coerce_session(
        {"start_time": "2024-01-25T13:00:00", "end_time": "2024-01-25T14:00:00", "study_method": "cramming"},
        generated=True,
    )
    assert s is not None
    assert s.subject == "General"
    assert s.title == "Study Session"
    assert s.study_method == "review"
    assert s.break_interval_minutes == 25


def test_blank_strings_and_non_strings_are_coerced() -> None:
    s = coerce_session(_row(subject="   ", title=101, study_method=None), generated=False)
    assert s.subject == "General"
    assert s.title == "101"
    assert s.study_method == "review"
    assert s.generated is False


def test_long_text_is_truncated() -> None:
    s = coerce_session(_row(subject="S" * 300, title="T" * 300), generated=True)
    assert len(s.subject) == 100
    assert len(s.title) == 200


@pytest.mark.parametrize(
    "value, expected",
    [("50", 50), (30.9, 30), (0, 25), (-5, 25), ("abc", 25), (None, 25), (True, 25), ([], 25)],
)
def test_break_interval_coercion(value, expected) -> None:
    assert coerce_session(_row(break_interval_minutes=value), generated=True).break_interval_minutes == expected


def test_camel_case_records_are_understood() -> None:
    s = coerce_session(
        {
            "subject": "Bio",
            "startTime": "2024-01-25T13:00:00",
            "endTime": "2024-01-25T13:45:00",
            "studyMethod": "new_material",
            "breakIntervalMinutes": 30,
        },
        generated=True,
    )
    assert s.study_method == "new_material"
    assert s.break_interval_minutes == 30


def test_non_list_batch_is_rejected() -> None:
    with pytest.raises(MalformedUpstreamOutput):
        normalize_sessions({"sessions": []}, generated=True)


def test_non_dict_records_are_dropped() -> None:
    out = normalize_sessions(["nope", 3, None, _row()], generated=True)
    assert len(out) == 1


def test_same_subject_overlap_keeps_the_earlier_session() -> None:
    first = _row()
    overlapping = _row(start_time="2024-01-25T13:30:00Z", end_time="2024-01-25T14:30:00Z")
    other_subject = _row(subject="Art", start_time="2024-01-25T13:30:00Z", end_time="2024-01-25T14:30:00Z")
    out = normalize_sessions([overlapping, other_subject, first], generated=True)
    assert [(s.subject, s.start_time.hour, s.start_time.minute) for s in out] == [("Math", 13, 0), ("Art", 13, 30)]


def test_request_context_drops_sessions_outside_slot_or_after_exam() -> None:
    req = _request()
    rows = [
        _row(),
        _row(start_time="2024-01-25T09:00:00", end_time="2024-01-25T10:00:00"),  # morning
        _row(start_time="2024-01-26T16:30:00", end_time="2024-01-26T17:30:00"),  # spills past 17:00
        _row(start_time="2024-02-01T13:00:00", end_time="2024-02-01T14:00:00"),  # out of range, after exam
        _row(start_time="2024-01-20T13:00:00", end_time="2024-01-20T14:00:00"),  # before range
    ]
    out = normalize_sessions(rows, generated=True, request=req)
    assert len(out) == 1
    assert out[0].start_time == datetime(2024, 1, 25, 13, 0)


def test_request_context_enforces_exam_cutoff() -> None:
    req = _request(
        deadlines=[{"subject": "Math", "title": "Quiz", "exam_date": "2024-01-26T14:00:00", "priority": "low"}]
    )
    rows = [
        _row(start_time="2024-01-26T13:00:00", end_time="2024-01-26T14:00:00"),
        _row(start_time="2024-01-26T14:00:00", end_time="2024-01-26T15:00:00"),
    ]
    out = normalize_sessions(rows, generated=True, request=req)
    assert [s.end_time for s in out] == [datetime(2024, 1, 26, 14, 0)]


def test_subjects_without_a_deadline_are_kept() -> None:
    out = normalize_sessions([_row(subject="Revision")], generated=True, request=_request())
    assert [s.subject for s in out] == ["Revision"]


def test_output_is_sorted_and_flag_forced() -> None:
    rows = [
        _row(start_time="2024-01-26T13:00:00", end_time="2024-01-26T14:00:00"),
        _row(start_time="2024-01-25T13:00:00", end_time="2024-01-25T14:00:00"),
    ]
    out = normalize_sessions(rows, generated=False)
    assert [s.start_time.day for s in out] == [25, 26]
    assert all(s.generated is False for s in out)


def test_offset_timestamp_at_the_calendar_edge_only_drops_that_record() -> None:
    edge = _row(start_time="9999-12-31T22:00:00-05:00", end_time="9999-12-31T23:00:00-05:00")
    out = normalize_sessions([edge, _row()], generated=True)
    assert len(out) == 1
    assert out[0].start_time == datetime(2024, 1, 25, 13, 0)


def test_night_sessions_after_midnight_belong_to_the_previous_day() -> None:
    req = _request(
        deadlines=[{"subject": "Math", "title": "Final", "exam_date": "2024-02-05", "priority": "high"}],
        preferredStudyTime="night",
    )
    rows = [
        _row(start_time="2024-01-26T00:00:00", end_time="2024-01-26T00:45:00"),  # slot of Jan 25
        _row(start_time="2024-02-01T00:00:00", end_time="2024-02-01T00:45:00"),  # slot of Jan 31
        _row(start_time="2024-01-25T00:00:00", end_time="2024-01-25T00:45:00"),  # slot of Jan 24
        _row(start_time="2024-01-25T23:30:00", end_time="2024-01-26T01:30:00"),  # runs past 01:00
    ]
    out = normalize_sessions(rows, generated=True, request=req)
    assert [s.start_time for s in out] == [datetime(2024, 1, 26, 0, 0), datetime(2024, 2, 1, 0, 0)]
