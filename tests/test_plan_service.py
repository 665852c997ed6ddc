from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from studymate.core.errors import FeatureGatedError, UpstreamRateLimited, UpstreamUnavailable
from studymate.services.generative import GroqSessionProposer
from studymate.services.plan import generate_study_plan
from studymate.services.usage_gate import UsageDecision, UsageGate
from studymate.services.validation import validate_plan_request


class RecordingGate(UsageGate):
    def __init__(self, authorized: bool = True):
        self.authorized = authorized
        self.authorize_calls = []
        self.recorded = []

    def authorize(self, user_id: str) -> UsageDecision:
        self.authorize_calls.append(user_id)
        return UsageDecision(authorized=self.authorized)

    def record_generation(self, user_id: str) -> None:
        self.recorded.append(user_id)


class StubProposer(GroqSessionProposer):
    """Generative proposer that returns canned rows or raises."""

    def __init__(self, rows=None, error=None, available=True):
        super().__init__(client=SimpleNamespace() if available else None)
        if not available:
            self.client = None
        self.rows = rows
        self.error = error
        self.calls = 0

    def propose_sessions(self, request):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rows


def _request(strategy="auto"):
    return validate_plan_request(
        {
            "deadlines": [{"subject": "Math", "title": "Final", "exam_date": "2024-02-01", "priority": "high"}],
            "dailyStudyHours": 2,
            "preferredStudyTime": "morning",
            "startDate": "2024-01-29",
            "endDate": "2024-01-31",
            "strategy": strategy,
        }
    )


_AI_ROWS = [
    {
        "subject": "Math",
        "title": "Limits",
        "start_time": "2024-01-29T08:00:00Z",
        "end_time": "2024-01-29T09:30:00Z",
        "study_method": "new_material",
    },
    {
        "subject": "Math",
        "title": "Hallucinated",
        "start_time": "2024-01-29T10:00:00Z",
        "end_time": "2024-01-29T09:00:00Z",
    },
]


def test_denied_gate_stops_before_any_generation() -> None:
    gate = RecordingGate(authorized=False)
    llm = StubProposer(rows=_AI_ROWS)
    with pytest.raises(FeatureGatedError) as excinfo:
        generate_study_plan(_request(), user_id="u1", gate=gate, generative=llm)
    assert excinfo.value.status_code == 402
    assert llm.calls == 0
    assert gate.recorded == []


def test_auto_without_llm_uses_deterministic_allocator() -> None:
    gate = RecordingGate()
    result = generate_study_plan(_request(), user_id="u1", gate=gate, generative=StubProposer(available=False))
    assert result.strategy == "deterministic"
    assert len(result.sessions) == 6
    assert all(not s.generated for s in result.sessions)
    assert gate.authorize_calls == ["u1"]
    assert gate.recorded == ["u1"]


def test_auto_with_llm_uses_normalized_generated_sessions() -> None:
    result = generate_study_plan(_request(), user_id="u1", gate=RecordingGate(), generative=StubProposer(rows=_AI_ROWS))
    assert result.strategy == "generative"
    assert [s.title for s in result.sessions] == ["Limits"]
    assert result.sessions[0].generated is True


@pytest.mark.parametrize(
    "error",
    [UpstreamRateLimited("slow"), UpstreamUnavailable("down")],
)
def test_auto_falls_back_when_llm_fails(error) -> None:
    gate = RecordingGate()
    result = generate_study_plan(_request(), user_id="u1", gate=gate, generative=StubProposer(error=error))
    assert result.strategy == "deterministic"
    assert result.sessions
    assert gate.recorded == ["u1"]


def test_auto_falls_back_when_llm_output_is_all_garbage() -> None:
    llm = StubProposer(rows=[_AI_ROWS[1], {"subject": "Math"}])
    result = generate_study_plan(_request(), user_id="u1", gate=RecordingGate(), generative=llm)
    assert result.strategy == "deterministic"


@pytest.mark.parametrize("error", [UpstreamRateLimited("slow"), UpstreamUnavailable("down")])
def test_generative_strategy_surfaces_upstream_errors(error) -> None:
    gate = RecordingGate()
    with pytest.raises(type(error)):
        generate_study_plan(_request("generative"), user_id="u1", gate=gate, generative=StubProposer(error=error))
    assert gate.recorded == []


def test_generative_strategy_without_llm_is_unavailable() -> None:
    with pytest.raises(UpstreamUnavailable):
        generate_study_plan(
            _request("generative"), user_id="u1", gate=RecordingGate(), generative=StubProposer(available=False)
        )


def test_generative_strategy_with_garbage_returns_empty_plan() -> None:
    llm = StubProposer(rows=[_AI_ROWS[1]])
    result = generate_study_plan(_request("generative"), user_id="u1", gate=RecordingGate(), generative=llm)
    assert result.strategy == "generative"
    assert result.sessions == []


def test_deterministic_strategy_never_calls_llm() -> None:
    llm = StubProposer(rows=_AI_ROWS)
    result = generate_study_plan(_request("deterministic"), user_id="u1", gate=RecordingGate(), generative=llm)
    assert result.strategy == "deterministic"
    assert llm.calls == 0


def test_real_proposer_with_fake_client_end_to_end() -> None:
    content = json.dumps({"sessions": _AI_ROWS})
    message = SimpleNamespace(content=content)
    client = SimpleNamespace(
        chat=SimpleNamespace(
            completions=SimpleNamespace(create=lambda **_: SimpleNamespace(choices=[SimpleNamespace(message=message)]))
        )
    )
    result = generate_study_plan(
        _request("generative"), user_id="u1", gate=RecordingGate(), generative=GroqSessionProposer(client)
    )
    assert len(result.sessions) == 1
    assert result.sessions[0].to_row()["is_ai_generated"] is True
