# studymate/services/plan.py
"""
Study plan orchestration.

validated PlanRequest -> usage gate -> proposer -> normalizer -> sessions.

Proposers share one method, propose_sessions(request) -> list of raw
records:
  - DeterministicProposer (services.schedule): default and fallback
  - GroqSessionProposer (services.generative): optional LLM layer

Strategy "auto" asks the LLM when one is configured and falls back to the
allocator if the LLM fails or proposes nothing usable. "generative" surfaces
LLM failures to the caller; "deterministic" never calls the LLM.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from studymate.core.errors import FeatureGatedError, UpstreamRateLimited, UpstreamUnavailable
from studymate.models.planning import PlanRequest, StudySession
from studymate.services.generative import UNAVAILABLE_MESSAGE, GroqSessionProposer
from studymate.services.normalizer import normalize_sessions
from studymate.services.schedule import DeterministicProposer
from studymate.services.usage_gate import UPGRADE_MESSAGE, UsageGate

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    sessions: List[StudySession]
    strategy: str


def _run(proposer, request: PlanRequest) -> List[StudySession]:
    raw = proposer.propose_sessions(request)
    return normalize_sessions(raw, generated=proposer.generated, request=request)


def generate_study_plan(
    request: PlanRequest,
    *,
    user_id: str,
    gate: UsageGate,
    generative: Optional[GroqSessionProposer] = None,
) -> PlanResult:
    decision = gate.authorize(user_id)
    if not decision.authorized:
        raise FeatureGatedError(UPGRADE_MESSAGE)

    deterministic = DeterministicProposer()
    llm = generative if generative is not None else GroqSessionProposer()

    if request.strategy == "deterministic" or (request.strategy == "auto" and not llm.available):
        result = PlanResult(sessions=_run(deterministic, request), strategy=deterministic.name)
    elif request.strategy == "generative":
        if not llm.available:
            log.warning("[LLM] generative strategy requested but no LLM is configured")
            raise UpstreamUnavailable(UNAVAILABLE_MESSAGE)
        result = PlanResult(sessions=_run(llm, request), strategy=llm.name)
    else:
        try:
            sessions = _run(llm, request)
        except (UpstreamRateLimited, UpstreamUnavailable) as e:
            log.warning("[LLM] generator failed (%s); using deterministic plan", e.message)
            sessions = []
        if sessions:
            result = PlanResult(sessions=sessions, strategy=llm.name)
        else:
            log.info("[LLM] no usable generated sessions; using deterministic plan")
            result = PlanResult(sessions=_run(deterministic, request), strategy=deterministic.name)

    gate.record_generation(user_id)
    log.info("[PLAN] user %s: %d sessions via %s", user_id, len(result.sessions), result.strategy)
    return result
