# studymate/services/generative.py
"""
LLM-backed session proposer (Groq chat completions).

The model only proposes candidate sessions; whatever it returns still goes
through services.normalizer before anyone sees it. One bounded attempt per
request: the SDK's own retries are disabled and the call has a timeout.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import groq

from studymate.core.config import settings
from studymate.core.errors import MalformedUpstreamOutput, UpstreamRateLimited, UpstreamUnavailable
from studymate.models.planning import PlanRequest
from studymate.utils.timeparse import format_instant

log = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again later."
UNAVAILABLE_MESSAGE = "The study plan generator is temporarily unavailable. Please try again later."

# --- Groq client init ---
_client: Optional[groq.Groq] = None


def _init_groq_client() -> None:
    global _client
    if not settings.HAS_GROQ:
        _client = None
        return
    try:
        _client = groq.Groq(
            api_key=settings.GROQ_API_KEY,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )
        log.info("[LLM] Groq client initialized.")
    except groq.GroqError as e:
        log.error("[LLM] initialization error: %s", e, exc_info=True)
        _client = None


_init_groq_client()


def llm_ready() -> bool:
    return _client is not None


# --- Prompts ---
SYSTEM_PLAN_PROMPT = (
    "You are an expert study planner AI. Generate an optimized study schedule that:\n"
    "1. Prioritizes subjects based on exam dates and priority levels\n"
    "2. Uses the Pomodoro technique (work intervals with short breaks)\n"
    "3. Distributes study time evenly across subjects\n"
    "4. Allocates more time to high-priority exams\n"
    "5. Includes breaks to prevent burnout\n"
    "Respond ONLY with strict JSON. No commentary."
)


def build_user_prompt(request: PlanRequest) -> str:
    slot = request.time_slot
    exams = [
        {
            "subject": d.subject,
            "title": d.title,
            "exam_date": format_instant(d.exam_at),
            "priority": d.priority,
        }
        for d in request.deadlines
    ]
    return f"""
Create a study plan with these parameters:
- Exams: {json.dumps(exams)}
- Daily study hours available: {request.daily_study_hours:g}
- Preferred study time: {request.preferred_window} ({slot.start_clock} to {slot.end_clock})
- Plan period: {request.range_start.isoformat()} to {request.range_end.isoformat()}

Return JSON with this exact structure:
{{
  "sessions": [
    {{
      "subject": "Subject Name",
      "title": "Session title describing what to study",
      "start_time": "YYYY-MM-DDTHH:MM:SS",
      "end_time": "YYYY-MM-DDTHH:MM:SS",
      "study_method": "review" | "practice" | "new_material",
      "break_interval_minutes": {request.break_interval_minutes}
    }}
  ]
}}

Create realistic sessions within the preferred time slot. Each session should be 45-90 minutes.
Never schedule a subject after its exam. Ensure high-priority exams get more study sessions.
Space out sessions for the same subject.
""".strip()


_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def parse_session_payload(content: Optional[str]) -> List[Any]:
    """
    Pull the session array out of a model reply.

    Accepts a bare JSON array, {"sessions": [...]}, or either wrapped in a
    markdown code fence.
    """
    if not content or not content.strip():
        raise MalformedUpstreamOutput("Empty response from study plan generator")
    match = _FENCE_RE.search(content)
    text = match.group(1).strip() if match else content.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        log.error("[LLM] JSON parse failed: %s", e)
        raise MalformedUpstreamOutput("Study plan generator returned invalid JSON") from e
    if isinstance(data, dict):
        data = data.get("sessions")
    if not isinstance(data, list):
        raise MalformedUpstreamOutput("Study plan output is not a list of sessions")
    return data


class GroqSessionProposer:
    """Asks the LLM for candidate sessions. Output is untrusted."""

    name = "generative"
    generated = True

    def __init__(self, client: Any = None, *, model: Optional[str] = None, temperature: Optional[float] = None):
        self.client = client if client is not None else _client
        self.model = model or settings.GROQ_MODEL
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature

    @property
    def available(self) -> bool:
        return self.client is not None

    def _complete(self, messages: List[Dict[str, str]]) -> Optional[str]:
        if self.client is None:
            raise UpstreamUnavailable(UNAVAILABLE_MESSAGE)
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=messages,
            )
        except groq.RateLimitError as e:
            log.warning("[LLM] rate limited: %s", e)
            raise UpstreamRateLimited(RATE_LIMITED_MESSAGE) from e
        except groq.APIStatusError as e:
            log.error("[LLM] gateway error %s: %s", e.status_code, e, exc_info=True)
            raise UpstreamUnavailable(UNAVAILABLE_MESSAGE) from e
        except groq.APIError as e:
            log.error("[LLM] request failed: %s", e, exc_info=True)
            raise UpstreamUnavailable(UNAVAILABLE_MESSAGE) from e

        choices = getattr(resp, "choices", None) or []
        if not choices:
            return None
        return choices[0].message.content

    def propose_sessions(self, request: PlanRequest) -> List[Any]:
        messages = [
            {"role": "system", "content": SYSTEM_PLAN_PROMPT},
            {"role": "user", "content": build_user_prompt(request)},
        ]
        log.info("[LLM] requesting study plan for %d deadlines", len(request.deadlines))
        sessions = parse_session_payload(self._complete(messages))
        log.info("[LLM] received %d candidate sessions", len(sessions))
        return sessions
