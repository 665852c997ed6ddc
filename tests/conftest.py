from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Must be set before studymate modules read their settings.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="studymate-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["GROQ_API_KEY"] = ""
os.environ["FREE_DAILY_PLAN_GENERATIONS"] = "3"

import pytest  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from studymate.models.db import Base, SessionLocal, engine  # noqa: E402
from studymate.models.entities import AiUsage, Subscriber  # noqa: E402


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.execute(delete(AiUsage))
        session.execute(delete(Subscriber))
        session.commit()
        session.close()


@pytest.fixture()
def math_payload() -> dict:
    return {
        "deadlines": [
            {"subject": "Math", "title": "Calculus final", "exam_date": "2024-02-01", "priority": "high"},
        ],
        "dailyStudyHours": 3,
        "preferredStudyTime": "afternoon",
        "startDate": "2024-01-25",
        "endDate": "2024-01-31",
    }
