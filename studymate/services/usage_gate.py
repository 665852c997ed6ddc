# studymate/services/usage_gate.py
"""
Usage gate: may this user generate a study plan right now?

The planner only sees UsageGate.authorize(); quota bookkeeping lives here.
Premium subscribers are unlimited, free users get a small daily allowance.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studymate.core.config import settings
from studymate.core.errors import FeatureGatedError
from studymate.models.entities import AiUsage, Subscriber

log = logging.getLogger(__name__)

PREMIUM_PLANS = {"premium_monthly", "premium_yearly"}
UPGRADE_MESSAGE = "Daily study plan limit reached. Please upgrade your plan."


@dataclass(frozen=True)
class UsageDecision:
    authorized: bool
    premium: bool = False
    used_today: int = 0
    daily_limit: Optional[int] = None


class UsageGate:
    def authorize(self, user_id: str) -> UsageDecision:
        raise NotImplementedError

    def record_generation(self, user_id: str) -> None:
        raise NotImplementedError


class AllowAllGate(UsageGate):
    """Gate for trusted callers (scripts, tests)."""

    def authorize(self, user_id: str) -> UsageDecision:
        return UsageDecision(authorized=True, premium=True)

    def record_generation(self, user_id: str) -> None:
        return None


class DatabaseUsageGate(UsageGate):
    def __init__(
        self,
        db: Session,
        *,
        daily_limit: Optional[int] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.daily_limit = settings.FREE_DAILY_PLAN_GENERATIONS if daily_limit is None else daily_limit
        self.now = now

    def _today(self) -> date:
        return self.now().date()

    def is_premium(self, user_id: str) -> bool:
        sub = self.db.scalar(select(Subscriber).where(Subscriber.user_id == user_id))
        if sub is None or sub.plan not in PREMIUM_PLANS:
            return False
        return sub.subscription_end is None or sub.subscription_end >= self.now()

    def _usage_row(self, user_id: str) -> Optional[AiUsage]:
        return self.db.scalar(
            select(AiUsage).where(AiUsage.user_id == user_id, AiUsage.usage_date == self._today())
        )

    def used_today(self, user_id: str) -> int:
        row = self._usage_row(user_id)
        return int(row.plans_generated_count or 0) if row else 0

    def authorize(self, user_id: str) -> UsageDecision:
        used = self.used_today(user_id)
        if self.is_premium(user_id):
            return UsageDecision(authorized=True, premium=True, used_today=used)
        allowed = used < self.daily_limit
        if not allowed:
            log.info("[GATE] user %s reached the free daily limit (%d)", user_id, self.daily_limit)
        return UsageDecision(authorized=allowed, premium=False, used_today=used, daily_limit=self.daily_limit)

    def _increment(self, user_id: str, day: date, limit: Optional[int]) -> int:
        """Bump today's counter in SQL, only while it is below `limit`. Returns rows hit."""
        stmt = update(AiUsage).where(AiUsage.user_id == user_id, AiUsage.usage_date == day)
        if limit is not None:
            stmt = stmt.where(AiUsage.plans_generated_count < limit)
        stmt = stmt.values(plans_generated_count=AiUsage.plans_generated_count + 1)
        return self.db.execute(stmt.execution_options(synchronize_session=False)).rowcount

    def record_generation(self, user_id: str) -> None:
        """
        Count one generation for today.

        The increment is a single conditional UPDATE, so two requests that both
        passed authorize() at limit - 1 cannot both be counted: the loser gets
        FeatureGatedError. A concurrent first insert of the day's row is retried
        as an increment.
        """
        day = self._today()
        limit = None if self.is_premium(user_id) else self.daily_limit
        if self._increment(user_id, day, limit):
            self.db.commit()
            return

        if self._usage_row(user_id) is None and (limit is None or limit > 0):
            self.db.add(AiUsage(user_id=user_id, usage_date=day, plans_generated_count=1))
            try:
                self.db.commit()
                return
            except IntegrityError:
                self.db.rollback()
                log.info("[GATE] concurrent first generation for user %s; retrying as increment", user_id)
                if self._increment(user_id, day, limit):
                    self.db.commit()
                    return

        self.db.rollback()
        log.info("[GATE] user %s went over the free daily limit (%s)", user_id, limit)
        raise FeatureGatedError(UPGRADE_MESSAGE)
