# studymate/models/entities.py
from sqlalchemy import Column, Date, DateTime, Integer, String, UniqueConstraint
from .db import Base


class Subscriber(Base):
    __tablename__ = "subscribers"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    plan = Column(String, nullable=False, default="free")  # free | premium_monthly | premium_yearly
    subscription_end = Column(DateTime, nullable=True)


class AiUsage(Base):
    __tablename__ = "ai_usage"
    __table_args__ = (UniqueConstraint("user_id", "usage_date", name="uq_ai_usage_user_day"),)
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, index=True, nullable=False)
    usage_date = Column(Date, nullable=False)
    plans_generated_count = Column(Integer, nullable=False, default=0)
