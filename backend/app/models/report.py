"""
Report Model — AI-generated HR analysis reports.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text

from app.database import Base


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    title = Column(String(256), nullable=False)
    source_text = Column(Text, nullable=False)
    analysis = Column(Text)

    status = Column(String(16), default="completed")  # completed | failed
    error = Column(String(512))

    created_at = Column(DateTime, default=datetime.utcnow)
