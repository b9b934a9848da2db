"""
Database Models for OKR Forge
=============================

SQLAlchemy models for persisting coaching session context.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import String, Integer, DateTime, JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


class SessionContextRecord(Base):
    """Latest complete context snapshot for one coaching session."""
    __tablename__ = "session_contexts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    phase: Mapped[str] = mapped_column(String(20), default="discovery")
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
