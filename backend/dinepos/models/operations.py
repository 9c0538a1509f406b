"""Operations models: audit log and daily KOT counters."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dinepos.db.base import Base, utcnow


class AuditSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AuditLogEntry(Base):
    """Audit log entry."""

    __tablename__ = "audit_log_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False, default="System")
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default=AuditSeverity.INFO.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


class KotCounter(Base):
    """Per-day KOT sequence; incremented with a single UPDATE."""

    __tablename__ = "kot_counters"

    date_key: Mapped[str] = mapped_column(String(10), primary_key=True)  # YYYY-MM-DD, restaurant local
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
