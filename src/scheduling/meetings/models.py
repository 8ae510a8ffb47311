"""Meeting persistence model.

Only the explicit cancellation is stored in ``status`` ("scheduled" or
"cancelled"); ongoing/completed are derived from the instants at read time.
Participants and the related lead/contact reference are JSON columns.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from src.scheduling.core.database import Base


class MeetingModel(Base):
    """A CRM meeting, optionally backed by a provider join link."""

    __tablename__ = "meetings"
    __table_args__ = (
        Index("ix_meetings_owner_window", "owner_id", "start_time", "end_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    join_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    related_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    participants_data: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(
        String(20),
        default="scheduled",
        server_default=text("'scheduled'"),
    )
    outcome: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )
