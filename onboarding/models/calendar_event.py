from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.core.step_machine import SCHEDULED
from onboarding.db.base import Base


class ObCalendarEvent(Base):
    """
    One scheduled occurrence of a step for a candidate.

    `active_step_key` is "<candidate_id>:<step_number>" while the event is SCHEDULED or
    RESCHEDULED and NULL afterwards; its unique constraint keeps a single live event per step.
    """

    __tablename__ = "ob_calendar_event"

    calendar_event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(Integer, index=True)
    step_number: Mapped[int] = mapped_column(Integer, index=True)
    step_type: Mapped[str] = mapped_column(String(64))

    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime)
    attendees: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=SCHEDULED, index=True)
    active_step_key: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    external_event_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)

    attachment_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attachment_paths: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)
