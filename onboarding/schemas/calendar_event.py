from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CalendarEventOut(BaseModel):
    calendar_event_id: int
    candidate_id: int
    step_number: int
    step_type: str
    title: str
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    status: str
    attendees: Optional[list[str]] = None
    meeting_link: Optional[str] = None
    external_event_id: Optional[str] = None
    attachment_path: Optional[str] = None
    attachment_paths: Optional[list[str]] = None
    cancellation_reason: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CalendarEventRescheduleIn(BaseModel):
    start_at: datetime
    end_at: Optional[datetime] = None


class CalendarEventCancelIn(BaseModel):
    reason: Optional[str] = None
