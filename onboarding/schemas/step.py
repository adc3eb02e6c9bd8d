from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from onboarding.core.step_kinds import SchedulingMethod, StepType
from onboarding.schemas.calendar_event import CalendarEventOut


class StepCompleteIn(BaseModel):
    attachment_path: Optional[str] = None


class StepScheduleIn(BaseModel):
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)
    attachments: list[str] = Field(default_factory=list)
    attendees: list[str] = Field(default_factory=list)


class StepResultOut(BaseModel):
    status: str
    step_number: int
    reason: Optional[str] = None
    message_id: Optional[int] = None
    cascaded: int = 0

    class Config:
        from_attributes = True


class ScheduleResultOut(BaseModel):
    created: bool
    skipped_reason: Optional[str] = None
    event: Optional[CalendarEventOut] = None

    class Config:
        from_attributes = True


class BatchScheduleIn(BaseModel):
    candidate_ids: list[int] = Field(min_length=1)
    start_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)
    attachments: list[str] = Field(default_factory=list)


class BatchScheduleItemOut(BaseModel):
    candidate_id: int
    status: str
    reason: Optional[str] = None
    calendar_event_id: Optional[int] = None

    class Config:
        from_attributes = True


class BatchScheduleOut(BaseModel):
    step_number: int
    created: int
    skipped: int
    failed: int
    items: list[BatchScheduleItemOut]


class WorkflowStepOut(BaseModel):
    step_number: int
    step_type: StepType
    title: str
    scheduling_method: SchedulingMethod
    is_auto: bool
    configured: bool
    state: str
    marker_field: Optional[str] = None
    marker_value: Any = None
    active_event: Optional[CalendarEventOut] = None
    last_event: Optional[CalendarEventOut] = None

    class Config:
        from_attributes = True


class CandidateWorkflowOut(BaseModel):
    candidate_id: int
    department: str
    steps: list[WorkflowStepOut]

    class Config:
        from_attributes = True
