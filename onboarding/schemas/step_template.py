from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EmailTemplateOut(BaseModel):
    email_template_id: int
    name: str
    message_type: str
    subject: str
    is_active: bool
    placeholders: list[str] = []

    class Config:
        from_attributes = True


class StepTemplateOut(BaseModel):
    step_template_id: int
    department: str
    step_number: int
    title: str
    description: Optional[str] = None
    step_type: str
    priority: str
    scheduling_method: str
    due_date_offset: Optional[int] = None
    scheduled_time_doj: Optional[str] = None
    scheduled_time_offer_letter: Optional[str] = None
    email_template_id: Optional[int] = None
    email_template: Optional[EmailTemplateOut] = None
    is_active: bool
    is_auto: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
