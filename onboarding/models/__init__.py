from onboarding.db.base import Base
from onboarding.models.activity_log import ObActivityLog
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import ObCandidate
from onboarding.models.email_template import ObEmailTemplate
from onboarding.models.message import ObMessage
from onboarding.models.step_template import ObStepTemplate

__all__ = [
    "Base",
    "ObActivityLog",
    "ObCalendarEvent",
    "ObCandidate",
    "ObEmailTemplate",
    "ObMessage",
    "ObStepTemplate",
]
