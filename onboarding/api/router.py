from fastapi import APIRouter

from onboarding.api.routes import calendar_events
from onboarding.api.routes import step_templates
from onboarding.api.routes import steps

api_router = APIRouter()
api_router.include_router(steps.router)
api_router.include_router(calendar_events.router)
api_router.include_router(step_templates.router)
