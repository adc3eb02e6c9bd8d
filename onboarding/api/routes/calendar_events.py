from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.api import deps
from onboarding.core.auth import require_roles
from onboarding.core.roles import Role
from onboarding.schemas.calendar_event import CalendarEventCancelIn, CalendarEventOut, CalendarEventRescheduleIn
from onboarding.schemas.user import UserContext
from onboarding.services.calendar import CalendarProvider
from onboarding.services.calendar_events import cancel_event, reschedule_event

router = APIRouter(prefix="/onboarding/calendar-events", tags=["onboarding-calendar"])


@router.post("/{calendar_event_id}/reschedule", response_model=CalendarEventOut)
async def reschedule_calendar_event(
    calendar_event_id: int,
    payload: CalendarEventRescheduleIn,
    session: AsyncSession = Depends(deps.get_db_session),
    calendar: CalendarProvider = Depends(deps.get_calendar),
    user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC])),
):
    event = await reschedule_event(
        session,
        calendar_event_id,
        start_at=payload.start_at,
        end_at=payload.end_at,
        calendar=calendar,
        actor_id=user.user_id,
    )
    await session.commit()
    return CalendarEventOut.model_validate(event)


@router.post("/{calendar_event_id}/cancel", response_model=CalendarEventOut)
async def cancel_calendar_event(
    calendar_event_id: int,
    payload: CalendarEventCancelIn | None = None,
    session: AsyncSession = Depends(deps.get_db_session),
    calendar: CalendarProvider = Depends(deps.get_calendar),
    user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC])),
):
    event = await cancel_event(
        session,
        calendar_event_id,
        reason=payload.reason if payload else None,
        calendar=calendar,
        actor_id=user.user_id,
    )
    await session.commit()
    return CalendarEventOut.model_validate(event)
