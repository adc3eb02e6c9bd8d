from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.api import deps
from onboarding.core.auth import require_roles
from onboarding.core.exceptions import CandidateNotFoundError
from onboarding.core.roles import Role
from onboarding.models.candidate import ObCandidate
from onboarding.schemas.calendar_event import CalendarEventOut
from onboarding.schemas.step import (
    BatchScheduleIn,
    BatchScheduleOut,
    BatchScheduleItemOut,
    CandidateWorkflowOut,
    ScheduleResultOut,
    StepCompleteIn,
    StepResultOut,
    StepScheduleIn,
)
from onboarding.schemas.user import UserContext
from onboarding.services.calendar import CalendarProvider
from onboarding.services.calendar_events import batch_schedule_step, schedule_step
from onboarding.services.email import MessageProvider
from onboarding.services.steps import candidate_workflow, complete_step, undo_step
from onboarding.services.templates import resolve_step_definition

router = APIRouter(prefix="/onboarding", tags=["onboarding-steps"])


@router.post("/candidates/{candidate_id}/steps/{step_number}/complete", response_model=StepResultOut)
async def complete_candidate_step(
    candidate_id: int,
    step_number: int,
    payload: StepCompleteIn | None = None,
    session: AsyncSession = Depends(deps.get_db_session),
    calendar: CalendarProvider = Depends(deps.get_calendar),
    mailer: MessageProvider = Depends(deps.get_mailer),
    user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC])),
):
    result = await complete_step(
        session,
        candidate_id,
        step_number,
        calendar=calendar,
        mailer=mailer,
        actor_id=user.user_id,
        attachment=payload.attachment_path if payload else None,
    )
    return StepResultOut.model_validate(result)


@router.post("/candidates/{candidate_id}/steps/{step_number}/schedule", response_model=ScheduleResultOut)
async def schedule_candidate_step(
    candidate_id: int,
    step_number: int,
    payload: StepScheduleIn,
    session: AsyncSession = Depends(deps.get_db_session),
    calendar: CalendarProvider = Depends(deps.get_calendar),
    user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC])),
):
    candidate = await session.get(ObCandidate, candidate_id)
    if not candidate:
        raise CandidateNotFoundError(candidate_id)
    definition = await resolve_step_definition(session, candidate.department, step_number)
    result = await schedule_step(
        session,
        candidate,
        definition,
        calendar=calendar,
        start_at=payload.start_at,
        end_at=payload.end_at,
        duration_minutes=payload.duration_minutes,
        attachments=payload.attachments,
        attendees=payload.attendees,
        actor_id=user.user_id,
    )
    return ScheduleResultOut(
        created=result.created,
        skipped_reason=result.skipped_reason,
        event=CalendarEventOut.model_validate(result.event) if result.event is not None else None,
    )


@router.post("/candidates/{candidate_id}/steps/{step_number}/undo", response_model=CalendarEventOut)
async def undo_candidate_step(
    candidate_id: int,
    step_number: int,
    session: AsyncSession = Depends(deps.get_db_session),
    calendar: CalendarProvider = Depends(deps.get_calendar),
    user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC])),
):
    event = await undo_step(session, candidate_id, step_number, calendar=calendar, actor_id=user.user_id)
    return CalendarEventOut.model_validate(event)


@router.get("/candidates/{candidate_id}/workflow", response_model=CandidateWorkflowOut)
async def get_candidate_workflow(
    candidate_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC, Role.VIEWER])),
):
    workflow = await candidate_workflow(session, candidate_id)
    return CandidateWorkflowOut.model_validate(workflow)


@router.post("/steps/{step_number}/batch-schedule", response_model=BatchScheduleOut)
async def batch_schedule(
    step_number: int,
    payload: BatchScheduleIn,
    session: AsyncSession = Depends(deps.get_db_session),
    calendar: CalendarProvider = Depends(deps.get_calendar),
    user: UserContext = Depends(require_roles([Role.HR_ADMIN, Role.HR_EXEC])),
):
    result = await batch_schedule_step(
        session,
        payload.candidate_ids,
        step_number,
        calendar=calendar,
        start_at=payload.start_at,
        duration_minutes=payload.duration_minutes,
        attachments=payload.attachments,
        actor_id=user.user_id,
    )
    return BatchScheduleOut(
        step_number=step_number,
        created=result.count("created"),
        skipped=result.count("skipped"),
        failed=result.count("failed"),
        items=[BatchScheduleItemOut.model_validate(item) for item in result.items],
    )
