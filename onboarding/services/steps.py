from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.core.exceptions import CalendarEventNotFoundError, CandidateNotFoundError, ConfigurationError
from onboarding.core.step_kinds import (
    ANCHOR_PRODUCING_STEP,
    LEGACY_STEP_TYPES,
    MARKER_TIMESTAMP,
    SchedulingMethod,
    StepKind,
    StepType,
    default_step_definitions,
    normalize_step_type,
    step_kind,
)
from onboarding.core.step_machine import ACTIVE_EVENT_STATUSES, derive_step_state
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import ObCandidate
from onboarding.models.step_template import ObStepTemplate
from onboarding.services.activity import log_activity
from onboarding.services.attachments import require_attachments, resolve_attachments
from onboarding.services.calendar import CalendarProvider
from onboarding.services.calendar_events import (
    cancel_event_record,
    complete_step_event,
    get_active_event,
    list_candidate_events,
    schedule_step,
)
from onboarding.services.dispatch_guard import check_dispatch
from onboarding.services.email import MessageProvider
from onboarding.services.messages import dispatch_message
from onboarding.services.step_leases import StepLeaseManager, step_leases
from onboarding.services.templates import (
    definition_from_template,
    legacy_definition,
    list_step_templates,
    placeholder_values,
    render_email_template,
    resolve_step_definition,
)

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
REASON_IN_PROGRESS = "in_progress"


@dataclass
class StepResult:
    status: str
    step_number: int
    reason: str | None = None
    message_id: int | None = None
    cascaded: int = 0

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED


async def _get_candidate(session: AsyncSession, candidate_id: int) -> ObCandidate:
    candidate = await session.get(ObCandidate, candidate_id)
    if candidate is None:
        raise CandidateNotFoundError(candidate_id)
    return candidate


def apply_marker(candidate: ObCandidate, kind: StepKind, now: datetime) -> bool:
    """Sets the step's marker on the candidate. Returns True when a timestamp marker was newly set."""
    if not kind.marker_field:
        return False
    if kind.marker_kind == MARKER_TIMESTAMP:
        if getattr(candidate, kind.marker_field) is None:
            setattr(candidate, kind.marker_field, now)
            return True
        return False
    setattr(candidate, kind.marker_field, True)
    return False


def revert_marker(candidate: ObCandidate, kind: StepKind) -> None:
    if not kind.marker_field:
        return
    setattr(candidate, kind.marker_field, None if kind.marker_kind == MARKER_TIMESTAMP else False)


async def complete_step(
    session: AsyncSession,
    candidate_id: int,
    step_number: int,
    *,
    calendar: CalendarProvider,
    mailer: MessageProvider,
    actor_id: str | None = None,
    attachment: str | list[str] | None = None,
    leases: StepLeaseManager | None = None,
) -> StepResult:
    """
    Runs one step for a candidate: guards, message dispatch, marker and event bookkeeping, cascade.

    Used by both the manual trigger and the scheduler sweep. Configuration and dispatch errors
    propagate; bookkeeping and cascade failures after a successful send are logged only.
    """
    if step_number < 1:
        raise ConfigurationError("Invalid step number")
    leases = leases or step_leases
    async with leases.hold(candidate_id, step_number) as acquired:
        if not acquired:
            return StepResult(status=STATUS_SKIPPED, step_number=step_number, reason=REASON_IN_PROGRESS)
        return await _complete_step_locked(
            session,
            candidate_id,
            step_number,
            calendar=calendar,
            mailer=mailer,
            actor_id=actor_id,
            attachment=attachment,
        )


async def _complete_step_locked(
    session: AsyncSession,
    candidate_id: int,
    step_number: int,
    *,
    calendar: CalendarProvider,
    mailer: MessageProvider,
    actor_id: str | None,
    attachment: str | list[str] | None,
) -> StepResult:
    candidate = await _get_candidate(session, candidate_id)
    department = candidate.department
    definition = await resolve_step_definition(session, department, step_number)
    kind = definition.kind
    message_type = definition.message_type

    decision = await check_dispatch(
        session, candidate, step_number=step_number, kind=kind, message_type=message_type
    )
    if decision.skip:
        logger.info(
            "step_skipped",
            extra={"candidate_id": candidate_id, "step_number": step_number, "reason": decision.reason},
        )
        return StepResult(status=STATUS_SKIPPED, step_number=step_number, reason=decision.reason)

    message_id: int | None = None
    if definition.requires_message:
        email_template = definition.usable_email_template()
        message_type = email_template.message_type
        attachments = await resolve_attachments(session, candidate, step_number, attachment)
        require_attachments(attachments, step_number=step_number, message_type=message_type, kind=kind)

        active = await get_active_event(session, candidate_id, step_number)
        values = placeholder_values(
            candidate,
            message_type=message_type,
            event_start=active.start_at if active is not None else None,
            meeting_link=active.meeting_link if active is not None else None,
        )
        subject, body = render_email_template(email_template, values)
        message = await dispatch_message(
            session,
            mailer,
            candidate_id=candidate_id,
            step_number=step_number,
            message_type=message_type,
            to_email=candidate.email,
            subject=subject,
            body=body,
            attachments=attachments,
        )
        message_id = message.message_id
    else:
        attachments = await resolve_attachments(session, candidate, step_number, attachment)
        require_attachments(attachments, step_number=step_number, message_type=None, kind=kind)

    anchor_newly_set = False
    try:
        now = utcnow_naive()
        anchor_newly_set = apply_marker(candidate, kind, now) and definition.step_type == ANCHOR_PRODUCING_STEP
        if definition.step_type == StepType.OFFER_LETTER and attachments and not candidate.offer_letter_path:
            candidate.offer_letter_path = attachments[0]
        await complete_step_event(
            session,
            candidate_id=candidate_id,
            step_number=step_number,
            step_type=definition.step_type,
            title=definition.title,
        )
        await session.commit()
    except Exception:  # noqa: BLE001
        logger.exception(
            "step_bookkeeping_failed",
            extra={"candidate_id": candidate_id, "step_number": step_number, "message_id": message_id},
        )
        await session.rollback()
        anchor_newly_set = False

    # Marker and event are already committed; a failed log entry only loses the log row.
    try:
        await log_activity(
            session,
            candidate_id=candidate_id,
            action=f"{definition.step_type.value}_COMPLETED",
            description=f"Step {step_number} ({definition.title}) completed",
            step_number=step_number,
            actor_id=actor_id,
        )
        await session.commit()
    except Exception:  # noqa: BLE001
        logger.exception("step_activity_log_failed", extra={"candidate_id": candidate_id, "step_number": step_number})
        await session.rollback()

    cascaded = 0
    if anchor_newly_set:
        try:
            cascaded = await cascade_offer_letter_steps(
                session, candidate_id, department, calendar=calendar, exclude_step=step_number
            )
        except Exception:  # noqa: BLE001
            logger.exception("step_cascade_failed", extra={"candidate_id": candidate_id, "step_number": step_number})
            await session.rollback()

    logger.info(
        "step_completed",
        extra={
            "candidate_id": candidate_id,
            "step_number": step_number,
            "message_id": message_id,
            "cascaded": cascaded,
            "automated": actor_id is None,
        },
    )
    return StepResult(
        status=STATUS_COMPLETED,
        step_number=step_number,
        message_id=message_id,
        cascaded=cascaded,
    )


async def cascade_offer_letter_steps(
    session: AsyncSession,
    candidate_id: int,
    department: str,
    *,
    calendar: CalendarProvider,
    exclude_step: int | None = None,
) -> int:
    """Schedules every active auto offer-letter step of the department lacking an active event."""
    templates = await list_step_templates(session, department, active_only=True)
    created = 0
    for template in templates:
        if template.step_number == exclude_step:
            continue
        if template.method != SchedulingMethod.OFFER_LETTER or not template.is_auto:
            continue
        candidate = await _get_candidate(session, candidate_id)
        result = await schedule_step(session, candidate, definition_from_template(template), calendar=calendar)
        if result.created:
            created += 1
    if created:
        logger.info("step_cascade_scheduled", extra={"candidate_id": candidate_id, "count": created})
    return created


async def undo_step(
    session: AsyncSession,
    candidate_id: int,
    step_number: int,
    *,
    calendar: CalendarProvider,
    actor_id: str | None = None,
) -> ObCalendarEvent:
    """Cancels the active event for the step and reverts the marker it set."""
    candidate = await _get_candidate(session, candidate_id)
    event = await get_active_event(session, candidate_id, step_number)
    if event is None:
        raise CalendarEventNotFoundError(f"No scheduled event found for step {step_number}")

    await cancel_event_record(session, event, reason="undo", calendar=calendar)
    step_type = normalize_step_type(event.step_type) or StepType.MANUAL
    kind = step_kind(step_type)
    if kind.revert_marker_on_undo:
        revert_marker(candidate, kind)

    await log_activity(
        session,
        candidate_id=candidate_id,
        action="STEP_UNSCHEDULED",
        description=f"Step {step_number} ({step_type.value}) unscheduled - event cancelled",
        step_number=step_number,
        actor_id=actor_id,
    )
    await session.commit()
    logger.info("step_undone", extra={"candidate_id": candidate_id, "step_number": step_number})
    return event


@dataclass
class WorkflowStep:
    step_number: int
    step_type: StepType
    title: str
    scheduling_method: SchedulingMethod
    is_auto: bool
    configured: bool
    state: str
    marker_field: str | None = None
    marker_value: Any = None
    active_event: ObCalendarEvent | None = None
    last_event: ObCalendarEvent | None = None


@dataclass
class CandidateWorkflow:
    candidate_id: int
    department: str
    steps: list[WorkflowStep] = field(default_factory=list)


async def candidate_workflow(session: AsyncSession, candidate_id: int) -> CandidateWorkflow:
    candidate = await _get_candidate(session, candidate_id)
    templates = await list_step_templates(session, candidate.department)
    if templates:
        definitions = [definition_from_template(t) for t in templates]
    else:
        definitions = [legacy_definition(candidate.department, n) for n in sorted(LEGACY_STEP_TYPES)]

    events_by_step: dict[int, list[ObCalendarEvent]] = {}
    for event in await list_candidate_events(session, candidate_id):
        events_by_step.setdefault(event.step_number, []).append(event)

    workflow = CandidateWorkflow(candidate_id=candidate_id, department=candidate.department)
    for definition in definitions:
        events = events_by_step.get(definition.step_number, [])
        active = next((e for e in reversed(events) if e.status in ACTIVE_EVENT_STATUSES), None)
        marker_field = definition.kind.marker_field
        workflow.steps.append(
            WorkflowStep(
                step_number=definition.step_number,
                step_type=definition.step_type,
                title=definition.title,
                scheduling_method=definition.scheduling_method,
                is_auto=bool(definition.template is not None and definition.template.is_auto),
                configured=definition.from_template,
                state=derive_step_state(e.status for e in events),
                marker_field=marker_field,
                marker_value=getattr(candidate, marker_field) if marker_field else None,
                active_event=active,
                last_event=events[-1] if events else None,
            )
        )
    return workflow


async def seed_default_steps(session: AsyncSession, department: str) -> list[ObStepTemplate]:
    """Creates the default step templates for a department, keeping existing step numbers."""
    existing = {
        row
        for row in (
            await session.execute(select(ObStepTemplate.step_number).where(ObStepTemplate.department == department))
        ).scalars().all()
    }
    created: list[ObStepTemplate] = []
    for entry in default_step_definitions(department):
        if entry["step_number"] in existing:
            continue
        method: SchedulingMethod = entry["scheduling_method"]
        scheduled_time = entry.get("scheduled_time")
        template = ObStepTemplate(
            department=department,
            step_number=entry["step_number"],
            title=entry["title"],
            description=entry["description"],
            step_type=entry["step_type"].value,
            priority=entry.get("priority", "MEDIUM"),
            scheduling_method=method.value,
            due_date_offset=entry["due_date_offset"],
            scheduled_time_doj=scheduled_time or "09:00",
            scheduled_time_offer_letter="14:00" if method == SchedulingMethod.OFFER_LETTER else None,
            is_active=True,
            email_template=None,
        )
        session.add(template)
        created.append(template)
    await session.flush()
    logger.info("step_templates_seeded", extra={"department": department, "count": len(created)})
    return created
