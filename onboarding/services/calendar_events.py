from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import anyio
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.datetime_utils import to_utc_naive, utcnow_naive
from onboarding.core.exceptions import (
    CalendarEventNotFoundError,
    CandidateNotFoundError,
    InvalidTransitionError,
    MissingAnchorError,
    OnboardingError,
)
from onboarding.core.step_kinds import SchedulingMethod, StepType, step_duration_minutes
from onboarding.core.step_machine import (
    ACTIVE_EVENT_STATUSES,
    CANCELLED,
    COMPLETED,
    RESCHEDULED,
    SCHEDULED,
    active_step_key,
    can_transition,
)
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import ObCandidate
from onboarding.services.activity import log_activity
from onboarding.services.anchor_dates import resolve_step_slot
from onboarding.services.calendar import CalendarProvider
from onboarding.services.templates import StepDefinition, resolve_step_definition

logger = logging.getLogger(__name__)

SKIP_ALREADY_SCHEDULED = "already_scheduled"
SKIP_MISSING_ANCHOR = "missing_anchor"


@dataclass
class ScheduleResult:
    created: bool
    event: ObCalendarEvent | None = None
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return not self.created


@dataclass
class BatchScheduleItem:
    candidate_id: int
    status: str
    reason: str | None = None
    calendar_event_id: int | None = None


@dataclass
class BatchScheduleResult:
    step_number: int
    items: list[BatchScheduleItem] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for item in self.items if item.status == status)


async def _external_call(action: str, fn: Callable[[], Any], **context: Any) -> Any:
    """Runs a blocking provider call off-loop; failures and timeouts are logged, never raised."""
    try:
        with anyio.fail_after(settings.calendar_timeout_seconds):
            return await anyio.to_thread.run_sync(fn, abandon_on_cancel=True)
    except Exception as exc:  # noqa: BLE001
        logger.warning("calendar_sync_failed", extra={"action": action, "error": str(exc), **context})
        return None


async def get_active_event(session: AsyncSession, candidate_id: int, step_number: int) -> ObCalendarEvent | None:
    return (
        await session.execute(
            select(ObCalendarEvent)
            .where(
                ObCalendarEvent.candidate_id == candidate_id,
                ObCalendarEvent.step_number == step_number,
                ObCalendarEvent.status.in_(list(ACTIVE_EVENT_STATUSES)),
            )
            .order_by(ObCalendarEvent.calendar_event_id.desc())
        )
    ).scalars().first()


async def list_candidate_events(session: AsyncSession, candidate_id: int) -> list[ObCalendarEvent]:
    return list(
        (
            await session.execute(
                select(ObCalendarEvent)
                .where(ObCalendarEvent.candidate_id == candidate_id)
                .order_by(ObCalendarEvent.step_number.asc(), ObCalendarEvent.calendar_event_id.asc())
            )
        ).scalars().all()
    )


def _clean_paths(paths: list[str] | None) -> list[str]:
    return [p.strip() for p in (paths or []) if p and p.strip()]


async def schedule_step(
    session: AsyncSession,
    candidate: ObCandidate,
    definition: StepDefinition,
    *,
    calendar: CalendarProvider,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
    duration_minutes: int | None = None,
    attachments: list[str] | None = None,
    attendees: list[str] | None = None,
    actor_id: str | None = None,
) -> ScheduleResult:
    """
    Creates the single active calendar event for (candidate, step).

    Returns the existing event unchanged when one is already active. Without an explicit
    start_at the slot is resolved from the step's anchor; a missing anchor is a skip.
    Commits the new event before attempting the external calendar.
    """
    candidate_id = candidate.candidate_id
    step_number = definition.step_number

    existing = await get_active_event(session, candidate_id, step_number)
    if existing is not None:
        return ScheduleResult(created=False, event=existing, skipped_reason=SKIP_ALREADY_SCHEDULED)

    if start_at is not None:
        start_utc = to_utc_naive(start_at)
        if end_at is not None:
            end_utc = to_utc_naive(end_at)
        else:
            minutes = duration_minutes or step_duration_minutes(definition.step_type)
            end_utc = start_utc + timedelta(minutes=minutes)
    else:
        method = definition.scheduling_method
        if method == SchedulingMethod.MANUAL:
            # Manual steps without an explicit time fall back to the joining date.
            method = SchedulingMethod.DOJ
        try:
            slot = await resolve_step_slot(
                session,
                candidate,
                method=method,
                offset_days=definition.due_date_offset,
                time_of_day=definition.time_of_day,
                step_type=definition.step_type,
            )
        except MissingAnchorError as exc:
            logger.info(
                "step_schedule_missing_anchor",
                extra={"candidate_id": candidate_id, "step_number": step_number, "anchor": exc.anchor_kind},
            )
            return ScheduleResult(created=False, skipped_reason=SKIP_MISSING_ANCHOR)
        start_utc, end_utc = slot.start_utc, slot.end_utc

    paths = _clean_paths(attachments)
    attendee_list = [candidate.email] + [a for a in (attendees or []) if a and a != candidate.email]
    title = f"{definition.title} - {candidate.full_name}".strip(" -")
    description = definition.template.description if definition.template is not None else None

    event = ObCalendarEvent(
        candidate_id=candidate_id,
        step_number=step_number,
        step_type=definition.step_type.value,
        title=title,
        description=description,
        start_at=start_utc,
        end_at=end_utc,
        attendees=attendee_list,
        status=SCHEDULED,
        active_step_key=active_step_key(candidate_id, step_number),
        attachment_path=paths[0] if paths else None,
        attachment_paths=paths or None,
    )
    session.add(event)
    if paths and definition.step_type == StepType.OFFER_LETTER:
        candidate.offer_letter_path = paths[0]
    await log_activity(
        session,
        candidate_id=candidate_id,
        action="STEP_SCHEDULED",
        description=f"Step {step_number} ({definition.step_type.value}) scheduled",
        step_number=step_number,
        actor_id=actor_id,
    )
    try:
        await session.commit()
    except IntegrityError:
        # Another trigger created the active event first.
        await session.rollback()
        existing = await get_active_event(session, candidate_id, step_number)
        return ScheduleResult(created=False, event=existing, skipped_reason=SKIP_ALREADY_SCHEDULED)

    response = await _external_call(
        "create",
        lambda: calendar.create_event(
            summary=title,
            description=description,
            start_at=start_utc,
            end_at=end_utc,
            attendees=attendee_list,
        ),
        candidate_id=candidate_id,
        step_number=step_number,
    )
    if isinstance(response, dict) and response.get("event_id"):
        event.external_event_id = response.get("event_id")
        event.meeting_link = response.get("meeting_link")
        await session.commit()

    logger.info(
        "step_scheduled",
        extra={
            "candidate_id": candidate_id,
            "step_number": step_number,
            "calendar_event_id": event.calendar_event_id,
            "start_at": start_utc.isoformat(),
        },
    )
    return ScheduleResult(created=True, event=event)


async def complete_step_event(
    session: AsyncSession,
    *,
    candidate_id: int,
    step_number: int,
    step_type: StepType,
    title: str,
) -> ObCalendarEvent:
    """Marks the active event for this exact step COMPLETED, recording one if none was scheduled."""
    now = utcnow_naive()
    event = await get_active_event(session, candidate_id, step_number)
    if event is None:
        event = ObCalendarEvent(
            candidate_id=candidate_id,
            step_number=step_number,
            step_type=step_type.value,
            title=title,
            start_at=now,
            end_at=now + timedelta(minutes=step_duration_minutes(step_type)),
            status=COMPLETED,
            active_step_key=None,
            completed_at=now,
        )
        session.add(event)
        await session.flush()
        return event

    if not can_transition(event.status, COMPLETED):
        raise InvalidTransitionError(f"Cannot complete calendar event in status {event.status}")
    event.status = COMPLETED
    event.active_step_key = None
    event.completed_at = now
    event.last_error = None
    await session.flush()
    return event


async def cancel_event_record(
    session: AsyncSession,
    event: ObCalendarEvent,
    *,
    reason: str | None,
    calendar: CalendarProvider,
) -> ObCalendarEvent:
    if not can_transition(event.status, CANCELLED):
        raise InvalidTransitionError(f"Cannot cancel calendar event in status {event.status}")
    external_id = event.external_event_id
    if external_id:
        await _external_call(
            "delete",
            lambda: calendar.delete_event(external_id),
            calendar_event_id=event.calendar_event_id,
        )
    event.status = CANCELLED
    event.active_step_key = None
    event.cancellation_reason = reason
    await session.flush()
    return event


async def _get_event(session: AsyncSession, calendar_event_id: int) -> ObCalendarEvent:
    event = await session.get(ObCalendarEvent, calendar_event_id)
    if event is None:
        raise CalendarEventNotFoundError(f"Calendar event {calendar_event_id} not found")
    return event


async def reschedule_event(
    session: AsyncSession,
    calendar_event_id: int,
    *,
    start_at: datetime,
    end_at: datetime | None = None,
    calendar: CalendarProvider,
    actor_id: str | None = None,
) -> ObCalendarEvent:
    event = await _get_event(session, calendar_event_id)
    if not can_transition(event.status, RESCHEDULED):
        raise InvalidTransitionError(f"Cannot reschedule calendar event in status {event.status}")

    start_utc = to_utc_naive(start_at)
    if end_at is not None:
        end_utc = to_utc_naive(end_at)
    else:
        end_utc = start_utc + (event.end_at - event.start_at)
    if end_utc <= start_utc:
        raise InvalidTransitionError("End time must be after start time")

    external_id = event.external_event_id
    if external_id:
        await _external_call(
            "update",
            lambda: calendar.update_event(external_id, start_at=start_utc, end_at=end_utc),
            calendar_event_id=calendar_event_id,
        )

    event.start_at = start_utc
    event.end_at = end_utc
    event.status = RESCHEDULED
    event.attempts = 0
    event.last_error = None
    await log_activity(
        session,
        candidate_id=event.candidate_id,
        action="STEP_RESCHEDULED",
        description=f"Step {event.step_number} rescheduled to {start_utc.isoformat()} UTC",
        step_number=event.step_number,
        actor_id=actor_id,
    )
    return event


async def cancel_event(
    session: AsyncSession,
    calendar_event_id: int,
    *,
    reason: str | None,
    calendar: CalendarProvider,
    actor_id: str | None = None,
) -> ObCalendarEvent:
    event = await _get_event(session, calendar_event_id)
    await cancel_event_record(session, event, reason=reason, calendar=calendar)
    await log_activity(
        session,
        candidate_id=event.candidate_id,
        action="STEP_CANCELLED",
        description=f"Step {event.step_number} cancelled" + (f": {reason}" if reason else ""),
        step_number=event.step_number,
        actor_id=actor_id,
    )
    return event


async def batch_schedule_step(
    session: AsyncSession,
    candidate_ids: list[int],
    step_number: int,
    *,
    calendar: CalendarProvider,
    start_at: datetime | None = None,
    duration_minutes: int | None = None,
    attachments: list[str] | None = None,
    actor_id: str | None = None,
) -> BatchScheduleResult:
    result = BatchScheduleResult(step_number=step_number)
    for candidate_id in dict.fromkeys(candidate_ids):
        try:
            candidate = await session.get(ObCandidate, candidate_id)
            if candidate is None:
                raise CandidateNotFoundError(candidate_id)
            definition = await resolve_step_definition(session, candidate.department, step_number)
            scheduled = await schedule_step(
                session,
                candidate,
                definition,
                calendar=calendar,
                start_at=start_at,
                duration_minutes=duration_minutes,
                attachments=attachments,
                actor_id=actor_id,
            )
        except OnboardingError as exc:
            result.items.append(BatchScheduleItem(candidate_id=candidate_id, status="failed", reason=exc.message))
            continue
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "batch_schedule_failed",
                extra={"candidate_id": candidate_id, "step_number": step_number},
            )
            await session.rollback()
            result.items.append(BatchScheduleItem(candidate_id=candidate_id, status="failed", reason=str(exc)))
            continue

        event_id = scheduled.event.calendar_event_id if scheduled.event is not None else None
        if scheduled.created:
            result.items.append(BatchScheduleItem(candidate_id=candidate_id, status="created", calendar_event_id=event_id))
        else:
            result.items.append(
                BatchScheduleItem(
                    candidate_id=candidate_id,
                    status="skipped",
                    reason=scheduled.skipped_reason,
                    calendar_event_id=event_id,
                )
            )
    return result
