from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onboarding.core.config import settings
from onboarding.core.datetime_utils import ist_date, utcnow_naive
from onboarding.core.step_machine import ACTIVE_EVENT_STATUSES
from onboarding.db.session import SessionLocal
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import READY_TO_JOIN_STATUSES, STATUS_JOINED, ObCandidate
from onboarding.models.step_template import ObStepTemplate
from onboarding.services.activity import log_activity
from onboarding.services.calendar import CalendarProvider, get_calendar_client
from onboarding.services.calendar_events import cancel_event_record, schedule_step
from onboarding.services.dispatch_guard import REASON_RECENTLY_DISPATCHED
from onboarding.services.email import MessageProvider, get_mail_client
from onboarding.services.steps import REASON_IN_PROGRESS, STATUS_SKIPPED, complete_step
from onboarding.services.templates import definition_from_template

logger = logging.getLogger(__name__)

# Skips that a later tick may resolve on its own; the event stays scheduled.
_TRANSIENT_SKIPS = {REASON_IN_PROGRESS, REASON_RECENTLY_DISPATCHED}


async def _candidates_needing_step(session: AsyncSession, department: str, step_number: int) -> list[int]:
    has_event = exists().where(
        and_(
            ObCalendarEvent.candidate_id == ObCandidate.candidate_id,
            ObCalendarEvent.step_number == step_number,
        )
    )
    rows = (
        await session.execute(
            select(ObCandidate.candidate_id)
            .where(
                ObCandidate.department == department,
                ObCandidate.archived_at.is_(None),
                ~has_event,
            )
            .order_by(ObCandidate.candidate_id.asc())
        )
    ).scalars().all()
    return list(rows)


async def run_step_scheduling(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
    calendar: CalendarProvider | None = None,
) -> dict[str, int]:
    """Creates calendar events for active auto steps whose anchor is known."""
    calendar = calendar or get_calendar_client()
    summary = {"created": 0, "skipped": 0, "failed": 0}
    async with session_factory() as session:
        templates = (
            await session.execute(
                select(ObStepTemplate)
                .where(ObStepTemplate.is_active.is_(True))
                .order_by(ObStepTemplate.department.asc(), ObStepTemplate.step_number.asc())
            )
        ).scalars().all()
        auto_templates = [(t.step_template_id, t.department, t.step_number) for t in templates if t.is_auto]

        for template_id, department, step_number in auto_templates:
            for candidate_id in await _candidates_needing_step(session, department, step_number):
                try:
                    template = await session.get(ObStepTemplate, template_id)
                    candidate = await session.get(ObCandidate, candidate_id)
                    if template is None or candidate is None:
                        continue
                    result = await schedule_step(session, candidate, definition_from_template(template), calendar=calendar)
                except Exception:  # noqa: BLE001
                    logger.exception(
                        "step_scheduling_failed",
                        extra={"candidate_id": candidate_id, "step_number": step_number},
                    )
                    await session.rollback()
                    summary["failed"] += 1
                    continue
                summary["created" if result.created else "skipped"] += 1

    if summary["created"] or summary["failed"]:
        logger.info("step_scheduling_run", extra=summary)
    return summary


async def _record_attempt_failure(session: AsyncSession, calendar_event_id: int, error: str) -> None:
    event = await session.get(ObCalendarEvent, calendar_event_id)
    if event is None:
        return
    event.attempts = (event.attempts or 0) + 1
    event.last_error = error[:2000]
    await session.commit()


async def _cancel_skipped_event(
    session: AsyncSession, calendar_event_id: int, reason: str, calendar: CalendarProvider
) -> None:
    event = await session.get(ObCalendarEvent, calendar_event_id)
    if event is None or event.status not in ACTIVE_EVENT_STATUSES:
        return
    await cancel_event_record(session, event, reason=f"skipped:{reason}", calendar=calendar)
    await session.commit()


async def run_due_step_completion(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
    calendar: CalendarProvider | None = None,
    mailer: MessageProvider | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Completes scheduled steps whose start time has passed."""
    calendar = calendar or get_calendar_client()
    mailer = mailer or get_mail_client()
    now = now or utcnow_naive()
    summary = {"completed": 0, "skipped": 0, "failed": 0}

    async with session_factory() as session:
        due = (
            await session.execute(
                select(ObCalendarEvent.calendar_event_id, ObCalendarEvent.candidate_id, ObCalendarEvent.step_number)
                .join(ObCandidate, ObCandidate.candidate_id == ObCalendarEvent.candidate_id)
                .where(
                    ObCalendarEvent.status.in_(list(ACTIVE_EVENT_STATUSES)),
                    ObCalendarEvent.start_at <= now,
                    ObCalendarEvent.attempts < settings.step_max_attempts,
                    ObCandidate.archived_at.is_(None),
                )
                .order_by(ObCalendarEvent.start_at.asc())
            )
        ).all()

        for calendar_event_id, candidate_id, step_number in due:
            try:
                result = await complete_step(
                    session, candidate_id, step_number, calendar=calendar, mailer=mailer
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "step_sweep_failed",
                    extra={
                        "candidate_id": candidate_id,
                        "step_number": step_number,
                        "calendar_event_id": calendar_event_id,
                    },
                )
                await session.rollback()
                await _record_attempt_failure(session, calendar_event_id, str(exc))
                summary["failed"] += 1
                continue

            if result.status == STATUS_SKIPPED:
                summary["skipped"] += 1
                if result.reason not in _TRANSIENT_SKIPS:
                    await _cancel_skipped_event(session, calendar_event_id, result.reason or "skipped", calendar)
                continue
            summary["completed"] += 1

    if due:
        logger.info("step_sweep_run", extra=summary)
    return summary


async def run_mark_candidates_joined(
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
    today: date | None = None,
) -> dict[str, int]:
    """Marks signed candidates whose expected joining date is today as JOINED."""
    today = today or ist_date(utcnow_naive())
    summary = {"joined": 0, "failed": 0}
    async with session_factory() as session:
        candidate_ids = (
            await session.execute(
                select(ObCandidate.candidate_id)
                .where(
                    ObCandidate.expected_joining_date == today,
                    ObCandidate.offer_signed_at.is_not(None),
                    ObCandidate.status.in_(READY_TO_JOIN_STATUSES),
                    ObCandidate.archived_at.is_(None),
                )
                .order_by(ObCandidate.candidate_id.asc())
            )
        ).scalars().all()

        for candidate_id in candidate_ids:
            try:
                candidate = await session.get(ObCandidate, candidate_id)
                if candidate is None:
                    continue
                candidate.status = STATUS_JOINED
                candidate.actual_joining_date = today
                await log_activity(
                    session,
                    candidate_id=candidate_id,
                    action="CANDIDATE_JOINED",
                    description="Candidate marked as JOINED on joining day",
                )
                await session.commit()
            except Exception:  # noqa: BLE001
                logger.exception("candidate_join_failed", extra={"candidate_id": candidate_id})
                await session.rollback()
                summary["failed"] += 1
                continue
            summary["joined"] += 1

    if candidate_ids:
        logger.info("candidates_joined_run", extra=summary)
    return summary
