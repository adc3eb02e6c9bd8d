from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.datetime_utils import utcnow_naive
from onboarding.core.step_kinds import StepKind
from onboarding.core.step_machine import ACTIVE_EVENT_STATUSES, COMPLETED
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import ObCandidate
from onboarding.models.message import STATUS_PENDING, STATUS_SENT, ObMessage

REASON_ALREADY_COMPLETED = "already_completed"
REASON_RECENTLY_DISPATCHED = "recently_dispatched"
REASON_BUSINESS_SKIP = "business_skip"


@dataclass(frozen=True)
class GuardDecision:
    skip: bool
    reason: str | None = None

    @classmethod
    def proceed(cls) -> "GuardDecision":
        return cls(skip=False)


def business_skip_reason(candidate: ObCandidate, kind: StepKind) -> str | None:
    for field in kind.skip_if_set:
        if getattr(candidate, field, None):
            return f"{REASON_BUSINESS_SKIP}:{field}"
    return None


def _same_step(step_number: int):
    # Rows written before messages carried a step number match any step of their type.
    return or_(ObMessage.step_number == step_number, ObMessage.step_number.is_(None))


async def _has_completed_event(session: AsyncSession, candidate_id: int, step_number: int) -> bool:
    row = (
        await session.execute(
            select(ObCalendarEvent.calendar_event_id)
            .where(
                ObCalendarEvent.candidate_id == candidate_id,
                ObCalendarEvent.step_number == step_number,
                ObCalendarEvent.status == COMPLETED,
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    return row is not None


async def _has_active_event(session: AsyncSession, candidate_id: int, step_number: int) -> bool:
    row = (
        await session.execute(
            select(ObCalendarEvent.calendar_event_id)
            .where(
                ObCalendarEvent.candidate_id == candidate_id,
                ObCalendarEvent.step_number == step_number,
                ObCalendarEvent.status.in_(list(ACTIVE_EVENT_STATUSES)),
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    return row is not None


async def _has_message(
    session: AsyncSession,
    *,
    candidate_id: int,
    step_number: int,
    message_type: str,
    statuses: list[str],
    since=None,
) -> bool:
    stmt = select(ObMessage.message_id).where(
        ObMessage.candidate_id == candidate_id,
        ObMessage.message_type == message_type,
        ObMessage.status.in_(statuses),
        _same_step(step_number),
    )
    if since is not None:
        stmt = stmt.where(ObMessage.created_at >= since)
    return (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def check_dispatch(
    session: AsyncSession,
    candidate: ObCandidate,
    *,
    step_number: int,
    kind: StepKind,
    message_type: str | None,
) -> GuardDecision:
    reason = business_skip_reason(candidate, kind)
    if reason:
        return GuardDecision(skip=True, reason=reason)

    candidate_id = candidate.candidate_id
    completed = await _has_completed_event(session, candidate_id, step_number)

    if message_type is None:
        # Message-less steps are done once completed and not scheduled again.
        if completed and not await _has_active_event(session, candidate_id, step_number):
            return GuardDecision(skip=True, reason=REASON_ALREADY_COMPLETED)
        return GuardDecision.proceed()

    if completed and await _has_message(
        session,
        candidate_id=candidate_id,
        step_number=step_number,
        message_type=message_type,
        statuses=[STATUS_SENT],
    ):
        return GuardDecision(skip=True, reason=REASON_ALREADY_COMPLETED)

    since = utcnow_naive() - timedelta(minutes=settings.dispatch_debounce_minutes)
    if await _has_message(
        session,
        candidate_id=candidate_id,
        step_number=step_number,
        message_type=message_type,
        statuses=[STATUS_SENT, STATUS_PENDING],
        since=since,
    ):
        return GuardDecision(skip=True, reason=REASON_RECENTLY_DISPATCHED)

    return GuardDecision.proceed()
