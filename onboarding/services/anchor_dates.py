from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.datetime_utils import combine_ist, ist_date, to_utc_naive
from onboarding.core.exceptions import MissingAnchorError
from onboarding.core.step_kinds import SchedulingMethod, StepType, step_duration_minutes
from onboarding.core.step_machine import CANCELLED
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import ObCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepSlot:
    """Start/end of one step occurrence, as IST-aware datetimes."""

    start_at: datetime
    end_at: datetime

    @property
    def start_utc(self) -> datetime:
        return to_utc_naive(self.start_at)

    @property
    def end_utc(self) -> datetime:
        return to_utc_naive(self.end_at)


def default_time_for(method: SchedulingMethod) -> str:
    if method == SchedulingMethod.OFFER_LETTER:
        return settings.default_offer_letter_time
    return settings.default_doj_time


def parse_time_of_day(raw: str | None, default: str) -> time:
    for candidate in (raw, default):
        if not candidate:
            continue
        try:
            hours, minutes = candidate.strip().split(":", 1)
            return time(int(hours), int(minutes))
        except ValueError:
            logger.warning("invalid_time_of_day", extra={"value": candidate})
    return time(9, 0)


def resolve_slot(
    anchor_day: date,
    offset_days: int | None,
    time_of_day: str | None,
    *,
    method: SchedulingMethod = SchedulingMethod.DOJ,
    step_type: StepType | None = None,
) -> StepSlot:
    """Anchor date + offset days at the given local time, in fixed IST."""
    scheduled_day = anchor_day + timedelta(days=offset_days or 0)
    start_at = combine_ist(scheduled_day, parse_time_of_day(time_of_day, default_time_for(method)))
    end_at = start_at + timedelta(minutes=step_duration_minutes(step_type))
    return StepSlot(start_at=start_at, end_at=end_at)


async def earliest_offer_event_start(session: AsyncSession, candidate_id: int) -> datetime | None:
    return (
        await session.execute(
            select(func.min(ObCalendarEvent.start_at)).where(
                ObCalendarEvent.candidate_id == candidate_id,
                ObCalendarEvent.step_type == StepType.OFFER_LETTER.value,
                ObCalendarEvent.status != CANCELLED,
            )
        )
    ).scalar_one_or_none()


async def load_anchor_date(session: AsyncSession, candidate: ObCandidate, method: SchedulingMethod) -> date:
    if method == SchedulingMethod.OFFER_LETTER:
        offer_start = await earliest_offer_event_start(session, candidate.candidate_id)
        base = offer_start or candidate.offer_sent_at
        if base is None:
            raise MissingAnchorError(SchedulingMethod.OFFER_LETTER.value, candidate.candidate_id)
        return ist_date(base)

    joining = candidate.actual_joining_date or candidate.expected_joining_date
    if joining is None:
        raise MissingAnchorError(SchedulingMethod.DOJ.value, candidate.candidate_id)
    return joining


async def resolve_step_slot(
    session: AsyncSession,
    candidate: ObCandidate,
    *,
    method: SchedulingMethod,
    offset_days: int | None,
    time_of_day: str | None,
    step_type: StepType | None,
) -> StepSlot:
    anchor_day = await load_anchor_date(session, candidate, method)
    return resolve_slot(anchor_day, offset_days, time_of_day, method=method, step_type=step_type)
