from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.exceptions import MissingRequiredAttachmentError
from onboarding.core.step_kinds import StepKind, message_requires_attachment
from onboarding.core.step_machine import COMPLETED, RESCHEDULED, SCHEDULED
from onboarding.models.calendar_event import ObCalendarEvent
from onboarding.models.candidate import ObCandidate

OFFER_LETTER_STEP_NUMBER = 1


def _clean(paths) -> list[str]:
    out: list[str] = []
    for raw in paths or []:
        value = str(raw or "").strip()
        if value and value not in out:
            out.append(value)
    return out


async def _step_event_with_attachments(
    session: AsyncSession, candidate_id: int, step_number: int
) -> ObCalendarEvent | None:
    events = (
        await session.execute(
            select(ObCalendarEvent)
            .where(
                ObCalendarEvent.candidate_id == candidate_id,
                ObCalendarEvent.step_number == step_number,
                ObCalendarEvent.status.in_([SCHEDULED, RESCHEDULED, COMPLETED]),
            )
            .order_by(ObCalendarEvent.created_at.desc(), ObCalendarEvent.calendar_event_id.desc())
        )
    ).scalars().all()
    for event in events:
        if _clean(event.attachment_paths) or (event.attachment_path or "").strip():
            return event
    return None


async def resolve_attachments(
    session: AsyncSession,
    candidate: ObCandidate,
    step_number: int,
    supplied: str | list[str] | None = None,
) -> list[str]:
    """
    Attachments for a step's message, best source first:
    caller-supplied, the step's event list, the step's event single path,
    and for step 1 the candidate's stored offer letter.
    """
    if isinstance(supplied, str):
        supplied = [supplied]
    explicit = _clean(supplied)
    if explicit:
        return explicit

    event = await _step_event_with_attachments(session, candidate.candidate_id, step_number)
    if event is not None:
        listed = _clean(event.attachment_paths)
        if listed:
            return listed
        return _clean([event.attachment_path])

    if step_number == OFFER_LETTER_STEP_NUMBER and candidate.offer_letter_path:
        return _clean([candidate.offer_letter_path])
    return []


def require_attachments(
    attachments: list[str], *, step_number: int, message_type: str | None, kind: StepKind
) -> None:
    if attachments:
        return
    if message_requires_attachment(message_type) or kind.requires_attachment:
        raise MissingRequiredAttachmentError(step_number, message_type or kind.step_type.value)
