from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from onboarding.core.exceptions import CalendarEventNotFoundError, InvalidTransitionError
from onboarding.core.step_kinds import MSG_OFFER_LETTER, SchedulingMethod, StepType
from onboarding.models import ObActivityLog
from onboarding.services.calendar_events import (
    batch_schedule_step,
    cancel_event,
    reschedule_event,
    schedule_step,
)
from onboarding.services.templates import resolve_step_definition

from factories import FakeCalendar, JOINING, make_candidate, make_email_template, make_event, make_step_template, step_events


async def _hr_induction(session):
    await make_step_template(
        session,
        4,
        StepType.HR_INDUCTION,
        scheduling_method=SchedulingMethod.DOJ,
        due_date_offset=0,
        scheduled_time_doj="09:30",
    )
    return await resolve_step_definition(session, "Sales", 4)


async def test_schedule_resolves_slot_from_joining_date(db_session, calendar):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)

    result = await schedule_step(db_session, candidate, definition, calendar=calendar)

    assert result.created
    event = result.event
    assert event.status == "SCHEDULED"
    assert event.start_at == datetime(2025, 6, 10, 4, 0)
    assert event.end_at == datetime(2025, 6, 10, 5, 0)
    assert event.active_step_key == f"{candidate.candidate_id}:4"
    assert event.external_event_id == "gcal-1"
    assert calendar.created[0]["attendees"] == ["asha.rao@example.com"]


async def test_schedule_is_idempotent(db_session, calendar):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)

    first = await schedule_step(db_session, candidate, definition, calendar=calendar)
    second = await schedule_step(db_session, candidate, definition, calendar=calendar)

    assert not second.created
    assert second.skipped_reason == "already_scheduled"
    assert second.event.calendar_event_id == first.event.calendar_event_id
    assert len(await step_events(db_session, candidate.candidate_id, 4)) == 1
    assert len(calendar.created) == 1


async def test_schedule_without_anchor_is_skipped(db_session, calendar):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session)

    result = await schedule_step(db_session, candidate, definition, calendar=calendar)

    assert not result.created
    assert result.skipped_reason == "missing_anchor"
    assert await step_events(db_session, candidate.candidate_id, 4) == []


async def test_calendar_failure_keeps_local_event(db_session):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)

    result = await schedule_step(db_session, candidate, definition, calendar=FakeCalendar(fail=True))

    assert result.created
    assert result.event.external_event_id is None
    assert [e.status for e in await step_events(db_session, candidate.candidate_id, 4)] == ["SCHEDULED"]


async def test_explicit_start_and_attachments(db_session, calendar):
    offer = await make_email_template(db_session, MSG_OFFER_LETTER)
    await make_step_template(db_session, 1, StepType.OFFER_LETTER, email_template=offer)
    definition = await resolve_step_definition(db_session, "Sales", 1)
    candidate = await make_candidate(db_session)
    start = datetime(2025, 6, 1, 15, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))

    result = await schedule_step(
        db_session,
        candidate,
        definition,
        calendar=calendar,
        start_at=start,
        duration_minutes=45,
        attachments=["offers/asha.pdf", " ", "offers/annexure.pdf"],
    )

    event = result.event
    assert event.start_at == datetime(2025, 6, 1, 9, 30)
    assert event.end_at == datetime(2025, 6, 1, 10, 15)
    assert event.attachment_paths == ["offers/asha.pdf", "offers/annexure.pdf"]
    assert event.attachment_path == "offers/asha.pdf"
    await db_session.refresh(candidate)
    assert candidate.offer_letter_path == "offers/asha.pdf"


async def test_manual_step_falls_back_to_joining_date(db_session, calendar):
    await make_step_template(db_session, 8, StepType.CEO_INDUCTION, due_date_offset=2)
    definition = await resolve_step_definition(db_session, "Sales", 8)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)

    result = await schedule_step(db_session, candidate, definition, calendar=calendar)

    assert result.event.start_at == datetime(2025, 6, 12, 3, 30)


async def test_reschedule_keeps_duration_and_syncs(db_session, calendar):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)
    scheduled = await schedule_step(db_session, candidate, definition, calendar=calendar)

    event = await reschedule_event(
        db_session,
        scheduled.event.calendar_event_id,
        start_at=datetime(2025, 6, 11, 6, 0),
        calendar=calendar,
    )
    await db_session.commit()

    assert event.status == "RESCHEDULED"
    assert event.end_at == datetime(2025, 6, 11, 7, 0)
    assert calendar.updated == [
        {"event_id": "gcal-1", "start_at": datetime(2025, 6, 11, 6, 0), "end_at": datetime(2025, 6, 11, 7, 0)}
    ]
    actions = (await db_session.execute(select(ObActivityLog.action))).scalars().all()
    assert "STEP_RESCHEDULED" in actions


async def test_reschedule_rejects_inverted_range(db_session, calendar):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)
    scheduled = await schedule_step(db_session, candidate, definition, calendar=calendar)
    with pytest.raises(InvalidTransitionError):
        await reschedule_event(
            db_session,
            scheduled.event.calendar_event_id,
            start_at=datetime(2025, 6, 11, 6, 0),
            end_at=datetime(2025, 6, 11, 5, 0),
            calendar=calendar,
        )


async def test_cancel_frees_the_step(db_session, calendar):
    definition = await _hr_induction(db_session)
    candidate = await make_candidate(db_session, expected_joining_date=JOINING)
    scheduled = await schedule_step(db_session, candidate, definition, calendar=calendar)

    event = await cancel_event(
        db_session, scheduled.event.calendar_event_id, reason="candidate unavailable", calendar=calendar
    )
    await db_session.commit()

    assert event.status == "CANCELLED"
    assert event.active_step_key is None
    assert calendar.deleted == ["gcal-1"]
    again = await schedule_step(db_session, candidate, definition, calendar=calendar)
    assert again.created


async def test_completed_event_cannot_be_cancelled(db_session, calendar):
    candidate = await make_candidate(db_session)
    event = await make_event(db_session, candidate, 4, StepType.HR_INDUCTION, start_at=datetime(2025, 6, 10, 4, 0), status="COMPLETED")
    with pytest.raises(InvalidTransitionError):
        await cancel_event(db_session, event.calendar_event_id, reason=None, calendar=calendar)


async def test_unknown_event(db_session, calendar):
    with pytest.raises(CalendarEventNotFoundError):
        await cancel_event(db_session, 999, reason=None, calendar=calendar)


async def test_batch_schedule_continues_past_failures(db_session, calendar):
    await _hr_induction(db_session)
    first = await make_candidate(db_session, expected_joining_date=JOINING)
    second = await make_candidate(db_session, email="ravi@example.com", first_name="Ravi")
    other_department = await make_candidate(db_session, email="meera@example.com", department="Design")

    ids = [first.candidate_id, 404, second.candidate_id, other_department.candidate_id]
    result = await batch_schedule_step(
        db_session,
        ids,
        4,
        calendar=calendar,
        start_at=datetime(2025, 6, 10, 4, 0),
    )

    by_candidate = {item.candidate_id: item for item in result.items}
    assert by_candidate[ids[0]].status == "created"
    assert by_candidate[404].status == "failed"
    assert by_candidate[ids[2]].status == "created"
    # Design has no templates; the legacy numbering still knows step 4.
    assert by_candidate[ids[3]].status == "created"
    assert result.count("created") == 3
    assert result.count("failed") == 1


async def test_batch_schedule_unknown_step(db_session, calendar):
    candidate = await make_candidate(db_session)
    result = await batch_schedule_step(
        db_session, [candidate.candidate_id], 42, calendar=calendar, start_at=datetime(2025, 6, 10, 4, 0)
    )
    assert result.items[0].status == "failed"
    assert "Step 42" in result.items[0].reason
