from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select

from onboarding.core.config import settings
from onboarding.core.datetime_utils import utcnow_naive
from onboarding.core.step_kinds import MSG_OFFER_REMINDER, MSG_WELCOME_DAY_MINUS_1, SchedulingMethod, StepType
from onboarding.jobs.tasks import run_due_step_completion, run_mark_candidates_joined, run_step_scheduling
from onboarding.models import ObActivityLog, ObCandidate

from factories import JOINING, make_candidate, make_email_template, make_event, make_step_template, step_events


async def _welcome_step(session):
    welcome = await make_email_template(session, MSG_WELCOME_DAY_MINUS_1)
    await make_step_template(
        session,
        3,
        StepType.WELCOME_EMAIL,
        scheduling_method=SchedulingMethod.DOJ,
        due_date_offset=-1,
        scheduled_time_doj="09:00",
        email_template=welcome,
    )


async def test_driver_schedules_candidates_with_anchor(session_factory, calendar):
    async with session_factory() as session:
        await _welcome_step(session)
        # Manual steps are never auto-scheduled.
        await make_step_template(session, 8, StepType.CEO_INDUCTION, due_date_offset=2, scheduled_time_doj="11:00")
        ready = await make_candidate(session, expected_joining_date=JOINING)
        waiting = await make_candidate(session, email="ravi@example.com")
        archived = await make_candidate(
            session, email="old@example.com", expected_joining_date=JOINING, archived_at=datetime(2025, 5, 1)
        )
        other = await make_candidate(session, email="meera@example.com", department="Design", expected_joining_date=JOINING)
        ids = [c.candidate_id for c in (ready, waiting, archived, other)]

    summary = await run_step_scheduling(session_factory, calendar=calendar)

    assert summary == {"created": 1, "skipped": 1, "failed": 0}
    async with session_factory() as session:
        events = await step_events(session, ids[0], 3)
        assert [(e.status, e.start_at) for e in events] == [("SCHEDULED", datetime(2025, 6, 9, 3, 30))]
        assert await step_events(session, ids[0], 8) == []
        for candidate_id in ids[1:]:
            assert await step_events(session, candidate_id, 3) == []


async def test_driver_is_repeatable(session_factory, calendar):
    async with session_factory() as session:
        await _welcome_step(session)
        await make_candidate(session, expected_joining_date=JOINING)

    await run_step_scheduling(session_factory, calendar=calendar)
    summary = await run_step_scheduling(session_factory, calendar=calendar)

    assert summary["created"] == 0
    assert len(calendar.created) == 1


async def test_driver_does_not_reschedule_finished_steps(session_factory, calendar):
    async with session_factory() as session:
        await _welcome_step(session)
        candidate = await make_candidate(session, expected_joining_date=JOINING)
        await make_event(session, candidate, 3, StepType.WELCOME_EMAIL, start_at=datetime(2025, 6, 9, 3, 30), status="CANCELLED")

    summary = await run_step_scheduling(session_factory, calendar=calendar)
    assert summary["created"] == 0


async def test_sweep_completes_due_events(session_factory, calendar, mailer):
    async with session_factory() as session:
        await _welcome_step(session)
        candidate = await make_candidate(session, expected_joining_date=JOINING)
        due = await make_event(session, candidate, 3, StepType.WELCOME_EMAIL, start_at=utcnow_naive() - timedelta(minutes=1))
        candidate_id, due_id = candidate.candidate_id, due.calendar_event_id

    summary = await run_due_step_completion(session_factory, calendar=calendar, mailer=mailer)

    assert summary == {"completed": 1, "skipped": 0, "failed": 0}
    assert len(mailer.sent) == 1
    async with session_factory() as session:
        events = await step_events(session, candidate_id, 3)
        assert [(e.calendar_event_id, e.status) for e in events] == [(due_id, "COMPLETED")]


async def test_sweep_ignores_future_events(session_factory, calendar, mailer):
    async with session_factory() as session:
        await _welcome_step(session)
        candidate = await make_candidate(session, expected_joining_date=JOINING)
        await make_event(session, candidate, 3, StepType.WELCOME_EMAIL, start_at=utcnow_naive() + timedelta(hours=2))

    summary = await run_due_step_completion(session_factory, calendar=calendar, mailer=mailer)
    assert summary == {"completed": 0, "skipped": 0, "failed": 0}
    assert mailer.sent == []


async def test_sweep_records_failures_and_stops_retrying(session_factory, calendar, mailer, monkeypatch):
    monkeypatch.setattr(settings, "step_max_attempts", 2)
    async with session_factory() as session:
        # No email template assigned: a configuration error.
        await make_step_template(session, 3, StepType.WELCOME_EMAIL, scheduling_method=SchedulingMethod.DOJ)
        healthy_template = await make_email_template(session, MSG_WELCOME_DAY_MINUS_1)
        await make_step_template(session, 3, StepType.WELCOME_EMAIL, department="Design", email_template=healthy_template)
        broken = await make_candidate(session, expected_joining_date=JOINING)
        healthy = await make_candidate(session, email="meera@example.com", department="Design")
        past = utcnow_naive() - timedelta(minutes=5)
        await make_event(session, broken, 3, StepType.WELCOME_EMAIL, start_at=past)
        await make_event(session, healthy, 3, StepType.WELCOME_EMAIL, start_at=past)
        broken_id = broken.candidate_id

    first = await run_due_step_completion(session_factory, calendar=calendar, mailer=mailer)
    assert first == {"completed": 1, "skipped": 0, "failed": 1}

    await run_due_step_completion(session_factory, calendar=calendar, mailer=mailer)
    third = await run_due_step_completion(session_factory, calendar=calendar, mailer=mailer)
    assert third == {"completed": 0, "skipped": 0, "failed": 0}

    async with session_factory() as session:
        events = await step_events(session, broken_id, 3)
        assert events[0].status == "SCHEDULED"
        assert events[0].attempts == 2
        assert "email template" in events[0].last_error


async def test_sweep_cancels_business_skipped_events(session_factory, calendar, mailer):
    async with session_factory() as session:
        reminder = await make_email_template(session, MSG_OFFER_REMINDER)
        await make_step_template(
            session,
            2,
            StepType.OFFER_REMINDER,
            scheduling_method=SchedulingMethod.OFFER_LETTER,
            due_date_offset=3,
            scheduled_time_offer_letter="14:00",
            email_template=reminder,
        )
        candidate = await make_candidate(
            session, offer_sent_at=datetime(2025, 6, 1, 6, 0), offer_signed_at=datetime(2025, 6, 2, 6, 0)
        )
        await make_event(session, candidate, 2, StepType.OFFER_REMINDER, start_at=utcnow_naive() - timedelta(minutes=1))
        candidate_id = candidate.candidate_id

    summary = await run_due_step_completion(session_factory, calendar=calendar, mailer=mailer)

    assert summary["skipped"] == 1
    assert mailer.sent == []
    async with session_factory() as session:
        events = await step_events(session, candidate_id, 2)
        assert events[0].status == "CANCELLED"
        assert events[0].cancellation_reason == "skipped:business_skip:offer_signed_at"


async def test_mark_joined_updates_signed_candidates(session_factory):
    async with session_factory() as session:
        signed = await make_candidate(
            session, expected_joining_date=JOINING, offer_signed_at=datetime(2025, 6, 2, 6, 0), status="OFFER_SIGNED"
        )
        unsigned = await make_candidate(
            session, email="ravi@example.com", expected_joining_date=JOINING, status="OFFER_SIGNED"
        )
        later = await make_candidate(
            session,
            email="meera@example.com",
            expected_joining_date=JOINING + timedelta(days=1),
            offer_signed_at=datetime(2025, 6, 2, 6, 0),
            status="READY_TO_JOIN",
        )
        ids = [c.candidate_id for c in (signed, unsigned, later)]

    summary = await run_mark_candidates_joined(session_factory, today=JOINING)
    again = await run_mark_candidates_joined(session_factory, today=JOINING)

    assert summary == {"joined": 1, "failed": 0}
    assert again == {"joined": 0, "failed": 0}
    async with session_factory() as session:
        joined = await session.get(ObCandidate, ids[0])
        assert (joined.status, joined.actual_joining_date) == ("JOINED", JOINING)
        for candidate_id in ids[1:]:
            candidate = await session.get(ObCandidate, candidate_id)
            assert candidate.status != "JOINED"
            assert candidate.actual_joining_date is None
        logs = (await session.execute(select(ObActivityLog))).scalars().all()
        assert [(log.candidate_id, log.action, log.automated) for log in logs] == [(ids[0], "CANDIDATE_JOINED", True)]
