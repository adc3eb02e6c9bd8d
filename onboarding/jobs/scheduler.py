from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from onboarding.core.config import settings
from onboarding.jobs.tasks import run_due_step_completion, run_mark_candidates_joined, run_step_scheduling


def start_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_step_scheduling,
        IntervalTrigger(minutes=settings.step_schedule_minutes),
        id="step_scheduling",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_due_step_completion,
        IntervalTrigger(minutes=settings.step_sweep_minutes),
        id="due_step_completion",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_mark_candidates_joined,
        CronTrigger(hour=settings.joined_check_hour, minute=0, timezone=settings.calendar_timezone),
        id="mark_candidates_joined",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    return scheduler
