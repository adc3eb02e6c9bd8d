from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.models.activity_log import ObActivityLog


async def log_activity(
    session: AsyncSession,
    *,
    candidate_id: int,
    action: str,
    description: str | None = None,
    step_number: int | None = None,
    actor_id: str | None = None,
) -> ObActivityLog:
    entry = ObActivityLog(
        candidate_id=candidate_id,
        action=action,
        description=description,
        step_number=step_number,
        actor_id=actor_id,
        automated=actor_id is None,
    )
    session.add(entry)
    await session.flush()
    return entry
