from __future__ import annotations

from typing import Iterable


# Calendar event statuses.
SCHEDULED = "SCHEDULED"
RESCHEDULED = "RESCHEDULED"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"

ALL_EVENT_STATUSES: tuple[str, ...] = (SCHEDULED, RESCHEDULED, COMPLETED, CANCELLED)

ACTIVE_EVENT_STATUSES: frozenset[str] = frozenset({SCHEDULED, RESCHEDULED})
TERMINAL_EVENT_STATUSES: frozenset[str] = frozenset({COMPLETED, CANCELLED})


# Per-(candidate, step) workflow states, derived from events.
STEP_UNSCHEDULED = "unscheduled"
STEP_SCHEDULED = "scheduled"
STEP_COMPLETED = "completed"
STEP_CANCELLED = "cancelled"


EVENT_GRAPH: dict[str, frozenset[str]] = {
    SCHEDULED: frozenset({RESCHEDULED, COMPLETED, CANCELLED}),
    RESCHEDULED: frozenset({RESCHEDULED, COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


def normalize_event_status(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().upper()
    if not normalized:
        return None
    if normalized == "CANCELED":
        return CANCELLED
    return normalized


def is_active_status(status: str | None) -> bool:
    return normalize_event_status(status) in ACTIVE_EVENT_STATUSES


def can_transition(from_status: str | None, to_status: str | None) -> bool:
    from_normalized = normalize_event_status(from_status)
    to_normalized = normalize_event_status(to_status)
    if to_normalized not in EVENT_GRAPH:
        return False
    # New events always start scheduled.
    if from_normalized is None:
        return to_normalized == SCHEDULED
    if from_normalized not in EVENT_GRAPH:
        return False
    return to_normalized in EVENT_GRAPH[from_normalized]


def active_step_key(candidate_id: int, step_number: int) -> str:
    return f"{candidate_id}:{step_number}"


def derive_step_state(statuses: Iterable[str]) -> str:
    """Collapse the event history of one (candidate, step) pair into a workflow state."""
    seen = {normalize_event_status(s) for s in statuses}
    if seen & ACTIVE_EVENT_STATUSES:
        return STEP_SCHEDULED
    if COMPLETED in seen:
        return STEP_COMPLETED
    if CANCELLED in seen:
        return STEP_CANCELLED
    return STEP_UNSCHEDULED
