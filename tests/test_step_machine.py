from __future__ import annotations

import unittest

from onboarding.core.step_machine import (
    ACTIVE_EVENT_STATUSES,
    ALL_EVENT_STATUSES,
    CANCELLED,
    COMPLETED,
    EVENT_GRAPH,
    RESCHEDULED,
    SCHEDULED,
    STEP_CANCELLED,
    STEP_COMPLETED,
    STEP_SCHEDULED,
    STEP_UNSCHEDULED,
    TERMINAL_EVENT_STATUSES,
    active_step_key,
    can_transition,
    derive_step_state,
    is_active_status,
    normalize_event_status,
)


class EventGraphTests(unittest.TestCase):
    def test_graph_covers_all_statuses(self) -> None:
        self.assertSetEqual(set(EVENT_GRAPH.keys()), set(ALL_EVENT_STATUSES))

    def test_terminal_statuses_have_no_outgoing_edges(self) -> None:
        for status in TERMINAL_EVENT_STATUSES:
            self.assertEqual(EVENT_GRAPH[status], frozenset())

    def test_active_and_terminal_partition_statuses(self) -> None:
        self.assertSetEqual(ACTIVE_EVENT_STATUSES | TERMINAL_EVENT_STATUSES, set(ALL_EVENT_STATUSES))
        self.assertFalse(ACTIVE_EVENT_STATUSES & TERMINAL_EVENT_STATUSES)


class TransitionTests(unittest.TestCase):
    def test_new_events_start_scheduled(self) -> None:
        self.assertTrue(can_transition(None, SCHEDULED))
        self.assertFalse(can_transition(None, COMPLETED))

    def test_scheduled_moves(self) -> None:
        self.assertTrue(can_transition(SCHEDULED, RESCHEDULED))
        self.assertTrue(can_transition(SCHEDULED, COMPLETED))
        self.assertTrue(can_transition(SCHEDULED, CANCELLED))
        self.assertTrue(can_transition(RESCHEDULED, RESCHEDULED))

    def test_terminal_states_are_final(self) -> None:
        self.assertFalse(can_transition(COMPLETED, CANCELLED))
        self.assertFalse(can_transition(CANCELLED, SCHEDULED))

    def test_american_spelling_is_normalized(self) -> None:
        self.assertEqual(normalize_event_status(" canceled "), CANCELLED)
        self.assertTrue(can_transition("scheduled", "CANCELED"))

    def test_unknown_status_is_rejected(self) -> None:
        self.assertFalse(can_transition(SCHEDULED, "ARCHIVED"))
        self.assertFalse(is_active_status(None))


class StepStateTests(unittest.TestCase):
    def test_no_events_is_unscheduled(self) -> None:
        self.assertEqual(derive_step_state([]), STEP_UNSCHEDULED)

    def test_active_event_wins(self) -> None:
        self.assertEqual(derive_step_state([COMPLETED, RESCHEDULED]), STEP_SCHEDULED)

    def test_completed_over_cancelled(self) -> None:
        self.assertEqual(derive_step_state([CANCELLED, COMPLETED]), STEP_COMPLETED)
        self.assertEqual(derive_step_state([CANCELLED]), STEP_CANCELLED)

    def test_active_step_key(self) -> None:
        self.assertEqual(active_step_key(12, 4), "12:4")
