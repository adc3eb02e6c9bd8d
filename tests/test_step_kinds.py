from __future__ import annotations

import unittest

from onboarding.core.step_kinds import (
    LEGACY_STEP_TYPES,
    MSG_OFFER_LETTER,
    STEP_KINDS,
    SchedulingMethod,
    StepType,
    default_step_definitions,
    message_requires_attachment,
    normalize_step_type,
    step_duration_minutes,
)


class StepKindTableTests(unittest.TestCase):
    def test_every_step_type_has_a_kind(self) -> None:
        self.assertSetEqual(set(STEP_KINDS.keys()), set(StepType))
        for step_type, kind in STEP_KINDS.items():
            self.assertEqual(kind.step_type, step_type)

    def test_durations(self) -> None:
        self.assertEqual(step_duration_minutes(StepType.OFFER_REMINDER), 15)
        self.assertEqual(step_duration_minutes(StepType.HR_INDUCTION), 60)
        self.assertEqual(step_duration_minutes(StepType.SALES_INDUCTION), 90)
        self.assertEqual(step_duration_minutes(StepType.TRAINING), 30)
        self.assertEqual(step_duration_minutes(None), 30)

    def test_only_offer_reminder_business_skips(self) -> None:
        skipping = {t for t, kind in STEP_KINDS.items() if kind.skip_if_set}
        self.assertSetEqual(skipping, {StepType.OFFER_REMINDER})
        self.assertIn("offer_signed_at", STEP_KINDS[StepType.OFFER_REMINDER].skip_if_set)

    def test_offer_letter_requires_attachment(self) -> None:
        self.assertTrue(message_requires_attachment(MSG_OFFER_LETTER))
        self.assertFalse(message_requires_attachment("WELCOME_DAY_MINUS_1"))
        self.assertFalse(message_requires_attachment(None))

    def test_undo_reverts_only_flag_markers(self) -> None:
        for kind in STEP_KINDS.values():
            if kind.revert_marker_on_undo:
                self.assertIsNotNone(kind.marker_field)

    def test_legacy_mapping(self) -> None:
        self.assertEqual(LEGACY_STEP_TYPES[1], StepType.OFFER_LETTER)
        self.assertEqual(LEGACY_STEP_TYPES[11], StepType.CHECKIN_CALL)
        self.assertEqual(len(LEGACY_STEP_TYPES), 11)


class NormalizeStepTypeTests(unittest.TestCase):
    def test_aliases(self) -> None:
        self.assertEqual(normalize_step_type("whatsapp_task"), StepType.WHATSAPP_ADDITION)
        self.assertEqual(normalize_step_type("CUSTOM"), StepType.MANUAL)
        self.assertEqual(normalize_step_type("hr induction"), StepType.HR_INDUCTION)

    def test_unknown(self) -> None:
        self.assertIsNone(normalize_step_type("PAYROLL"))
        self.assertIsNone(normalize_step_type(None))


class DefaultStepDefinitionTests(unittest.TestCase):
    def test_eleven_steps_in_order(self) -> None:
        steps = default_step_definitions("Marketing")
        self.assertEqual([s["step_number"] for s in steps], list(range(1, 12)))

    def test_department_specific_induction(self) -> None:
        sales = {s["step_number"]: s for s in default_step_definitions("Sales")}
        marketing = {s["step_number"]: s for s in default_step_definitions("Marketing")}
        self.assertEqual(sales[9]["step_type"], StepType.SALES_INDUCTION)
        self.assertEqual(marketing[9]["step_type"], StepType.DEPARTMENT_INDUCTION)
        self.assertEqual(marketing[9]["title"], "Marketing Induction")

    def test_offer_reminder_is_offer_letter_based(self) -> None:
        steps = {s["step_number"]: s for s in default_step_definitions("Sales")}
        self.assertEqual(steps[2]["scheduling_method"], SchedulingMethod.OFFER_LETTER)
        self.assertEqual(steps[2]["due_date_offset"], 3)
        self.assertEqual(steps[1]["scheduling_method"], SchedulingMethod.MANUAL)
