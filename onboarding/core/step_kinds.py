from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StepType(str, Enum):
    OFFER_LETTER = "OFFER_LETTER"
    OFFER_REMINDER = "OFFER_REMINDER"
    WELCOME_EMAIL = "WELCOME_EMAIL"
    HR_INDUCTION = "HR_INDUCTION"
    WHATSAPP_ADDITION = "WHATSAPP_ADDITION"
    ONBOARDING_FORM = "ONBOARDING_FORM"
    FORM_REMINDER = "FORM_REMINDER"
    CEO_INDUCTION = "CEO_INDUCTION"
    SALES_INDUCTION = "SALES_INDUCTION"
    DEPARTMENT_INDUCTION = "DEPARTMENT_INDUCTION"
    TRAINING_PLAN = "TRAINING_PLAN"
    CHECKIN_CALL = "CHECKIN_CALL"
    TRAINING = "TRAINING"
    MANUAL = "MANUAL"


class SchedulingMethod(str, Enum):
    DOJ = "doj"
    OFFER_LETTER = "offerLetter"
    MANUAL = "manual"


# Message (email template) types.
MSG_OFFER_LETTER = "OFFER_LETTER"
MSG_OFFER_REMINDER = "OFFER_REMINDER"
MSG_WELCOME_DAY_MINUS_1 = "WELCOME_DAY_MINUS_1"
MSG_HR_INDUCTION_INVITE = "HR_INDUCTION_INVITE"
MSG_WHATSAPP_TASK = "WHATSAPP_TASK"
MSG_ONBOARDING_FORM = "ONBOARDING_FORM"
MSG_FORM_REMINDER = "FORM_REMINDER"
MSG_CEO_INDUCTION_INVITE = "CEO_INDUCTION_INVITE"
MSG_SALES_INDUCTION_INVITE = "SALES_INDUCTION_INVITE"
MSG_TRAINING_PLAN = "TRAINING_PLAN"
MSG_CHECKIN_INVITE = "CHECKIN_INVITE"
MSG_CUSTOM = "CUSTOM"

MESSAGE_TYPES: tuple[str, ...] = (
    MSG_OFFER_LETTER,
    MSG_OFFER_REMINDER,
    MSG_WELCOME_DAY_MINUS_1,
    MSG_HR_INDUCTION_INVITE,
    MSG_WHATSAPP_TASK,
    MSG_ONBOARDING_FORM,
    MSG_FORM_REMINDER,
    MSG_CEO_INDUCTION_INVITE,
    MSG_SALES_INDUCTION_INVITE,
    MSG_TRAINING_PLAN,
    MSG_CHECKIN_INVITE,
    MSG_CUSTOM,
)

MESSAGE_TYPES_REQUIRING_ATTACHMENT: frozenset[str] = frozenset({MSG_OFFER_LETTER})
MESSAGE_TYPES_WITH_FORM_LINK: frozenset[str] = frozenset({MSG_ONBOARDING_FORM, MSG_FORM_REMINDER})

MARKER_TIMESTAMP = "timestamp"
MARKER_FLAG = "flag"

DEFAULT_DURATION_MINUTES = 30


@dataclass(frozen=True)
class StepKind:
    step_type: StepType
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    marker_field: str | None = None
    marker_kind: str = MARKER_FLAG
    # Message type used when the step comes from the legacy mapping rather than a template.
    default_message_type: str | None = None
    requires_attachment: bool = False
    revert_marker_on_undo: bool = False
    # Candidate fields that, when set, make the step pointless.
    skip_if_set: tuple[str, ...] = ()


STEP_KINDS: dict[StepType, StepKind] = {
    StepType.OFFER_LETTER: StepKind(
        StepType.OFFER_LETTER,
        duration_minutes=30,
        marker_field="offer_sent_at",
        marker_kind=MARKER_TIMESTAMP,
        default_message_type=MSG_OFFER_LETTER,
        requires_attachment=True,
    ),
    StepType.OFFER_REMINDER: StepKind(
        StepType.OFFER_REMINDER,
        duration_minutes=15,
        marker_field="offer_reminder_sent",
        default_message_type=MSG_OFFER_REMINDER,
        # TODO: confirm with HR whether other reminder kinds should declare their own skip markers.
        skip_if_set=("offer_signed_at", "signed_offer_path"),
    ),
    StepType.WELCOME_EMAIL: StepKind(
        StepType.WELCOME_EMAIL,
        duration_minutes=30,
        marker_field="welcome_email_sent_at",
        marker_kind=MARKER_TIMESTAMP,
        default_message_type=MSG_WELCOME_DAY_MINUS_1,
    ),
    StepType.HR_INDUCTION: StepKind(
        StepType.HR_INDUCTION,
        duration_minutes=60,
        marker_field="hr_induction_scheduled",
        revert_marker_on_undo=True,
    ),
    StepType.WHATSAPP_ADDITION: StepKind(
        StepType.WHATSAPP_ADDITION,
        duration_minutes=15,
        marker_field="whatsapp_groups_added",
        revert_marker_on_undo=True,
    ),
    StepType.ONBOARDING_FORM: StepKind(
        StepType.ONBOARDING_FORM,
        duration_minutes=30,
        marker_field="onboarding_form_sent_at",
        marker_kind=MARKER_TIMESTAMP,
        default_message_type=MSG_ONBOARDING_FORM,
    ),
    StepType.FORM_REMINDER: StepKind(
        StepType.FORM_REMINDER,
        duration_minutes=15,
        default_message_type=MSG_FORM_REMINDER,
    ),
    StepType.CEO_INDUCTION: StepKind(
        StepType.CEO_INDUCTION,
        duration_minutes=60,
        marker_field="ceo_induction_scheduled",
        revert_marker_on_undo=True,
    ),
    StepType.SALES_INDUCTION: StepKind(
        StepType.SALES_INDUCTION,
        duration_minutes=90,
        marker_field="sales_induction_scheduled",
        revert_marker_on_undo=True,
    ),
    StepType.DEPARTMENT_INDUCTION: StepKind(StepType.DEPARTMENT_INDUCTION, duration_minutes=90),
    StepType.TRAINING_PLAN: StepKind(
        StepType.TRAINING_PLAN,
        duration_minutes=30,
        marker_field="training_plan_sent",
        default_message_type=MSG_TRAINING_PLAN,
        revert_marker_on_undo=True,
    ),
    StepType.CHECKIN_CALL: StepKind(
        StepType.CHECKIN_CALL,
        duration_minutes=30,
        marker_field="checkin_scheduled",
        revert_marker_on_undo=True,
    ),
    StepType.TRAINING: StepKind(StepType.TRAINING),
    StepType.MANUAL: StepKind(StepType.MANUAL),
}


# Step numbers used before departments had their own templates.
LEGACY_STEP_TYPES: dict[int, StepType] = {
    1: StepType.OFFER_LETTER,
    2: StepType.OFFER_REMINDER,
    3: StepType.WELCOME_EMAIL,
    4: StepType.HR_INDUCTION,
    5: StepType.WHATSAPP_ADDITION,
    6: StepType.ONBOARDING_FORM,
    7: StepType.FORM_REMINDER,
    8: StepType.CEO_INDUCTION,
    9: StepType.SALES_INDUCTION,
    10: StepType.TRAINING_PLAN,
    11: StepType.CHECKIN_CALL,
}

# Step that produces the offer-letter anchor and unlocks offer-letter based steps.
ANCHOR_PRODUCING_STEP = StepType.OFFER_LETTER


def normalize_step_type(raw: str | StepType | None) -> StepType | None:
    if raw is None:
        return None
    if isinstance(raw, StepType):
        return raw
    normalized = raw.strip().upper().replace(" ", "_")
    if normalized == "WHATSAPP_TASK":
        normalized = StepType.WHATSAPP_ADDITION.value
    elif normalized == "CUSTOM":
        normalized = StepType.MANUAL.value
    try:
        return StepType(normalized)
    except ValueError:
        return None


def step_kind(step_type: StepType) -> StepKind:
    return STEP_KINDS[step_type]


def message_requires_attachment(message_type: str | None) -> bool:
    return message_type in MESSAGE_TYPES_REQUIRING_ATTACHMENT


def step_duration_minutes(step_type: StepType | None) -> int:
    if step_type is None:
        return DEFAULT_DURATION_MINUTES
    return STEP_KINDS[step_type].duration_minutes


def default_step_definitions(department: str) -> list[dict]:
    """Starter step list for a new department."""
    induction_type = StepType.SALES_INDUCTION if department.strip().lower() == "sales" else StepType.DEPARTMENT_INDUCTION
    return [
        {"step_number": 1, "title": "Offer Letter Email", "description": "Upload and send offer letter with tracking", "step_type": StepType.OFFER_LETTER, "scheduling_method": SchedulingMethod.MANUAL, "due_date_offset": 0, "priority": "HIGH"},
        {"step_number": 2, "title": "Offer Reminder", "description": "Auto-sends if not signed in 3 days", "step_type": StepType.OFFER_REMINDER, "scheduling_method": SchedulingMethod.OFFER_LETTER, "due_date_offset": 3, "priority": "MEDIUM"},
        {"step_number": 3, "title": "Day -1 Welcome Email", "description": "Sent automatically one day before joining", "step_type": StepType.WELCOME_EMAIL, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": -1, "priority": "MEDIUM"},
        {"step_number": 4, "title": "HR Induction", "description": "Calendar invite on joining day", "step_type": StepType.HR_INDUCTION, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": 0, "scheduled_time": "09:30", "priority": "HIGH"},
        {"step_number": 5, "title": "WhatsApp Group Addition", "description": "Send WhatsApp group URLs via email", "step_type": StepType.WHATSAPP_ADDITION, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": 0, "priority": "HIGH"},
        {"step_number": 6, "title": "Onboarding Form Email", "description": "Sent within 1 hour of joining", "step_type": StepType.ONBOARDING_FORM, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": 0, "scheduled_time": "10:30", "priority": "HIGH"},
        {"step_number": 7, "title": "Form Reminder", "description": "Auto-sends if not completed in 24h", "step_type": StepType.FORM_REMINDER, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": 1, "priority": "MEDIUM"},
        {"step_number": 8, "title": "CEO Induction", "description": "HR confirms time with CEO, then system sends invite", "step_type": StepType.CEO_INDUCTION, "scheduling_method": SchedulingMethod.MANUAL, "due_date_offset": 2, "priority": "MEDIUM"},
        {"step_number": 9, "title": f"{department} Induction", "description": f"HR confirms time with {department} team, then system sends invite", "step_type": induction_type, "scheduling_method": SchedulingMethod.MANUAL, "due_date_offset": 3, "priority": "MEDIUM"},
        {"step_number": 10, "title": "Training Plan Email", "description": "Auto-sends on Day 3 with structured training", "step_type": StepType.TRAINING_PLAN, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": 3, "priority": "MEDIUM"},
        {"step_number": 11, "title": "HR Check-in Call (Day 7)", "description": "Auto-scheduled 7 days after joining", "step_type": StepType.CHECKIN_CALL, "scheduling_method": SchedulingMethod.DOJ, "due_date_offset": 7, "scheduled_time": "15:00", "priority": "MEDIUM"},
    ]
