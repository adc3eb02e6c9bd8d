from __future__ import annotations

from datetime import date, datetime

from onboarding.core.step_kinds import MSG_FORM_REMINDER, MSG_WELCOME_DAY_MINUS_1
from onboarding.models import ObCandidate, ObEmailTemplate
from onboarding.services.templates import placeholder_values, render_email_template, render_text


def _candidate() -> ObCandidate:
    return ObCandidate(
        candidate_id=7,
        first_name="Asha",
        last_name="Rao",
        email="asha.rao@example.com",
        department="Sales",
        position="Sales Associate",
        expected_joining_date=date(2025, 6, 10),
    )


def test_candidate_fields_substituted():
    values = placeholder_values(_candidate(), message_type=MSG_WELCOME_DAY_MINUS_1)
    text = render_text("Dear {{ fullName }}, you join on {{joiningDate}} as {{position}}.", values)
    assert text == "Dear Asha Rao, you join on Tuesday, 10 June 2025 as Sales Associate."


def test_unknown_placeholders_left_untouched():
    values = placeholder_values(_candidate())
    assert render_text("Hi {{firstName}} {{mystery}}", values) == "Hi Asha {{mystery}}"


def test_form_link_only_for_form_messages():
    welcome = placeholder_values(_candidate(), message_type=MSG_WELCOME_DAY_MINUS_1)
    reminder = placeholder_values(_candidate(), message_type=MSG_FORM_REMINDER)
    assert "formLink" not in welcome
    assert reminder["formLink"] == "http://localhost:3000/onboarding-form/7"


def test_event_time_in_india_time():
    values = placeholder_values(_candidate(), event_start=datetime(2025, 6, 10, 4, 0))
    assert values["startTime"] == "9:30 AM"
    assert values["dateTime"] == "Tuesday, 10 June 2025 at 9:30 AM"


def test_missing_values_render_empty():
    values = placeholder_values(_candidate())
    assert values["phone"] == ""
    assert values["meetingLink"] == ""


def test_email_template_placeholders_and_render():
    template = ObEmailTemplate(
        name="Welcome",
        message_type=MSG_WELCOME_DAY_MINUS_1,
        subject="Welcome {{firstName}}",
        body="<p>{{firstName}} joins {{companyName}}</p>",
    )
    assert template.placeholders == ["firstName", "companyName"]
    subject, body = render_email_template(template, placeholder_values(_candidate()))
    assert subject == "Welcome Asha"
    assert body == "<p>Asha joins Iron Lady</p>"
