from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.datetime_utils import IST, format_long_date, from_utc_naive
from onboarding.core.exceptions import MissingEmailTemplateError, StepNotFoundError
from onboarding.core.step_kinds import (
    LEGACY_STEP_TYPES,
    MESSAGE_TYPES_WITH_FORM_LINK,
    SchedulingMethod,
    StepKind,
    StepType,
    step_kind,
)
from onboarding.models.candidate import ObCandidate
from onboarding.models.email_template import PLACEHOLDER_RE, ObEmailTemplate
from onboarding.models.step_template import ObStepTemplate


@dataclass
class StepDefinition:
    """A department step, either configured as a StepTemplate or taken from the legacy numbering."""

    department: str
    step_number: int
    step_type: StepType
    title: str
    template: ObStepTemplate | None = None

    @property
    def kind(self) -> StepKind:
        return step_kind(self.step_type)

    @property
    def from_template(self) -> bool:
        return self.template is not None

    @property
    def email_template(self) -> ObEmailTemplate | None:
        return self.template.email_template if self.template is not None else None

    @property
    def requires_message(self) -> bool:
        if self.template is not None:
            return True
        return self.kind.default_message_type is not None

    @property
    def message_type(self) -> str | None:
        if self.template is not None:
            email_template = self.email_template
            return email_template.message_type if email_template is not None else None
        return self.kind.default_message_type

    @property
    def scheduling_method(self) -> SchedulingMethod:
        return self.template.method if self.template is not None else SchedulingMethod.MANUAL

    @property
    def due_date_offset(self) -> int | None:
        return self.template.due_date_offset if self.template is not None else None

    @property
    def time_of_day(self) -> str | None:
        return self.template.active_time_of_day if self.template is not None else None

    def usable_email_template(self) -> ObEmailTemplate:
        email_template = self.email_template
        if email_template is None or not email_template.is_active:
            raise MissingEmailTemplateError(self.step_number)
        return email_template


async def get_step_template(session: AsyncSession, department: str, step_number: int) -> ObStepTemplate | None:
    return (
        await session.execute(
            select(ObStepTemplate).where(
                ObStepTemplate.department == department,
                ObStepTemplate.step_number == step_number,
            )
        )
    ).scalars().first()


async def list_step_templates(session: AsyncSession, department: str, *, active_only: bool = False) -> list[ObStepTemplate]:
    stmt = select(ObStepTemplate).where(ObStepTemplate.department == department)
    if active_only:
        stmt = stmt.where(ObStepTemplate.is_active.is_(True))
    return list((await session.execute(stmt.order_by(ObStepTemplate.step_number.asc()))).scalars().all())


def definition_from_template(template: ObStepTemplate) -> StepDefinition:
    return StepDefinition(
        department=template.department,
        step_number=template.step_number,
        step_type=template.kind,
        title=template.title,
        template=template,
    )


def legacy_definition(department: str, step_number: int) -> StepDefinition | None:
    step_type = LEGACY_STEP_TYPES.get(step_number)
    if step_type is None:
        return None
    return StepDefinition(
        department=department,
        step_number=step_number,
        step_type=step_type,
        title=step_type.value.replace("_", " ").title(),
    )


async def resolve_step_definition(session: AsyncSession, department: str, step_number: int) -> StepDefinition:
    template = await get_step_template(session, department, step_number)
    if template is not None:
        return definition_from_template(template)
    legacy = legacy_definition(department, step_number)
    if legacy is None:
        raise StepNotFoundError(department, step_number)
    return legacy


def _format_time(value: datetime | None) -> str:
    if value is None:
        return ""
    return from_utc_naive(value).astimezone(IST).strftime("%I:%M %p").lstrip("0")


def _format_date_time(value: datetime | None) -> str:
    if value is None:
        return ""
    local = from_utc_naive(value).astimezone(IST)
    return f"{format_long_date(local.date())} at {_format_time(value)}"


def form_link(candidate: ObCandidate) -> str:
    if settings.onboarding_form_url:
        return settings.onboarding_form_url
    return f"{settings.frontend_url.rstrip('/')}/onboarding-form/{candidate.candidate_id}"


def placeholder_values(
    candidate: ObCandidate,
    *,
    message_type: str | None = None,
    event_start: datetime | None = None,
    meeting_link: str | None = None,
) -> dict[str, str]:
    values: dict[str, Any] = {
        "firstName": candidate.first_name,
        "lastName": candidate.last_name,
        "fullName": candidate.full_name,
        "candidateName": candidate.full_name,
        "email": candidate.email,
        "phone": candidate.phone,
        "position": candidate.position,
        "department": candidate.department,
        "joiningDate": format_long_date(candidate.joining_date),
        "reportingManager": candidate.reporting_manager,
        "companyName": settings.company_name,
        "companyAddress": settings.company_address,
        "hrName": settings.hr_name,
        "hrEmail": settings.hr_email,
        "hrPhone": settings.hr_phone,
        "ceoName": settings.ceo_name,
        "salesHeadName": settings.sales_head_name,
        "officeTimings": settings.office_timings,
        "meetingLink": meeting_link,
        "dateTime": _format_date_time(event_start),
        "startTime": _format_time(event_start),
    }
    if message_type in MESSAGE_TYPES_WITH_FORM_LINK:
        values["formLink"] = form_link(candidate)
    return {k: ("" if v is None else str(v)) for k, v in values.items()}


def render_text(text: str, values: dict[str, str]) -> str:
    def _sub(match) -> str:
        name = match.group(1)
        if name in values:
            return values[name]
        return match.group(0)

    return PLACEHOLDER_RE.sub(_sub, text or "")


def render_email_template(template: ObEmailTemplate, values: dict[str, str]) -> tuple[str, str]:
    return render_text(template.subject, values), render_text(template.body, values)
