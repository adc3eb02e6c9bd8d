"""Error taxonomy for the onboarding engine.

Configuration errors are fatal and never retried automatically. Missing anchors
are not failures: callers turn them into a skipped result.
"""

from __future__ import annotations

from fastapi import status


class OnboardingError(Exception):
    """Base application error with HTTP semantics."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "onboarding_error"

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message


class ConfigurationError(OnboardingError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "configuration_error"


class StepNotFoundError(ConfigurationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "step_not_found"

    def __init__(self, department: str | None, step_number: int) -> None:
        super().__init__(f"Step {step_number} is not configured for department {department!r}.")
        self.department = department
        self.step_number = step_number


class MissingEmailTemplateError(ConfigurationError):
    code = "missing_email_template"

    def __init__(self, step_number: int) -> None:
        super().__init__(
            f"Step {step_number} does not have an email template assigned. "
            "Please assign an email template to this step."
        )
        self.step_number = step_number


class MissingRequiredAttachmentError(ConfigurationError):
    code = "missing_required_attachment"

    def __init__(self, step_number: int, message_type: str) -> None:
        super().__init__(f"Step {step_number} ({message_type}) requires an attachment; upload the document first.")
        self.step_number = step_number
        self.message_type = message_type


class NotFoundError(OnboardingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class CandidateNotFoundError(NotFoundError):
    code = "candidate_not_found"

    def __init__(self, candidate_id: int) -> None:
        super().__init__(f"Candidate {candidate_id} not found")
        self.candidate_id = candidate_id


class CalendarEventNotFoundError(NotFoundError):
    code = "calendar_event_not_found"


class InvalidTransitionError(OnboardingError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"


class ExternalServiceError(OnboardingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "external_service_error"


class MissingAnchorError(OnboardingError):
    """The anchor date a step is measured from is not known yet."""

    status_code = status.HTTP_409_CONFLICT
    code = "missing_anchor"

    def __init__(self, anchor_kind: str, candidate_id: int | None = None) -> None:
        super().__init__(f"Anchor date for {anchor_kind!r} is not set")
        self.anchor_kind = anchor_kind
        self.candidate_id = candidate_id
