from __future__ import annotations

import logging

import anyio
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.core.exceptions import ExternalServiceError
from onboarding.models.message import STATUS_FAILED, STATUS_PENDING, STATUS_SENT, ObMessage
from onboarding.services.email import MessageProvider

logger = logging.getLogger(__name__)


async def dispatch_message(
    session: AsyncSession,
    mailer: MessageProvider,
    *,
    candidate_id: int,
    step_number: int | None,
    message_type: str,
    to_email: str,
    subject: str,
    body: str,
    attachments: list[str],
) -> ObMessage:
    """
    Records a PENDING message, sends it and marks it SENT.

    On provider failure the FAILED record is committed and ExternalServiceError is raised;
    nothing else in the session should be pending at that point.
    """
    message = ObMessage(
        candidate_id=candidate_id,
        step_number=step_number,
        message_type=message_type,
        to_email=to_email,
        subject=subject,
        body=body,
        attachment_paths=list(attachments) or None,
        status=STATUS_PENDING,
    )
    session.add(message)
    # Committed so a concurrent trigger sees the pending send.
    await session.commit()

    try:
        await anyio.to_thread.run_sync(
            lambda: mailer.send(to=to_email, subject=subject, body=body, attachments=list(attachments))
        )
    except Exception as exc:  # noqa: BLE001
        message.status = STATUS_FAILED
        message.error = str(exc)[:2000]
        await session.commit()
        logger.warning(
            "message_dispatch_failed",
            extra={
                "candidate_id": candidate_id,
                "step_number": step_number,
                "message_type": message_type,
                "error": str(exc),
            },
        )
        raise ExternalServiceError(f"Failed to send {message_type} message: {exc}") from exc

    message.status = STATUS_SENT
    message.sent_at = utcnow_naive()
    await session.commit()
    logger.info(
        "message_sent",
        extra={
            "candidate_id": candidate_id,
            "step_number": step_number,
            "message_type": message_type,
            "message_id": message.message_id,
        },
    )
    return message
