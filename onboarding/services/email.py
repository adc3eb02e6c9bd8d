from __future__ import annotations

import base64
import logging
import mimetypes
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from onboarding.core.config import settings
from onboarding.core.paths import resolve_repo_path, resolve_upload_path

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


class MessageProvider(Protocol):
    def send(self, *, to: str, subject: str, body: str, attachments: list[str]) -> None: ...


def build_mime_message(*, sender: str, sender_name: str, to: str, subject: str, body: str, attachments: list[str]):
    msg = MIMEMultipart()
    msg["To"] = to
    msg["From"] = f"{sender_name} <{sender}>"
    msg["Reply-To"] = sender
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "html", "utf-8"))

    for reference in attachments:
        path = resolve_upload_path(reference, settings.uploads_dir)
        if not path.is_file():
            logger.warning("attachment_missing", extra={"attachment": reference})
            continue
        content_type, _ = mimetypes.guess_type(path.name)
        subtype = (content_type or "application/octet-stream").split("/", 1)[1]
        part = MIMEApplication(path.read_bytes(), _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=path.name)
        msg.attach(part)
    return msg


class GmailClient:
    """Gmail API sender using a delegated service account; blocking."""

    def __init__(self, sender_email: str | None = None, sender_name: str | None = None) -> None:
        self.sender_email = sender_email or settings.gmail_sender_email
        self.sender_name = sender_name or settings.gmail_sender_name or settings.company_name

    def _client(self):
        service_account_path = settings.google_application_credentials
        if not service_account_path:
            raise RuntimeError("Missing service account credentials for Gmail.")
        credentials = Credentials.from_service_account_file(
            str(resolve_repo_path(service_account_path)), scopes=SCOPES
        )
        credentials = credentials.with_subject(self.sender_email)
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def send(self, *, to: str, subject: str, body: str, attachments: list[str]) -> None:
        if not settings.enable_gmail:
            logger.info("gmail_disabled_skip_send", extra={"to": to, "subject": subject})
            return
        msg = build_mime_message(
            sender=self.sender_email,
            sender_name=self.sender_name,
            to=to,
            subject=subject,
            body=body,
            attachments=attachments,
        )
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")
        self._client().users().messages().send(userId=self.sender_email, body={"raw": raw}).execute()


_default_client: GmailClient | None = None


def get_mail_client() -> GmailClient:
    global _default_client
    if _default_client is None:
        _default_client = GmailClient()
    return _default_client
