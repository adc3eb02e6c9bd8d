import re
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.db.base import Base

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z][A-Za-z0-9_]*)\s*\}\}")


class ObEmailTemplate(Base):
    __tablename__ = "ob_email_template"

    email_template_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))
    message_type: Mapped[str] = mapped_column(String(64), index=True)
    subject: Mapped[str] = mapped_column(String(500))
    body: Mapped[str] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    @property
    def placeholders(self) -> list[str]:
        found: list[str] = []
        for text in (self.subject or "", self.body or ""):
            for name in PLACEHOLDER_RE.findall(text):
                if name not in found:
                    found.append(name)
        return found
