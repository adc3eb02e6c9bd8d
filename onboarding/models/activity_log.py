from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.db.base import Base


class ObActivityLog(Base):
    __tablename__ = "ob_activity_log"

    activity_log_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(Integer, index=True)
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    automated: Mapped[bool] = mapped_column(Boolean, default=False)

    action: Mapped[str] = mapped_column(String(100), index=True)
    step_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)
