from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.db.base import Base


STATUS_OFFER_PENDING = "OFFER_PENDING"
STATUS_JOINED = "JOINED"
# Signed candidates who have not joined yet.
READY_TO_JOIN_STATUSES = ("READY_TO_JOIN", "OFFER_ACCEPTED", "OFFER_SIGNED")


class ObCandidate(Base):
    __tablename__ = "ob_candidate"

    candidate_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    position: Mapped[str | None] = mapped_column(String(150), nullable=True)
    department: Mapped[str] = mapped_column(String(100), index=True)
    reporting_manager: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default=STATUS_OFFER_PENDING)

    # Anchor dates
    expected_joining_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_joining_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    offer_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Documents (paths relative to the uploads directory)
    offer_letter_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    signed_offer_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Step markers
    offer_signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    offer_reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    welcome_email_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    hr_induction_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)
    whatsapp_groups_added: Mapped[bool] = mapped_column(Boolean, default=False)
    onboarding_form_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    onboarding_form_completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ceo_induction_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)
    sales_induction_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)
    training_plan_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    checkin_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def joining_date(self) -> date | None:
        return self.actual_joining_date or self.expected_joining_date
