from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from onboarding.core.datetime_utils import utcnow_naive
from onboarding.core.step_kinds import SchedulingMethod, StepType, normalize_step_type
from onboarding.db.base import Base
from onboarding.models.email_template import ObEmailTemplate


class ObStepTemplate(Base):
    __tablename__ = "ob_step_template"
    __table_args__ = (UniqueConstraint("department", "step_number", name="uq_ob_step_template_department_step"),)

    step_template_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department: Mapped[str] = mapped_column(String(100), index=True)
    step_number: Mapped[int] = mapped_column(Integer)

    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    step_type: Mapped[str] = mapped_column(String(64))
    priority: Mapped[str] = mapped_column(String(20), default="MEDIUM")

    scheduling_method: Mapped[str] = mapped_column(String(20), default=SchedulingMethod.MANUAL.value)
    due_date_offset: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scheduled_time_doj: Mapped[str | None] = mapped_column(String(5), nullable=True)
    scheduled_time_offer_letter: Mapped[str | None] = mapped_column(String(5), nullable=True)

    email_template_id: Mapped[int | None] = mapped_column(
        ForeignKey("ob_email_template.email_template_id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    email_template: Mapped[ObEmailTemplate | None] = relationship("ObEmailTemplate", lazy="selectin")

    @property
    def kind(self) -> StepType:
        return normalize_step_type(self.step_type) or StepType.MANUAL

    @property
    def method(self) -> SchedulingMethod:
        try:
            return SchedulingMethod(self.scheduling_method)
        except ValueError:
            return SchedulingMethod.MANUAL

    @property
    def active_time_of_day(self) -> str | None:
        if self.method == SchedulingMethod.OFFER_LETTER:
            return self.scheduled_time_offer_letter
        if self.method == SchedulingMethod.DOJ:
            return self.scheduled_time_doj
        return None

    @property
    def is_auto(self) -> bool:
        return (
            self.method != SchedulingMethod.MANUAL
            and self.due_date_offset is not None
            and bool(self.active_time_of_day)
        )
