from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.db.session import get_session
from onboarding.services.calendar import CalendarProvider, get_calendar_client
from onboarding.services.email import MessageProvider, get_mail_client


async def get_db_session() -> AsyncSession:
    async for session in get_session():
        yield session


def get_calendar() -> CalendarProvider:
    return get_calendar_client()


def get_mailer() -> MessageProvider:
    return get_mail_client()
