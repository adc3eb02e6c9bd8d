import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from onboarding.core.paths import resolve_repo_path


def _env_files() -> list[str]:
    base = resolve_repo_path(".env")
    env = os.getenv("OB_ENVIRONMENT", "").strip().lower()
    files = [str(base)]
    if env and env != "development":
        files.append(str(resolve_repo_path(f".env.{env}")))
    else:
        files.append(str(resolve_repo_path(".env.local")))
    return files


class Settings(BaseSettings):
    app_name: str = "Onboarding Engine"
    environment: str = "development"

    database_url: str
    redis_url: str = ""

    auth_mode: Literal["dev"] = "dev"

    google_application_credentials: str = "secrets/google-service-account.json"
    enable_gmail: bool = False
    enable_calendar: bool = False
    gmail_sender_email: str = "hr@example.com"
    gmail_sender_name: str = "HR Onboarding"
    calendar_id: str = "primary"
    calendar_timezone: str = "Asia/Kolkata"
    calendar_timeout_seconds: float = 15.0

    # Step scheduling
    default_doj_time: str = "09:00"
    default_offer_letter_time: str = "14:00"
    dispatch_debounce_minutes: int = 5
    step_lease_seconds: int = 120
    step_max_attempts: int = 5
    step_sweep_minutes: int = 1
    step_schedule_minutes: int = 15
    joined_check_hour: int = 6
    scheduler_enabled: bool = True

    # Template substitutions
    company_name: str = "Iron Lady"
    company_address: str = ""
    hr_name: str = "HR Team"
    hr_email: str = ""
    hr_phone: str = ""
    ceo_name: str = "CEO"
    sales_head_name: str = "Sales Head"
    office_timings: str = "9:30 AM - 6:30 PM"
    onboarding_form_url: str = ""
    frontend_url: str = "http://localhost:3000"

    uploads_dir: str = "uploads"

    model_config = SettingsConfigDict(env_prefix="OB_", env_file=_env_files(), extra="ignore")


settings = Settings()
