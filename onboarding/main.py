import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from onboarding.api.router import api_router
from onboarding.core.config import settings
from onboarding.core.exceptions import OnboardingError
from onboarding.jobs.scheduler import start_scheduler
from onboarding.middleware.logging import RequestLoggingMiddleware

logging.basicConfig(level=logging.INFO)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)

logger = logging.getLogger("onboarding")


def create_app(*, start_jobs: bool | None = None) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(OnboardingError)
    async def _onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("request_failed", extra={"path": request.url.path, "code": exc.code, "error": exc.message})
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(api_router)

    run_jobs = settings.scheduler_enabled if start_jobs is None else start_jobs

    @app.on_event("startup")
    async def _startup_jobs() -> None:
        if run_jobs:
            app.state.scheduler = start_scheduler()

    @app.on_event("shutdown")
    async def _shutdown_jobs() -> None:
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler:
            scheduler.shutdown()

    return app


app = create_app()
