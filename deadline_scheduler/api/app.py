from fastapi import FastAPI
from loguru import logger

from deadline_scheduler.api.routes_health import router as health_router
from deadline_scheduler.api.routes_reminders import router as reminders_router
from deadline_scheduler.config import settings
from deadline_scheduler.scheduler.runner import DeadlineScheduler, build_scheduler


def create_app(scheduler: DeadlineScheduler | None = None, *, autostart: bool | None = None) -> FastAPI:
    app = FastAPI(title="deadline-scheduler")
    app.include_router(health_router)
    app.include_router(reminders_router)
    app.state.scheduler = scheduler or build_scheduler()
    start_on_boot = settings.scheduler_enabled if autostart is None else autostart

    @app.on_event("startup")
    async def on_startup() -> None:
        if start_on_boot:
            app.state.scheduler.start()
        else:
            logger.info("deadline scheduler disabled via settings (SCHEDULER_ENABLED=false)")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        scheduler = app.state.scheduler
        if scheduler.is_running():
            scheduler.stop()
        await scheduler.wait_idle()

    return app


app = create_app()
