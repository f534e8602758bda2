from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from loguru import logger

from deadline_scheduler.config import settings
from deadline_scheduler.db.store import ReminderStore
from deadline_scheduler.notifications.email_service import EmailSender
from deadline_scheduler.notifications.push_service import PushNotifier
from deadline_scheduler.scheduler.checks import ReminderChecks
from deadline_scheduler.scheduler.clock import next_daily_run, utc_now


class DeadlineScheduler:
    """Owns the daily and per-minute timers and the run guards for each batch.

    ``start`` must be called from inside a running event loop. ``stop`` only
    cancels the timers; a batch already in flight runs to completion.
    """

    def __init__(
        self,
        store: ReminderStore,
        push: PushNotifier,
        email: EmailSender,
        *,
        tz: ZoneInfo | None = None,
        daily_hour: int | None = None,
        minutely_interval_sec: float | None = None,
        card_window: timedelta | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.tz = tz or ZoneInfo(settings.timezone)
        self.daily_hour = settings.daily_run_hour if daily_hour is None else daily_hour
        self.minutely_interval_sec = float(
            settings.minutely_interval_sec if minutely_interval_sec is None else minutely_interval_sec
        )
        self.clock = clock
        self.checks = ReminderChecks(
            store,
            push,
            email,
            tz=self.tz,
            card_window=card_window or timedelta(minutes=settings.card_deadline_window_min),
            clock=clock,
        )
        self._daily_task: asyncio.Task | None = None
        self._minutely_task: asyncio.Task | None = None
        self._runs: set[asyncio.Task] = set()
        self._daily_lock = asyncio.Lock()
        self._minutely_lock = asyncio.Lock()
        self.next_daily_at: datetime | None = None
        self.last_daily: dict[str, Any] | None = None
        self.last_minutely: dict[str, Any] | None = None

    def is_running(self) -> bool:
        return any(t is not None and not t.done() for t in (self._daily_task, self._minutely_task))

    def start(self) -> None:
        if self.is_running():
            logger.info("deadline scheduler already running")
            return
        logger.info(
            "deadline scheduler starting tz={} daily_hour={} minutely_interval={}s",
            self.tz.key,
            self.daily_hour,
            self.minutely_interval_sec,
        )
        self._daily_task = asyncio.create_task(self._daily_loop(), name="deadline-daily")
        self._minutely_task = asyncio.create_task(self._minutely_loop(), name="deadline-minutely")

    def stop(self) -> None:
        for task in (self._daily_task, self._minutely_task):
            if task is not None and not task.done():
                task.cancel()
        self._daily_task = None
        self._minutely_task = None
        self.next_daily_at = None
        logger.info("deadline scheduler stopped in_flight={}", len(self._runs))

    async def wait_idle(self) -> None:
        """Wait for batches that were in flight when the timers stopped."""
        if self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    def _spawn(self, run: Callable[[], Awaitable[Any]]) -> None:
        task = asyncio.create_task(run())
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    async def _daily_loop(self) -> None:
        target = next_daily_run(self.clock(), self.tz, self.daily_hour)
        try:
            while True:
                self.next_daily_at = target
                delay = max(0.0, (target - self.clock()).total_seconds())
                logger.info(
                    "next deadline check at {} (in {:.2f} hours)",
                    target.astimezone(self.tz).isoformat(),
                    delay / 3600,
                )
                await asyncio.sleep(delay)
                self._spawn(self.run_deadline_checks)
                # Anchor on the slot just fired so an early wakeup cannot re-select it.
                target = next_daily_run(max(self.clock(), target), self.tz, self.daily_hour)
        except asyncio.CancelledError:
            logger.info("daily deadline timer stopped")
            raise

    async def _minutely_loop(self) -> None:
        try:
            while True:
                self._spawn(self.run_minutely_checks)
                await asyncio.sleep(self.minutely_interval_sec)
        except asyncio.CancelledError:
            logger.info("minutely reminder timer stopped")
            raise

    async def run_deadline_checks(self) -> dict[str, Any]:
        if self._daily_lock.locked():
            logger.warning("deadline checks skipped status=locked")
            return {"skipped": True}
        async with self._daily_lock:
            started = utc_now()
            logger.info("========== running deadline checks at {} ==========", self.clock().isoformat())
            stats = {
                "overdue_projects": await self.checks.check_overdue_projects(),
                "upcoming_projects": await self.checks.check_upcoming_project_deadlines(),
                "overdue_tasks": await self.checks.check_overdue_tasks(),
                "upcoming_tasks": await self.checks.check_upcoming_task_deadlines(),
                "kanban_daily": await self.checks.send_kanban_daily_reminders(),
            }
            self.last_daily = {"at": started.isoformat(), "stats": stats}
            logger.info("========== deadline checks completed ==========")
            return stats

    async def run_minutely_checks(self) -> dict[str, Any]:
        if self._minutely_lock.locked():
            logger.warning("minutely reminder checks skipped status=locked")
            return {"skipped": True}
        async with self._minutely_lock:
            started = utc_now()
            stats = {
                "task_reminders": await self.checks.check_task_reminders(),
                "kanban_card_deadlines": await self.checks.check_kanban_card_deadlines(),
            }
            self.last_minutely = {"at": started.isoformat(), "stats": stats}
            return stats

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running(),
            "timezone": self.tz.key,
            "next_daily_at": self.next_daily_at.isoformat() if self.next_daily_at else None,
            "in_flight": len(self._runs),
            "last_daily": self.last_daily,
            "last_minutely": self.last_minutely,
        }


def build_scheduler(**overrides: Any) -> DeadlineScheduler:
    from deadline_scheduler.db.store import SqlReminderStore
    from deadline_scheduler.notifications.email_service import ResendEmailSender
    from deadline_scheduler.notifications.push_service import WebPushNotifier

    return DeadlineScheduler(SqlReminderStore(), WebPushNotifier(), ResendEmailSender(), **overrides)
