from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from loguru import logger

from deadline_scheduler.db.store import ReminderStore
from deadline_scheduler.notifications.email_service import EmailSender
from deadline_scheduler.notifications.push_service import PushNotifier
from deadline_scheduler.scheduler.clock import days_between, local_midnight, next_local_midnight, utc_now
from deadline_scheduler.scheduler.digest import board_label, build_daily_digests
from deadline_scheduler.scheduler.recipients import card_recipients, project_recipients, task_recipients

Stats = dict[str, int]


def _new_stats() -> Stats:
    return {"found": 0, "notified": 0, "emails": 0, "failed": 0}


class ReminderChecks:
    """The individual reminder checks.

    Every public ``check_*`` method is an error boundary: it logs and swallows
    failures so a broken query or provider never stops the remaining checks.
    Inside a check, each push/email call is isolated again so one recipient's
    failure does not cut delivery short for the rest. The task reminder and
    card deadline latches are only set once every send for that entity went
    through; otherwise the entity stays pending and the next tick retries it.
    """

    def __init__(
        self,
        store: ReminderStore,
        push: PushNotifier,
        email: EmailSender,
        *,
        tz: ZoneInfo,
        card_window: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.push = push
        self.email = email
        self.tz = tz
        self.card_window = card_window
        self.clock = clock

    def _today(self) -> datetime:
        return local_midnight(self.clock(), self.tz)

    def _tomorrow(self) -> datetime:
        return next_local_midnight(self.clock(), self.tz)

    async def _attempt(self, stats: Stats, label: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> bool:
        try:
            await fn(*args)
        except Exception:
            stats["failed"] += 1
            logger.exception("reminder send failed step={}", label)
            return False
        return True

    async def _email(self, stats: Stats, label: str, fn: Callable[..., Awaitable[bool | None]], *args: Any) -> bool:
        """Send one email; False only when the provider call failed.

        A sender returns None when mail is disabled or the address is empty,
        which is neither a delivery nor a failure.
        """
        try:
            sent = await fn(*args)
        except Exception:
            stats["failed"] += 1
            logger.exception("reminder send failed step={}", label)
            return False
        if sent is None:
            return True
        if sent is False:
            stats["failed"] += 1
            return False
        stats["emails"] += 1
        return True

    async def _guard(self, name: str, body: Callable[[Stats], Awaitable[None]]) -> Stats:
        stats = _new_stats()
        logger.info("check start name={}", name)
        try:
            await body(stats)
        except Exception:
            stats["failed"] += 1
            stats["error"] = 1
            logger.exception("check error name={}", name)
        logger.info("check done name={} stats={}", name, stats)
        return stats

    # projects

    async def check_overdue_projects(self) -> Stats:
        async def body(stats: Stats) -> None:
            today = self._today()
            projects = await self.store.find_overdue_projects(today)
            stats["found"] = len(projects)
            for project in projects:
                if project.end_date is None:
                    logger.debug("overdue project skipped id={} reason=no_end_date", project.id)
                    continue
                days_overdue = days_between(today, project.end_date)
                users = project_recipients(project)
                logger.info(
                    "project overdue id={} name={} days={} recipients={}",
                    project.id,
                    project.name,
                    days_overdue,
                    len(users),
                )
                ok = await self._attempt(
                    stats,
                    f"push project_overdue project={project.id}",
                    self.push.notify_project_deadline_overdue,
                    [u.id for u in users],
                    project.id,
                    project.name,
                    days_overdue,
                )
                if ok:
                    stats["notified"] += len(users)
                for user in users:
                    if not user.email:
                        continue
                    await self._email(
                        stats,
                        f"email project_overdue project={project.id} user={user.id}",
                        self.email.send_deadline_reminder_email,
                        user.email,
                        user.name,
                        project.id,
                        project.name,
                        project.code,
                        project.end_date,
                        -days_overdue,
                        True,
                    )

        return await self._guard("overdue_projects", body)

    async def check_upcoming_project_deadlines(self) -> Stats:
        async def body(stats: Stats) -> None:
            projects = await self.store.find_upcoming_projects(self._tomorrow())
            stats["found"] = len(projects)
            for project in projects:
                if project.end_date is None:
                    logger.debug("upcoming project skipped id={} reason=no_end_date", project.id)
                    continue
                users = project_recipients(project)
                logger.info("project due tomorrow id={} name={} recipients={}", project.id, project.name, len(users))
                ok = await self._attempt(
                    stats,
                    f"push project_upcoming project={project.id}",
                    self.push.notify_project_deadline_upcoming,
                    [u.id for u in users],
                    project.id,
                    project.name,
                    1,
                )
                if ok:
                    stats["notified"] += len(users)
                for user in users:
                    if not user.email:
                        continue
                    await self._email(
                        stats,
                        f"email project_upcoming project={project.id} user={user.id}",
                        self.email.send_deadline_reminder_email,
                        user.email,
                        user.name,
                        project.id,
                        project.name,
                        project.code,
                        project.end_date,
                        1,
                        False,
                    )

        return await self._guard("upcoming_projects", body)

    # personal tasks

    async def check_overdue_tasks(self) -> Stats:
        async def body(stats: Stats) -> None:
            today = self._today()
            tasks = await self.store.find_overdue_tasks(today)
            stats["found"] = len(tasks)
            for task in tasks:
                if task.end_date is None:
                    logger.debug("overdue task skipped id={} reason=no_end_date", task.id)
                    continue
                days_overdue = days_between(today, task.end_date)
                for user in task_recipients(task):
                    logger.info("task overdue id={} days={} user={}", task.id, days_overdue, user.id)
                    ok = await self._attempt(
                        stats,
                        f"push task_overdue task={task.id}",
                        self.push.notify_task_deadline_overdue,
                        user.id,
                        task.id,
                        task.title,
                        days_overdue,
                    )
                    if ok:
                        stats["notified"] += 1

        return await self._guard("overdue_tasks", body)

    async def check_upcoming_task_deadlines(self) -> Stats:
        async def body(stats: Stats) -> None:
            tasks = await self.store.find_upcoming_tasks(self._tomorrow())
            stats["found"] = len(tasks)
            for task in tasks:
                for user in task_recipients(task):
                    ok = await self._attempt(
                        stats,
                        f"push task_upcoming task={task.id}",
                        self.push.notify_task_deadline_upcoming,
                        user.id,
                        task.id,
                        task.title,
                        1,
                    )
                    if ok:
                        stats["notified"] += 1

        return await self._guard("upcoming_tasks", body)

    async def check_task_reminders(self) -> Stats:
        async def body(stats: Stats) -> None:
            tasks = await self.store.find_due_task_reminders(self.clock())
            stats["found"] = len(tasks)
            for task in tasks:
                if task.reminder_at is None:
                    continue
                delivered = True
                for user in task_recipients(task):
                    ok = await self._attempt(
                        stats,
                        f"push task_reminder task={task.id}",
                        self.push.notify_task_reminder,
                        user.id,
                        task.id,
                        task.title,
                        task.reminder_at,
                    )
                    if ok:
                        stats["notified"] += 1
                    else:
                        delivered = False
                    if user.email:
                        sent = await self._email(
                            stats,
                            f"email task_reminder task={task.id}",
                            self.email.send_task_reminder_email,
                            user.email,
                            user.name,
                            task.id,
                            task.title,
                            task.reminder_at,
                        )
                        delivered = delivered and sent
                if not delivered:
                    # Latch stays unset so the next tick retries this occurrence.
                    logger.warning("task reminder kept pending id={} reason=send_failed", task.id)
                    continue
                if not await self.store.mark_task_reminder_sent(task.id):
                    logger.warning("task reminder latch already set id={}", task.id)

        return await self._guard("task_reminders", body)

    # kanban

    async def check_kanban_card_deadlines(self) -> Stats:
        async def body(stats: Stats) -> None:
            cards = await self.store.find_cards_near_deadline(self.clock(), self.card_window)
            stats["found"] = len(cards)
            for card in cards:
                if card.due_date is None:
                    logger.debug("kanban card skipped id={} reason=no_due_date", card.id)
                    continue
                users = card_recipients(card)
                if users:
                    logger.info("kanban card due soon id={} board={} recipients={}", card.id, card.board_id, len(users))
                    ok = await self._attempt(
                        stats,
                        f"push kanban_card_deadline card={card.id}",
                        self.push.notify_kanban_card_deadline,
                        [u.id for u in users],
                        card.id,
                        card.title,
                        card.board_title,
                        card.due_date,
                    )
                    if ok:
                        stats["notified"] += len(users)
                    else:
                        logger.warning("kanban card reminder kept pending id={} reason=send_failed", card.id)
                        continue
                else:
                    logger.info("kanban card due soon id={} recipients=0", card.id)
                if not await self.store.mark_card_deadline_reminder_sent(card.id):
                    logger.warning("kanban card latch already set id={}", card.id)

        return await self._guard("kanban_card_deadlines", body)

    async def send_kanban_daily_reminders(self) -> Stats:
        async def body(stats: Stats) -> None:
            boards = await self.store.find_incomplete_cards_by_board()
            digests = build_daily_digests(boards)
            stats["found"] = len(digests)
            for digest in digests:
                label = board_label(list(digest.boards))
                ok = await self._attempt(
                    stats,
                    f"push kanban_daily user={digest.user_id}",
                    self.push.notify_kanban_daily_reminder,
                    digest.user_id,
                    label,
                    digest.card_titles,
                    digest.total,
                )
                if ok:
                    stats["notified"] += 1
                if digest.email:
                    await self._email(
                        stats,
                        f"email kanban_daily user={digest.user_id}",
                        self.email.send_kanban_daily_reminder_email,
                        digest.email,
                        digest.user_name,
                        digest.board_digests(),
                    )

        return await self._guard("kanban_daily", body)
