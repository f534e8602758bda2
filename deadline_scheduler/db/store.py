from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from deadline_scheduler.db.repositories import deadlines_repo
from deadline_scheduler.db.repositories.deadlines_repo import BoardCards, CardDue, ProjectDue, TaskDue
from deadline_scheduler.db.session import session_scope

T = TypeVar("T")


class ReminderStore(Protocol):
    async def find_overdue_projects(self, today: datetime) -> list[ProjectDue]: ...

    async def find_upcoming_projects(self, tomorrow: datetime) -> list[ProjectDue]: ...

    async def find_overdue_tasks(self, today: datetime) -> list[TaskDue]: ...

    async def find_upcoming_tasks(self, tomorrow: datetime) -> list[TaskDue]: ...

    async def find_due_task_reminders(self, now: datetime) -> list[TaskDue]: ...

    async def find_cards_near_deadline(self, now: datetime, window: timedelta) -> list[CardDue]: ...

    async def find_incomplete_cards_by_board(self) -> list[BoardCards]: ...

    async def mark_task_reminder_sent(self, task_id: int) -> bool: ...

    async def mark_card_deadline_reminder_sent(self, card_id: int) -> bool: ...


class SqlReminderStore:
    """ReminderStore over a SQLAlchemy session factory; each call gets its own session."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        if session_factory is None:
            from deadline_scheduler.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        with session_scope(self._session_factory) as session:
            return fn(session, *args)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._call, fn, *args)

    async def find_overdue_projects(self, today: datetime) -> list[ProjectDue]:
        return await self._run(deadlines_repo.find_overdue_projects, today)

    async def find_upcoming_projects(self, tomorrow: datetime) -> list[ProjectDue]:
        return await self._run(deadlines_repo.find_upcoming_projects, tomorrow)

    async def find_overdue_tasks(self, today: datetime) -> list[TaskDue]:
        return await self._run(deadlines_repo.find_overdue_tasks, today)

    async def find_upcoming_tasks(self, tomorrow: datetime) -> list[TaskDue]:
        return await self._run(deadlines_repo.find_upcoming_tasks, tomorrow)

    async def find_due_task_reminders(self, now: datetime) -> list[TaskDue]:
        return await self._run(deadlines_repo.find_due_task_reminders, now)

    async def find_cards_near_deadline(self, now: datetime, window: timedelta) -> list[CardDue]:
        return await self._run(deadlines_repo.find_cards_near_deadline, now, window)

    async def find_incomplete_cards_by_board(self) -> list[BoardCards]:
        return await self._run(deadlines_repo.find_incomplete_cards_by_board)

    async def mark_task_reminder_sent(self, task_id: int) -> bool:
        return await self._run(deadlines_repo.mark_task_reminder_sent, task_id)

    async def mark_card_deadline_reminder_sent(self, card_id: int) -> bool:
        return await self._run(deadlines_repo.mark_card_deadline_reminder_sent, card_id)
