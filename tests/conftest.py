from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.orm import Session, sessionmaker

from deadline_scheduler.db.models import Base
from deadline_scheduler.db.session import make_engine, make_session_factory

VN_TZ = ZoneInfo("Asia/Ho_Chi_Minh")


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture()
def session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = make_engine(f"sqlite+pysqlite:///{(tmp_path / 'test.db').as_posix()}")
    Base.metadata.create_all(engine)
    try:
        yield make_session_factory(engine)
    finally:
        engine.dispose()


class RecordingPush:
    def __init__(self, fail_for: set[int] | None = None) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_for = fail_for or set()

    def _record(self, name: str, *args: Any) -> dict[str, int]:
        self.calls.append((name, args))
        first = args[0]
        ids = list(first) if isinstance(first, (list, tuple)) else [first]
        if self.fail_for.intersection(ids):
            raise RuntimeError("push provider down")
        return {"success": len(ids), "failed": 0}

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def notify_project_deadline_overdue(self, user_ids, project_id, project_name, days_overdue):
        return self._record("project_overdue", list(user_ids), project_id, project_name, days_overdue)

    async def notify_project_deadline_upcoming(self, user_ids, project_id, project_name, days_until):
        return self._record("project_upcoming", list(user_ids), project_id, project_name, days_until)

    async def notify_task_deadline_overdue(self, user_id, task_id, title, days_overdue):
        return self._record("task_overdue", user_id, task_id, title, days_overdue)

    async def notify_task_deadline_upcoming(self, user_id, task_id, title, days_until):
        return self._record("task_upcoming", user_id, task_id, title, days_until)

    async def notify_task_reminder(self, user_id, task_id, title, reminder_at):
        return self._record("task_reminder", user_id, task_id, title, reminder_at)

    async def notify_kanban_daily_reminder(self, user_id, board_label, card_titles, total_count):
        return self._record("kanban_daily", user_id, board_label, list(card_titles), total_count)

    async def notify_kanban_card_deadline(self, user_ids, card_id, card_title, board_title, due_date):
        return self._record("kanban_card_deadline", list(user_ids), card_id, card_title, board_title, due_date)


class RecordingEmail:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_for = fail_for or set()

    def _record(self, name: str, to_email: str, *args: Any) -> bool:
        self.calls.append((name, (to_email, *args)))
        if to_email in self.fail_for:
            raise RuntimeError("smtp down")
        return True

    async def send_deadline_reminder_email(
        self, to_email, user_name, project_id, project_name, project_code, end_date, days_remaining, is_overdue
    ):
        return self._record(
            "deadline", to_email, user_name, project_id, project_name, project_code, end_date, days_remaining, is_overdue
        )

    async def send_task_reminder_email(self, to_email, user_name, task_id, title, reminder_at):
        return self._record("task_reminder", to_email, user_name, task_id, title, reminder_at)

    async def send_kanban_daily_reminder_email(self, to_email, user_name, boards):
        return self._record("kanban_daily", to_email, user_name, list(boards))


@pytest.fixture()
def push() -> RecordingPush:
    return RecordingPush()


@pytest.fixture()
def email() -> RecordingEmail:
    return RecordingEmail()


def add_user(session: Session, name: str, email: str | None = None):
    from deadline_scheduler.db.models import User

    user = User(name=name, email=email)
    session.add(user)
    session.flush()
    return user


def add_project(session: Session, code: str, manager, end_date: datetime | None, **kwargs: Any):
    from deadline_scheduler.db.models import Project

    project = Project(name=kwargs.pop("name", code), code=code, manager=manager, end_date=end_date, **kwargs)
    session.add(project)
    session.flush()
    return project


def add_task(session: Session, title: str, creator, **kwargs: Any):
    from deadline_scheduler.db.models import Task

    task = Task(title=title, creator=creator, **kwargs)
    session.add(task)
    session.flush()
    return task


def add_board(session: Session, title: str, owner, members=(), lists=("To do", "Done")):
    from deadline_scheduler.db.models import BoardMember, KanbanBoard, KanbanList

    board = KanbanBoard(title=title, owner_id=owner.id)
    for user in members:
        board.members.append(BoardMember(user=user))
    for pos, list_title in enumerate(lists):
        board.lists.append(KanbanList(title=list_title, position=pos))
    session.add(board)
    session.flush()
    return board


def add_card(session: Session, kanban_list, title: str, *, assignees=(), **kwargs: Any):
    from deadline_scheduler.db.models import KanbanCard

    card = KanbanCard(title=title, kanban_list=kanban_list, **kwargs)
    card.assignees.extend(assignees)
    session.add(card)
    session.flush()
    return card


class FakeStore:
    """In-memory ReminderStore that records which queries ran."""

    def __init__(self, gate: asyncio.Event | None = None) -> None:
        self.calls: list[str] = []
        self.gate = gate

    async def find_overdue_projects(self, today):
        self.calls.append("overdue_projects")
        if self.gate is not None:
            await self.gate.wait()
        return []

    async def find_upcoming_projects(self, tomorrow):
        self.calls.append("upcoming_projects")
        return []

    async def find_overdue_tasks(self, today):
        self.calls.append("overdue_tasks")
        return []

    async def find_upcoming_tasks(self, tomorrow):
        self.calls.append("upcoming_tasks")
        return []

    async def find_due_task_reminders(self, now):
        self.calls.append("task_reminders")
        return []

    async def find_cards_near_deadline(self, now, window):
        self.calls.append("cards_near_deadline")
        return []

    async def find_incomplete_cards_by_board(self):
        self.calls.append("incomplete_cards")
        return []

    async def mark_task_reminder_sent(self, task_id):
        return True

    async def mark_card_deadline_reminder_sent(self, card_id):
        return True
