from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from deadline_scheduler.db.models import BoardMember, KanbanBoard, KanbanCard, KanbanList, Project, Task, User
from deadline_scheduler.scheduler.clock import ONE_DAY, as_utc

DONE_LIST_TITLES = frozenset({"done", "hoàn thành"})
CLOSED_TASK_STATUSES = ("COMPLETED", "CANCELLED")


@dataclass(frozen=True, slots=True)
class NotifyTarget:
    id: int
    name: str
    email: str | None = None


@dataclass(slots=True)
class ProjectDue:
    id: int
    name: str
    code: str
    status: str
    end_date: datetime | None
    manager: NotifyTarget
    implementers: list[NotifyTarget] = field(default_factory=list)
    followers: list[NotifyTarget] = field(default_factory=list)


@dataclass(slots=True)
class TaskDue:
    id: int
    title: str
    status: str
    type: str
    creator: NotifyTarget
    end_date: datetime | None = None
    reminder_at: datetime | None = None


@dataclass(slots=True)
class CardDue:
    id: int
    title: str
    due_date: datetime | None
    list_title: str
    board_id: int
    board_title: str
    assignees: list[NotifyTarget] = field(default_factory=list)
    members: list[NotifyTarget] = field(default_factory=list)


@dataclass(slots=True)
class BoardCards:
    id: int
    title: str
    members: list[NotifyTarget] = field(default_factory=list)
    cards: list[CardDue] = field(default_factory=list)


def _target(user: User) -> NotifyTarget:
    return NotifyTarget(id=user.id, name=user.name, email=user.email or None)


def _opt_utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


def is_done_list(title: str | None) -> bool:
    text = unicodedata.normalize("NFC", str(title or "")).strip().casefold()
    return text in DONE_LIST_TITLES


def _project_due(project: Project) -> ProjectDue:
    return ProjectDue(
        id=project.id,
        name=project.name,
        code=project.code,
        status=project.status,
        end_date=_opt_utc(project.end_date),
        manager=_target(project.manager),
        implementers=[_target(u) for u in project.implementers],
        followers=[_target(u) for u in project.followers],
    )


def _task_due(task: Task) -> TaskDue:
    return TaskDue(
        id=task.id,
        title=task.title,
        status=task.status,
        type=task.type,
        creator=_target(task.creator),
        end_date=_opt_utc(task.end_date),
        reminder_at=_opt_utc(task.reminder_at),
    )


def _card_due(card: KanbanCard) -> CardDue:
    board = card.kanban_list.board
    return CardDue(
        id=card.id,
        title=card.title,
        due_date=_opt_utc(card.due_date),
        list_title=card.kanban_list.title,
        board_id=board.id,
        board_title=board.title,
        assignees=[_target(u) for u in card.assignees],
        members=[_target(m.user) for m in board.members],
    )


def _project_query():
    return select(Project).options(
        selectinload(Project.manager),
        selectinload(Project.implementers),
        selectinload(Project.followers),
    )


def _card_options():
    return (
        selectinload(KanbanCard.assignees),
        selectinload(KanbanCard.kanban_list)
        .selectinload(KanbanList.board)
        .selectinload(KanbanBoard.members)
        .selectinload(BoardMember.user),
    )


def find_overdue_projects(session: Session, today: datetime) -> list[ProjectDue]:
    stmt = (
        _project_query()
        .where(
            Project.end_date.is_not(None),
            Project.end_date <= as_utc(today),
            Project.status != "COMPLETED",
        )
        .order_by(Project.end_date, Project.id)
    )
    return [_project_due(p) for p in session.scalars(stmt).all()]


def find_upcoming_projects(session: Session, tomorrow: datetime) -> list[ProjectDue]:
    start = as_utc(tomorrow)
    stmt = (
        _project_query()
        .where(
            Project.end_date >= start,
            Project.end_date < start + ONE_DAY,
            Project.status != "COMPLETED",
        )
        .order_by(Project.end_date, Project.id)
    )
    return [_project_due(p) for p in session.scalars(stmt).all()]


def _personal_task_query():
    return (
        select(Task)
        .options(selectinload(Task.creator))
        .where(
            Task.type == "PERSONAL",
            Task.status.notin_(CLOSED_TASK_STATUSES),
        )
    )


def find_overdue_tasks(session: Session, today: datetime) -> list[TaskDue]:
    stmt = (
        _personal_task_query()
        .where(Task.end_date.is_not(None), Task.end_date <= as_utc(today))
        .order_by(Task.end_date, Task.id)
    )
    return [_task_due(t) for t in session.scalars(stmt).all()]


def find_upcoming_tasks(session: Session, tomorrow: datetime) -> list[TaskDue]:
    start = as_utc(tomorrow)
    stmt = (
        _personal_task_query()
        .where(Task.end_date >= start, Task.end_date < start + ONE_DAY)
        .order_by(Task.end_date, Task.id)
    )
    return [_task_due(t) for t in session.scalars(stmt).all()]


def find_due_task_reminders(session: Session, now: datetime) -> list[TaskDue]:
    stmt = (
        select(Task)
        .options(selectinload(Task.creator))
        .where(
            Task.reminder_at.is_not(None),
            Task.reminder_at <= as_utc(now),
            Task.is_reminder_sent.is_(False),
            Task.status != "COMPLETED",
        )
        .order_by(Task.reminder_at, Task.id)
    )
    return [_task_due(t) for t in session.scalars(stmt).all()]


def find_cards_near_deadline(
    session: Session,
    now: datetime,
    window: timedelta = timedelta(minutes=10),
) -> list[CardDue]:
    start = as_utc(now)
    stmt = (
        select(KanbanCard)
        .options(*_card_options())
        .where(
            KanbanCard.due_date > start,
            KanbanCard.due_date <= start + window,
            KanbanCard.completed.is_(False),
            KanbanCard.deadline_reminder_sent.is_(False),
        )
        .order_by(KanbanCard.due_date, KanbanCard.id)
    )
    return [_card_due(c) for c in session.scalars(stmt).all()]


def find_incomplete_cards_by_board(session: Session) -> list[BoardCards]:
    stmt = (
        select(KanbanCard)
        .join(KanbanCard.kanban_list)
        .options(*_card_options())
        .where(KanbanCard.completed.is_(False))
        .order_by(KanbanList.board_id, KanbanList.position, KanbanList.id, KanbanCard.position, KanbanCard.id)
    )
    boards: dict[int, BoardCards] = {}
    for card in session.scalars(stmt).all():
        if is_done_list(card.kanban_list.title):
            continue
        due = _card_due(card)
        board = boards.get(due.board_id)
        if board is None:
            board = BoardCards(id=due.board_id, title=due.board_title, members=list(due.members))
            boards[due.board_id] = board
        board.cards.append(due)
    return list(boards.values())


def mark_task_reminder_sent(session: Session, task_id: int) -> bool:
    """Flip the reminder latch; False when another run already claimed it."""
    result = session.execute(
        update(Task)
        .where(Task.id == task_id, Task.is_reminder_sent.is_(False))
        .values(is_reminder_sent=True)
    )
    session.commit()
    return int(getattr(result, "rowcount", 0) or 0) == 1


def mark_card_deadline_reminder_sent(session: Session, card_id: int) -> bool:
    result = session.execute(
        update(KanbanCard)
        .where(KanbanCard.id == card_id, KanbanCard.deadline_reminder_sent.is_(False))
        .values(deadline_reminder_sent=True)
    )
    session.commit()
    return int(getattr(result, "rowcount", 0) or 0) == 1


def reschedule_task_reminder(session: Session, task_id: int, reminder_at: datetime | None) -> Task:
    task = session.get(Task, task_id)
    if task is None:
        raise ValueError("Task not found")
    task.reminder_at = _opt_utc(reminder_at)
    task.is_reminder_sent = False
    session.commit()
    session.refresh(task)
    return task


def reschedule_card_due_date(session: Session, card_id: int, due_date: datetime | None) -> KanbanCard:
    card = session.get(KanbanCard, card_id)
    if card is None:
        raise ValueError("Card not found")
    card.due_date = _opt_utc(due_date)
    card.deadline_reminder_sent = False
    session.commit()
    session.refresh(card)
    return card
