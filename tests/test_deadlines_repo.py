from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import VN_TZ, add_board, add_card, add_project, add_task, add_user, utc

from deadline_scheduler.db.models import KanbanCard, Task
from deadline_scheduler.db.repositories import deadlines_repo as repo
from deadline_scheduler.db.session import session_scope
from deadline_scheduler.scheduler.clock import local_midnight, next_local_midnight

NOW = utc(2026, 3, 10, 3, 0)  # 10:00 in Ho Chi Minh City
TODAY = local_midnight(NOW, VN_TZ)
TOMORROW = next_local_midnight(NOW, VN_TZ)


def test_project_boundaries_split_overdue_and_upcoming(session_factory) -> None:
    with session_scope(session_factory) as s:
        boss = add_user(s, "Boss", "boss@example.com")
        add_project(s, "AT-TODAY", boss, TODAY)
        add_project(s, "LATER-TODAY", boss, TODAY + timedelta(hours=5))
        add_project(s, "AT-TOMORROW", boss, TOMORROW)
        add_project(s, "END-TOMORROW", boss, TOMORROW + timedelta(days=1) - timedelta(microseconds=1))
        add_project(s, "DAY-AFTER", boss, TOMORROW + timedelta(days=1))
        add_project(s, "NO-DATE", boss, None)
        add_project(s, "DONE", boss, TODAY - timedelta(days=3), status="COMPLETED")
        add_project(s, "DONE-TOMORROW", boss, TOMORROW, status="COMPLETED")
        add_project(s, "HELD", boss, TODAY - timedelta(days=2), status="ON_HOLD")

    with session_scope(session_factory) as s:
        overdue = [p.code for p in repo.find_overdue_projects(s, TODAY)]
        upcoming = [p.code for p in repo.find_upcoming_projects(s, TOMORROW)]

    assert overdue == ["HELD", "AT-TODAY"]
    assert upcoming == ["AT-TOMORROW", "END-TOMORROW"]


def test_project_rows_carry_roles_and_utc_dates(session_factory) -> None:
    with session_scope(session_factory) as s:
        m = add_user(s, "M", "m@example.com")
        a = add_user(s, "A", None)
        b = add_user(s, "B", "b@example.com")
        p = add_project(s, "P-1", m, TODAY)
        p.implementers.extend([a, b])
        p.followers.append(b)

    with session_scope(session_factory) as s:
        (row,) = repo.find_overdue_projects(s, TODAY)

    assert row.manager.name == "M"
    assert [u.name for u in row.implementers] == ["A", "B"]
    assert [u.name for u in row.followers] == ["B"]
    assert row.implementers[0].email is None
    assert row.end_date == TODAY
    assert row.end_date.tzinfo is not None


def test_task_queries_only_open_personal_tasks(session_factory) -> None:
    with session_scope(session_factory) as s:
        u = add_user(s, "U", "u@example.com")
        add_task(s, "overdue", u, end_date=TODAY - timedelta(days=1))
        add_task(s, "due-today-midnight", u, end_date=TODAY)
        add_task(s, "project-type", u, end_date=TODAY - timedelta(days=1), type="PROJECT")
        add_task(s, "completed", u, end_date=TODAY - timedelta(days=1), status="COMPLETED")
        add_task(s, "cancelled", u, end_date=TOMORROW, status="CANCELLED")
        add_task(s, "tomorrow", u, end_date=TOMORROW + timedelta(hours=9))
        add_task(s, "project-tomorrow", u, end_date=TOMORROW, type="PROJECT")
        add_task(s, "in-progress", u, end_date=TODAY - timedelta(hours=1), status="IN_PROGRESS")

    with session_scope(session_factory) as s:
        overdue = [t.title for t in repo.find_overdue_tasks(s, TODAY)]
        upcoming = [t.title for t in repo.find_upcoming_tasks(s, TOMORROW)]

    assert overdue == ["overdue", "in-progress", "due-today-midnight"]
    assert upcoming == ["tomorrow"]


def test_due_task_reminders_filters_latch_and_status(session_factory) -> None:
    with session_scope(session_factory) as s:
        u = add_user(s, "U")
        add_task(s, "due", u, reminder_at=NOW - timedelta(minutes=1))
        add_task(s, "exactly-now", u, reminder_at=NOW)
        add_task(s, "future", u, reminder_at=NOW + timedelta(seconds=1))
        add_task(s, "sent", u, reminder_at=NOW - timedelta(hours=1), is_reminder_sent=True)
        add_task(s, "completed", u, reminder_at=NOW - timedelta(hours=1), status="COMPLETED")
        add_task(s, "project-type", u, reminder_at=NOW - timedelta(hours=2), type="PROJECT")

    with session_scope(session_factory) as s:
        titles = [t.title for t in repo.find_due_task_reminders(s, NOW)]

    assert titles == ["project-type", "due", "exactly-now"]


def test_cards_near_deadline_window(session_factory) -> None:
    with session_scope(session_factory) as s:
        owner = add_user(s, "O")
        board = add_board(s, "B", owner, members=[owner])
        todo = board.lists[0]
        add_card(s, todo, "now", due_date=NOW)
        add_card(s, todo, "in-5", due_date=NOW + timedelta(minutes=5))
        add_card(s, todo, "in-10", due_date=NOW + timedelta(minutes=10))
        add_card(s, todo, "in-11", due_date=NOW + timedelta(minutes=11))
        add_card(s, todo, "past", due_date=NOW - timedelta(minutes=1))
        add_card(s, todo, "done", due_date=NOW + timedelta(minutes=2), completed=True)
        add_card(s, todo, "sent", due_date=NOW + timedelta(minutes=3), deadline_reminder_sent=True)
        add_card(s, todo, "no-date")

    with session_scope(session_factory) as s:
        cards = repo.find_cards_near_deadline(s, NOW, timedelta(minutes=10))

    assert [c.title for c in cards] == ["in-5", "in-10"]
    assert cards[0].board_title == "B"
    assert [m.name for m in cards[0].members] == ["O"]


def test_incomplete_cards_skip_done_lists(session_factory) -> None:
    with session_scope(session_factory) as s:
        owner = add_user(s, "O")
        first = add_board(s, "Alpha", owner, lists=("To do", "Done"))
        second = add_board(s, "Beta", owner, lists=("Doing", "  HOÀN THÀNH ", "Done soon"))
        add_card(s, first.lists[0], "a1", position=1)
        add_card(s, first.lists[0], "a0", position=0)
        add_card(s, first.lists[0], "a-closed", completed=True)
        add_card(s, first.lists[1], "a-done-list")
        add_card(s, second.lists[0], "b1")
        add_card(s, second.lists[1], "b-hoan-thanh")
        add_card(s, second.lists[2], "b-soon")
        add_board(s, "Empty", owner)

    with session_scope(session_factory) as s:
        boards = repo.find_incomplete_cards_by_board(s)

    assert [b.title for b in boards] == ["Alpha", "Beta"]
    assert [c.title for c in boards[0].cards] == ["a0", "a1"]
    assert [c.title for c in boards[1].cards] == ["b1", "b-soon"]


@pytest.mark.parametrize("title", ["Done", "done", "DONE ", "Hoàn thành", "hoàn thành", "HOÀN THÀNH"])
def test_is_done_list_matches_any_case(title: str) -> None:
    assert repo.is_done_list(title)


@pytest.mark.parametrize("title", ["", None, "Doing", "Done soon", "Chưa hoàn thành"])
def test_is_done_list_rejects_other_titles(title) -> None:
    assert not repo.is_done_list(title)


def test_mark_latches_are_compare_and_set(session_factory) -> None:
    with session_scope(session_factory) as s:
        u = add_user(s, "U")
        task = add_task(s, "t", u, reminder_at=NOW)
        board = add_board(s, "B", u)
        card = add_card(s, board.lists[0], "c", due_date=NOW)
        task_id, card_id = task.id, card.id

    with session_scope(session_factory) as s:
        assert repo.mark_task_reminder_sent(s, task_id) is True
        assert repo.mark_task_reminder_sent(s, task_id) is False
        assert repo.mark_card_deadline_reminder_sent(s, card_id) is True
        assert repo.mark_card_deadline_reminder_sent(s, card_id) is False

    with session_scope(session_factory) as s:
        assert s.get(Task, task_id).is_reminder_sent is True
        assert s.get(KanbanCard, card_id).deadline_reminder_sent is True


def test_rescheduling_resets_latch_for_new_occurrence(session_factory) -> None:
    with session_scope(session_factory) as s:
        u = add_user(s, "U")
        task = add_task(s, "t", u, reminder_at=NOW - timedelta(hours=1), is_reminder_sent=True)
        board = add_board(s, "B", u)
        card = add_card(s, board.lists[0], "c", due_date=NOW, deadline_reminder_sent=True)
        task_id, card_id = task.id, card.id

    with session_scope(session_factory) as s:
        repo.reschedule_task_reminder(s, task_id, NOW - timedelta(minutes=1))
        repo.reschedule_card_due_date(s, card_id, NOW + timedelta(minutes=3))

    with session_scope(session_factory) as s:
        assert [t.id for t in repo.find_due_task_reminders(s, NOW)] == [task_id]
        assert [c.id for c in repo.find_cards_near_deadline(s, NOW)] == [card_id]


def test_reschedule_unknown_rows_raise(session_factory) -> None:
    with session_scope(session_factory) as s:
        with pytest.raises(ValueError):
            repo.reschedule_task_reminder(s, 999, NOW)
        with pytest.raises(ValueError):
            repo.reschedule_card_due_date(s, 999, NOW)
