from datetime import datetime

from fastapi import APIRouter, HTTPException, Request
from loguru import logger
from pydantic import BaseModel

from deadline_scheduler.db.repositories.deadlines_repo import reschedule_card_due_date, reschedule_task_reminder
from deadline_scheduler.db.session import get_session
from deadline_scheduler.scheduler.clock import as_utc
from deadline_scheduler.scheduler.runner import DeadlineScheduler

router = APIRouter(prefix="/reminders")


class TaskReminderIn(BaseModel):
    reminder_at: datetime | None = None


class CardDueDateIn(BaseModel):
    due_date: datetime | None = None


def _scheduler(request: Request) -> DeadlineScheduler:
    return request.app.state.scheduler


def _iso(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value is not None else None


@router.get("/status")
async def reminders_status(request: Request) -> dict:
    return _scheduler(request).status()


@router.post("/run")
async def reminders_run(request: Request) -> dict:
    logger.info("manual deadline checks requested")
    return await _scheduler(request).run_deadline_checks()


@router.post("/run-minutely")
async def reminders_run_minutely(request: Request) -> dict:
    logger.info("manual minutely checks requested")
    return await _scheduler(request).run_minutely_checks()


@router.post("/tasks/{task_id}/reschedule")
async def reschedule_task(task_id: int, payload: TaskReminderIn) -> dict:
    try:
        with get_session() as session:
            task = reschedule_task_reminder(session, task_id, payload.reminder_at)
            result = {"id": task.id, "reminder_at": _iso(task.reminder_at), "is_reminder_sent": task.is_reminder_sent}
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info("task reminder rescheduled id={} reminder_at={}", task_id, result["reminder_at"])
    return result


@router.post("/cards/{card_id}/reschedule")
async def reschedule_card(card_id: int, payload: CardDueDateIn) -> dict:
    try:
        with get_session() as session:
            card = reschedule_card_due_date(session, card_id, payload.due_date)
            result = {"id": card.id, "due_date": _iso(card.due_date), "deadline_reminder_sent": card.deadline_reminder_sent}
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info("kanban card rescheduled id={} due_date={}", card_id, result["due_date"])
    return result
