from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, Sequence
from zoneinfo import ZoneInfo

from loguru import logger
from pywebpush import WebPushException, webpush
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from deadline_scheduler.config import settings
from deadline_scheduler.db.models import NotificationSettings, PushSubscription
from deadline_scheduler.db.session import session_scope
from deadline_scheduler.scheduler.clock import as_utc

_URGENT_VIBRATE = [200, 100, 200, 100, 200]
_DAILY_PREVIEW_TITLES = 3

# Payload type -> NotificationSettings column that can mute it.
_SETTING_BY_TYPE = {
    "project": "project_assignments",
    "task": "task_assignments",
}


@dataclass(slots=True)
class PushPayload:
    title: str
    body: str
    type: str
    url: str
    tag: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = False
    vibrate: list[int] | None = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "title": self.title,
                "body": self.body,
                "icon": "/icons/icon-192x192.png",
                "badge": "/icons/icon-72x72.png",
                "tag": self.tag,
                "data": {"type": self.type, "url": self.url, **self.data},
                "vibrate": self.vibrate or [100, 50, 100],
                "requireInteraction": self.require_interaction,
            },
            ensure_ascii=False,
        )


class PushNotifier(Protocol):
    async def notify_project_deadline_overdue(
        self, user_ids: Sequence[int], project_id: int, project_name: str, days_overdue: int
    ) -> Any: ...

    async def notify_project_deadline_upcoming(
        self, user_ids: Sequence[int], project_id: int, project_name: str, days_until: int
    ) -> Any: ...

    async def notify_task_deadline_overdue(self, user_id: int, task_id: int, title: str, days_overdue: int) -> Any: ...

    async def notify_task_deadline_upcoming(self, user_id: int, task_id: int, title: str, days_until: int) -> Any: ...

    async def notify_task_reminder(self, user_id: int, task_id: int, title: str, reminder_at: datetime) -> Any: ...

    async def notify_kanban_daily_reminder(
        self, user_id: int, board_label: str, card_titles: Sequence[str], total_count: int
    ) -> Any: ...

    async def notify_kanban_card_deadline(
        self, user_ids: Sequence[int], card_id: int, card_title: str, board_title: str, due_date: datetime
    ) -> Any: ...


def project_overdue_payload(project_id: int, project_name: str, days_overdue: int) -> PushPayload:
    if days_overdue == 0:
        body = f'Dự án "{project_name}" đã đến hạn hoàn thành hôm nay!'
    else:
        body = f'Dự án "{project_name}" đã quá hạn {days_overdue} ngày!'
    return PushPayload(
        title="⚠️ Dự án quá hạn!",
        body=body,
        type="project",
        url=f"/projects/{project_id}",
        tag=f"project-deadline-{project_id}",
        data={"projectId": project_id},
        require_interaction=True,
        vibrate=_URGENT_VIBRATE,
    )


def project_upcoming_payload(project_id: int, project_name: str, days_until: int) -> PushPayload:
    if days_until == 1:
        body = f'Dự án "{project_name}" sẽ đến hạn vào ngày mai!'
    else:
        body = f'Dự án "{project_name}" sẽ đến hạn trong {days_until} ngày nữa.'
    return PushPayload(
        title="📅 Nhắc nhở deadline dự án",
        body=body,
        type="project",
        url=f"/projects/{project_id}",
        tag=f"project-deadline-reminder-{project_id}",
        data={"projectId": project_id},
    )


def task_overdue_payload(task_id: int, title: str, days_overdue: int) -> PushPayload:
    if days_overdue == 0:
        body = f'Công việc "{title}" đã đến hạn hoàn thành hôm nay!'
    else:
        body = f'Công việc "{title}" đã quá hạn {days_overdue} ngày!'
    return PushPayload(
        title="⚠️ Công việc quá hạn!",
        body=body,
        type="task",
        url="/my-tasks",
        tag=f"task-deadline-{task_id}",
        data={"taskId": task_id},
        require_interaction=True,
        vibrate=_URGENT_VIBRATE,
    )


def task_upcoming_payload(task_id: int, title: str, days_until: int) -> PushPayload:
    if days_until == 1:
        body = f'Công việc "{title}" sẽ đến hạn vào ngày mai!'
    else:
        body = f'Công việc "{title}" sẽ đến hạn trong {days_until} ngày nữa.'
    return PushPayload(
        title="📅 Nhắc nhở công việc",
        body=body,
        type="task",
        url="/my-tasks",
        tag=f"task-deadline-reminder-{task_id}",
        data={"taskId": task_id},
    )


def task_reminder_payload(task_id: int, title: str, reminder_at: datetime, tz: ZoneInfo) -> PushPayload:
    local = as_utc(reminder_at).astimezone(tz)
    return PushPayload(
        title="⏰ Nhắc nhở công việc",
        body=f'Đến giờ thực hiện "{title}" ({local:%H:%M %d/%m/%Y})',
        type="task",
        url="/my-tasks",
        tag=f"task-reminder-{task_id}",
        data={"taskId": task_id},
        require_interaction=True,
        vibrate=_URGENT_VIBRATE,
    )


def kanban_daily_payload(board_label: str, card_titles: Sequence[str], total_count: int) -> PushPayload:
    preview = ", ".join(f'"{t}"' for t in card_titles[:_DAILY_PREVIEW_TITLES])
    if len(card_titles) > _DAILY_PREVIEW_TITLES:
        preview += "..."
    return PushPayload(
        title="📋 Công việc Kanban chưa hoàn thành",
        body=f"Bạn có {total_count} thẻ chưa hoàn thành trong {board_label}: {preview}",
        type="kanban",
        url="/kanban",
        tag="kanban-daily-reminder",
        data={"totalCount": total_count},
    )


def kanban_card_deadline_payload(
    card_id: int, card_title: str, board_title: str, due_date: datetime, tz: ZoneInfo
) -> PushPayload:
    local = as_utc(due_date).astimezone(tz)
    return PushPayload(
        title="⏰ Thẻ sắp đến hạn",
        body=f'Thẻ "{card_title}" trong bảng "{board_title}" sẽ đến hạn lúc {local:%H:%M}',
        type="kanban",
        url=f"/kanban?card={card_id}",
        tag=f"kanban-card-deadline-{card_id}",
        data={"cardId": card_id},
        require_interaction=True,
        vibrate=_URGENT_VIBRATE,
    )


class WebPushNotifier:
    """Delivers payloads to every registered browser subscription of a user via pywebpush."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        vapid_private_key: str | None = None,
        vapid_email: str | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        if session_factory is None:
            from deadline_scheduler.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self._vapid_private_key = settings.vapid_private_key if vapid_private_key is None else vapid_private_key
        self._vapid_email = vapid_email or settings.vapid_email
        self._tz = tz or ZoneInfo(settings.timezone)
        if not self._vapid_private_key:
            logger.warning("push disabled: VAPID_PRIVATE_KEY is not configured")

    @property
    def enabled(self) -> bool:
        return bool(self._vapid_private_key)

    def _load_targets(self, user_id: int, payload_type: str) -> list[PushSubscription] | None:
        with session_scope(self._session_factory) as session:
            prefs = session.scalar(select(NotificationSettings).where(NotificationSettings.user_id == user_id))
            column = _SETTING_BY_TYPE.get(payload_type)
            if prefs is not None and column and getattr(prefs, column) is False:
                return None
            stmt = select(PushSubscription).where(PushSubscription.user_id == user_id).order_by(PushSubscription.id)
            return list(session.scalars(stmt).all())

    def _drop_subscription(self, subscription_id: int) -> None:
        with session_scope(self._session_factory) as session:
            session.execute(delete(PushSubscription).where(PushSubscription.id == subscription_id))

    def _deliver(self, subscription: PushSubscription, data: str) -> None:
        webpush(
            subscription_info={
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            data=data,
            vapid_private_key=self._vapid_private_key,
            vapid_claims={"sub": self._vapid_email},
        )

    async def send_to_user(self, user_id: int, payload: PushPayload) -> dict[str, int]:
        stats = {"success": 0, "failed": 0, "skipped": 0}
        if not self.enabled:
            logger.debug("push skipped user_id={} reason=vapid_not_configured", user_id)
            return stats

        subscriptions = await asyncio.to_thread(self._load_targets, user_id, payload.type)
        if subscriptions is None:
            logger.info("push skipped user_id={} type={} reason=muted", user_id, payload.type)
            stats["skipped"] = 1
            return stats
        if not subscriptions:
            logger.debug("push skipped user_id={} reason=no_subscriptions", user_id)
            return stats

        data = payload.to_json()
        for sub in subscriptions:
            try:
                await asyncio.to_thread(self._deliver, sub, data)
                stats["success"] += 1
            except WebPushException as exc:
                stats["failed"] += 1
                status = getattr(getattr(exc, "response", None), "status_code", None)
                logger.warning("push failed user_id={} endpoint={} status={} err={}", user_id, sub.endpoint, status, exc)
                if status in (404, 410):
                    await asyncio.to_thread(self._drop_subscription, sub.id)
                    logger.info("push subscription removed id={} status={}", sub.id, status)
        logger.info("push sent user_id={} type={} stats={}", user_id, payload.type, stats)
        return stats

    async def send_to_users(self, user_ids: Sequence[int], payload: PushPayload) -> dict[str, int]:
        results = await asyncio.gather(*(self.send_to_user(uid, payload) for uid in user_ids))
        return {
            "success": sum(r["success"] for r in results),
            "failed": sum(r["failed"] for r in results),
        }

    async def notify_project_deadline_overdue(
        self, user_ids: Sequence[int], project_id: int, project_name: str, days_overdue: int
    ) -> dict[str, int]:
        return await self.send_to_users(user_ids, project_overdue_payload(project_id, project_name, days_overdue))

    async def notify_project_deadline_upcoming(
        self, user_ids: Sequence[int], project_id: int, project_name: str, days_until: int
    ) -> dict[str, int]:
        return await self.send_to_users(user_ids, project_upcoming_payload(project_id, project_name, days_until))

    async def notify_task_deadline_overdue(
        self, user_id: int, task_id: int, title: str, days_overdue: int
    ) -> dict[str, int]:
        return await self.send_to_user(user_id, task_overdue_payload(task_id, title, days_overdue))

    async def notify_task_deadline_upcoming(
        self, user_id: int, task_id: int, title: str, days_until: int
    ) -> dict[str, int]:
        return await self.send_to_user(user_id, task_upcoming_payload(task_id, title, days_until))

    async def notify_task_reminder(
        self, user_id: int, task_id: int, title: str, reminder_at: datetime
    ) -> dict[str, int]:
        return await self.send_to_user(user_id, task_reminder_payload(task_id, title, reminder_at, self._tz))

    async def notify_kanban_daily_reminder(
        self, user_id: int, board_label: str, card_titles: Sequence[str], total_count: int
    ) -> dict[str, int]:
        return await self.send_to_user(user_id, kanban_daily_payload(board_label, card_titles, total_count))

    async def notify_kanban_card_deadline(
        self, user_ids: Sequence[int], card_id: int, card_title: str, board_title: str, due_date: datetime
    ) -> dict[str, int]:
        payload = kanban_card_deadline_payload(card_id, card_title, board_title, due_date, self._tz)
        return await self.send_to_users(user_ids, payload)
