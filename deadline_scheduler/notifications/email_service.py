from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from typing import Protocol, Sequence
from zoneinfo import ZoneInfo

import httpx
from loguru import logger

from deadline_scheduler.config import settings
from deadline_scheduler.scheduler.clock import as_utc


@dataclass(slots=True)
class CardSummary:
    board_title: str
    card_title: str
    list_title: str
    due_date: datetime | None = None


@dataclass(slots=True)
class BoardDigest:
    board_title: str
    cards: list[CardSummary] = field(default_factory=list)


class EmailSender(Protocol):
    async def send_deadline_reminder_email(
        self,
        to_email: str,
        user_name: str,
        project_id: int,
        project_name: str,
        project_code: str,
        end_date: datetime,
        days_remaining: int,
        is_overdue: bool,
    ) -> bool | None: ...

    async def send_task_reminder_email(
        self, to_email: str, user_name: str, task_id: int, title: str, reminder_at: datetime
    ) -> bool | None: ...

    async def send_kanban_daily_reminder_email(
        self, to_email: str, user_name: str, boards: Sequence[BoardDigest]
    ) -> bool | None: ...


def deadline_status_text(days_remaining: int, is_overdue: bool) -> str:
    if is_overdue:
        return f"Quá hạn {abs(days_remaining)} ngày"
    if days_remaining == 0:
        return "Deadline hôm nay"
    if days_remaining == 1:
        return "Deadline ngày mai"
    return f"Còn {days_remaining} ngày"


def deadline_subject(project_name: str, days_remaining: int, is_overdue: bool) -> str:
    if is_overdue:
        return f'[CẢNH BÁO] Dự án "{project_name}" đã quá hạn {abs(days_remaining)} ngày!'
    if days_remaining <= 1:
        return f'[NHẮC NHỞ] Dự án "{project_name}" sắp đến deadline!'
    return f'[NHẮC NHỞ] Dự án "{project_name}" còn {days_remaining} ngày'


def _layout(heading: str, body_html: str, *, danger: bool = False) -> str:
    header_bg = "#dc2626" if danger else "#1e3a8a"
    year = datetime.now().year
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(heading)}</title></head>
<body style="margin:0;padding:0;font-family:'Segoe UI',Tahoma,sans-serif;background-color:#f0f2f5;">
<table cellpadding="0" cellspacing="0" border="0" width="100%" style="padding:40px 20px;"><tr><td align="center">
<table cellpadding="0" cellspacing="0" border="0" width="600" style="background:#ffffff;border-radius:16px;">
<tr><td style="background:{header_bg};padding:30px 40px;text-align:center;">
<h1 style="color:#ffffff;margin:0;font-size:22px;">{escape(heading)}</h1></td></tr>
<tr><td style="padding:36px 44px;color:#334155;font-size:15px;line-height:1.7;">{body_html}</td></tr>
<tr><td style="background:#1e293b;padding:24px 40px;text-align:center;color:#94a3b8;font-size:12px;">
Email này được gửi tự động từ hệ thống JTSC Project Management<br>&copy; {year} JTSC. All rights reserved.
</td></tr></table></td></tr></table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'<div style="text-align:center;margin-top:28px;"><a href="{escape(url)}" '
        'style="display:inline-block;padding:14px 36px;background:#3b82f6;color:#ffffff;'
        f'text-decoration:none;border-radius:10px;font-weight:600;">{escape(label)}</a></div>'
    )


def render_deadline_email(
    user_name: str,
    project_name: str,
    project_code: str,
    end_date_text: str,
    days_remaining: int,
    is_overdue: bool,
    project_url: str,
) -> str:
    if is_overdue:
        urgency = (
            "Dự án này đã vượt quá thời hạn hoàn thành. Vui lòng cập nhật tiến độ ngay "
            "hoặc liên hệ với quản lý để xin gia hạn nếu cần thiết."
        )
    elif days_remaining <= 1:
        urgency = "Thời hạn hoàn thành dự án đang đến gần. Vui lòng đảm bảo tiến độ công việc theo kế hoạch."
    else:
        urgency = "Đây là thông báo nhắc nhở về tiến độ dự án. Vui lòng kiểm tra và cập nhật trạng thái công việc."
    body = (
        f"<p>Kính gửi <strong>{escape(user_name)}</strong>,</p>"
        f'<p style="text-align:center;"><strong>{escape(deadline_status_text(days_remaining, is_overdue))}</strong></p>'
        f"<p>{urgency}</p>"
        f'<div style="background:#f8fafc;border-radius:12px;padding:22px;">'
        f"<h2 style=\"margin:0 0 12px;font-size:19px;\">📁 {escape(project_name)}</h2>"
        f"<div><strong>Mã dự án:</strong> {escape(project_code)}</div>"
        f"<div><strong>Hạn hoàn thành:</strong> {escape(end_date_text)}</div></div>"
        + _button(project_url, "CẬP NHẬT TIẾN ĐỘ →")
    )
    heading = "⚠️ CẢNH BÁO DỰ ÁN QUÁ HẠN" if is_overdue else "📅 NHẮC NHỞ DEADLINE DỰ ÁN"
    return _layout(heading, body, danger=is_overdue)


def render_task_reminder_email(user_name: str, title: str, reminder_text: str, task_url: str) -> str:
    body = (
        f"<p>Kính gửi <strong>{escape(user_name)}</strong>,</p>"
        f"<p>Bạn đã đặt lời nhắc cho công việc <strong>{escape(title)}</strong> "
        f"vào lúc <strong>{escape(reminder_text)}</strong>.</p>" + _button(task_url, "XEM CÔNG VIỆC →")
    )
    return _layout("⏰ NHẮC NHỞ CÔNG VIỆC", body)


def render_kanban_daily_email(
    user_name: str, boards: Sequence[BoardDigest], tz: ZoneInfo, kanban_url: str
) -> str:
    total = sum(len(b.cards) for b in boards)
    sections = []
    for board in boards:
        rows = []
        for card in board.cards:
            due = as_utc(card.due_date).astimezone(tz).strftime("%d/%m/%Y") if card.due_date else "Không có hạn"
            rows.append(
                f"<tr><td style=\"padding:6px 0;\">{escape(card.card_title)}</td>"
                f"<td style=\"padding:6px 0;color:#64748b;\">{escape(card.list_title)}</td>"
                f"<td style=\"padding:6px 0;color:#64748b;\">{escape(due)}</td></tr>"
            )
        sections.append(
            f"<h3 style=\"margin:22px 0 8px;\">📋 {escape(board.board_title)} ({len(board.cards)})</h3>"
            f'<table width="100%" cellpadding="0" cellspacing="0">{"".join(rows)}</table>'
        )
    body = (
        f"<p>Kính gửi <strong>{escape(user_name)}</strong>,</p>"
        f"<p>Bạn có <strong>{total}</strong> thẻ chưa hoàn thành trên {len(boards)} bảng Kanban:</p>"
        + "".join(sections)
        + _button(kanban_url, "MỞ KANBAN →")
    )
    return _layout("📋 CÔNG VIỆC KANBAN CHƯA HOÀN THÀNH", body)


class ResendEmailSender:
    """Sends HTML mail through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        from_email: str | None = None,
        api_url: str | None = None,
        frontend_url: str | None = None,
        tz: ZoneInfo | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = settings.resend_api_key if api_key is None else api_key
        self._from_email = from_email or settings.from_email
        self._api_url = api_url or settings.resend_api_url
        self._frontend_url = (frontend_url or settings.frontend_url).rstrip("/")
        self._tz = tz or ZoneInfo(settings.timezone)
        self._transport = transport
        if not self._api_key:
            logger.warning("email disabled: RESEND_API_KEY is not configured")

    def _fmt_date(self, value: datetime) -> str:
        return as_utc(value).astimezone(self._tz).strftime("%d/%m/%Y")

    async def _send(self, to_email: str, subject: str, html: str) -> bool | None:
        """True when Resend accepted the mail, False on a provider error, None when skipped."""
        if not to_email:
            logger.info("email skipped reason=no_address subject={}", subject)
            return None
        if not self._api_key:
            logger.debug("email skipped to={} reason=api_key_missing", to_email)
            return None
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.post(
                    self._api_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={"from": self._from_email, "to": [to_email], "subject": subject, "html": html},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("email send failed to={} subject={} err={}", to_email, subject, exc)
            return False
        logger.info("email sent to={} id={}", to_email, data.get("id") if isinstance(data, dict) else None)
        return True

    async def send_deadline_reminder_email(
        self,
        to_email: str,
        user_name: str,
        project_id: int,
        project_name: str,
        project_code: str,
        end_date: datetime,
        days_remaining: int,
        is_overdue: bool,
    ) -> bool | None:
        html = render_deadline_email(
            user_name,
            project_name,
            project_code,
            self._fmt_date(end_date),
            days_remaining,
            is_overdue,
            f"{self._frontend_url}/projects/{project_id}",
        )
        return await self._send(to_email, deadline_subject(project_name, days_remaining, is_overdue), html)

    async def send_task_reminder_email(
        self, to_email: str, user_name: str, task_id: int, title: str, reminder_at: datetime
    ) -> bool | None:
        local = as_utc(reminder_at).astimezone(self._tz)
        html = render_task_reminder_email(
            user_name, title, local.strftime("%H:%M %d/%m/%Y"), f"{self._frontend_url}/my-tasks"
        )
        return await self._send(to_email, f"[NHẮC NHỞ] {title}", html)

    async def send_kanban_daily_reminder_email(
        self, to_email: str, user_name: str, boards: Sequence[BoardDigest]
    ) -> bool | None:
        total = sum(len(b.cards) for b in boards)
        html = render_kanban_daily_email(user_name, boards, self._tz, f"{self._frontend_url}/kanban")
        return await self._send(to_email, f"[JTSC] Bạn có {total} thẻ Kanban chưa hoàn thành", html)
