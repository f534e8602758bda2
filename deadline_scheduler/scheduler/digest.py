from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from deadline_scheduler.db.repositories.deadlines_repo import BoardCards
from deadline_scheduler.notifications.email_service import BoardDigest, CardSummary
from deadline_scheduler.scheduler.recipients import card_recipients


@dataclass(slots=True)
class UserDigest:
    user_id: int
    user_name: str
    email: str | None
    boards: dict[str, list[CardSummary]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(len(cards) for cards in self.boards.values())

    @property
    def card_titles(self) -> list[str]:
        return [card.card_title for cards in self.boards.values() for card in cards]

    def board_digests(self) -> list[BoardDigest]:
        return [BoardDigest(board_title=title, cards=list(cards)) for title, cards in self.boards.items()]


def board_label(board_titles: Sequence[str]) -> str:
    if not board_titles:
        return ""
    if len(board_titles) == 1:
        return board_titles[0]
    return f"{board_titles[0]} và {len(board_titles) - 1} bảng khác"


def build_daily_digests(boards: Sequence[BoardCards]) -> list[UserDigest]:
    """Group incomplete cards into one digest per recipient, keyed by board title.

    Boards and cards keep the store's ordering, so each user's first board is
    the lowest-id board that holds one of their cards.
    """
    digests: dict[int, UserDigest] = {}
    for board in boards:
        for card in board.cards:
            summary = CardSummary(
                board_title=board.title,
                card_title=card.title,
                list_title=card.list_title,
                due_date=card.due_date,
            )
            for target in card_recipients(card):
                digest = digests.get(target.id)
                if digest is None:
                    digest = UserDigest(user_id=target.id, user_name=target.name, email=target.email)
                    digests[target.id] = digest
                digest.boards.setdefault(board.title, []).append(summary)
    return [d for d in digests.values() if d.total > 0]
