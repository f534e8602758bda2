from __future__ import annotations

from conftest import utc

from deadline_scheduler.db.repositories.deadlines_repo import BoardCards, CardDue, NotifyTarget
from deadline_scheduler.scheduler.digest import board_label, build_daily_digests

U1 = NotifyTarget(1, "Hoa", "hoa@example.com")
U2 = NotifyTarget(2, "Khoa", None)


def _card(card_id: int, title: str, board: BoardCards, assignees=()) -> CardDue:
    card = CardDue(
        id=card_id,
        title=title,
        due_date=None,
        list_title="To do",
        board_id=board.id,
        board_title=board.title,
        assignees=list(assignees),
        members=list(board.members),
    )
    board.cards.append(card)
    return card


def test_board_label() -> None:
    assert board_label([]) == ""
    assert board_label(["Alpha"]) == "Alpha"
    assert board_label(["Alpha", "Beta", "Gamma"]) == "Alpha và 2 bảng khác"


def test_digest_groups_by_board_in_store_order() -> None:
    alpha = BoardCards(id=1, title="Alpha", members=[U1, U2])
    beta = BoardCards(id=2, title="Beta", members=[U1])
    _card(10, "a1", alpha, assignees=[U1])
    _card(11, "a2", alpha)
    _card(20, "b1", beta)

    digests = {d.user_id: d for d in build_daily_digests([alpha, beta])}

    hoa = digests[1]
    assert hoa.total == 3
    assert list(hoa.boards) == ["Alpha", "Beta"]
    assert hoa.card_titles == ["a1", "a2", "b1"]
    assert [(b.board_title, len(b.cards)) for b in hoa.board_digests()] == [("Alpha", 2), ("Beta", 1)]

    khoa = digests[2]
    assert khoa.email is None
    assert khoa.card_titles == ["a2"]


def test_digest_skips_users_without_cards() -> None:
    board = BoardCards(id=1, title="Alpha", members=[U1, U2])
    _card(10, "only-hoa", board, assignees=[U1])

    digests = build_daily_digests([board])

    assert [d.user_id for d in digests] == [1]


def test_digest_keeps_due_date_on_summary() -> None:
    board = BoardCards(id=1, title="Alpha", members=[U1])
    card = _card(10, "a1", board)
    card.due_date = utc(2026, 3, 12, 2, 0)

    (digest,) = build_daily_digests([board])

    assert digest.boards["Alpha"][0].due_date == utc(2026, 3, 12, 2, 0)
