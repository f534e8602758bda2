from __future__ import annotations

from typing import Iterable

from deadline_scheduler.db.repositories.deadlines_repo import CardDue, NotifyTarget, ProjectDue, TaskDue


def unique_targets(*groups: Iterable[NotifyTarget]) -> list[NotifyTarget]:
    """Flatten groups keeping the first occurrence of each user id."""
    seen: set[int] = set()
    out: list[NotifyTarget] = []
    for group in groups:
        for target in group:
            if target.id in seen:
                continue
            seen.add(target.id)
            out.append(target)
    return out


def project_recipients(project: ProjectDue) -> list[NotifyTarget]:
    return unique_targets([project.manager], project.implementers, project.followers)


def card_recipients(card: CardDue) -> list[NotifyTarget]:
    # Explicit assignees win; an unassigned card falls back to the whole board.
    if card.assignees:
        return unique_targets(card.assignees)
    return unique_targets(card.members)


def task_recipients(task: TaskDue) -> list[NotifyTarget]:
    return [task.creator]
