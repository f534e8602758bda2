from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


PROJECT_STATUSES = ("PLANNING", "IN_PROGRESS", "ON_HOLD", "COMPLETED", "CANCELLED")
TASK_STATUSES = ("TODO", "IN_PROGRESS", "COMPLETED", "CANCELLED")
TASK_TYPES = ("PERSONAL", "PROJECT")


project_implementers = Table(
    "project_implementers",
    Base.metadata,
    Column("project_id", ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

project_followers = Table(
    "project_followers",
    Base.metadata,
    Column("project_id", ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

kanban_card_assignees = Table(
    "kanban_card_assignees",
    Base.metadata,
    Column("card_id", ForeignKey("kanban_cards.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(32), default="IN_PROGRESS", server_default="IN_PROGRESS", nullable=False, index=True
    )
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    manager: Mapped[User] = relationship("User", foreign_keys=[manager_id])
    implementers: Mapped[list[User]] = relationship("User", secondary=project_implementers, order_by="User.id")
    followers: Mapped[list[User]] = relationship("User", secondary=project_followers, order_by="User.id")
    parent: Mapped[Optional["Project"]] = relationship("Project", remote_side="Project.id", back_populates="children")
    children: Mapped[list["Project"]] = relationship("Project", back_populates="parent")


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_reminder_pending", "reminder_at", "is_reminder_sent"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="TODO", server_default="TODO", nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), default="PERSONAL", server_default="PERSONAL", nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    reminder_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False, server_default="0", nullable=False)
    creator_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    creator: Mapped[User] = relationship("User", foreign_keys=[creator_id])


class KanbanBoard(Base):
    __tablename__ = "kanban_boards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    lists: Mapped[list["KanbanList"]] = relationship(
        "KanbanList", back_populates="board", order_by="KanbanList.position", cascade="all, delete-orphan"
    )
    members: Mapped[list["BoardMember"]] = relationship(
        "BoardMember", back_populates="board", order_by="BoardMember.id", cascade="all, delete-orphan"
    )


class BoardMember(Base):
    __tablename__ = "kanban_board_members"
    __table_args__ = (UniqueConstraint("board_id", "user_id", name="uq_board_member"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[int] = mapped_column(ForeignKey("kanban_boards.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    board: Mapped[KanbanBoard] = relationship("KanbanBoard", back_populates="members")
    user: Mapped[User] = relationship("User")


class KanbanList(Base):
    __tablename__ = "kanban_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    board_id: Mapped[int] = mapped_column(ForeignKey("kanban_boards.id", ondelete="CASCADE"), nullable=False, index=True)

    board: Mapped[KanbanBoard] = relationship("KanbanBoard", back_populates="lists")
    cards: Mapped[list["KanbanCard"]] = relationship(
        "KanbanCard", back_populates="kanban_list", order_by="KanbanCard.position", cascade="all, delete-orphan"
    )


class KanbanCard(Base):
    __tablename__ = "kanban_cards"
    __table_args__ = (Index("ix_kanban_cards_deadline_pending", "due_date", "completed", "deadline_reminder_sent"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="0", nullable=False)
    deadline_reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False, server_default="0", nullable=False)
    list_id: Mapped[int] = mapped_column(ForeignKey("kanban_lists.id", ondelete="CASCADE"), nullable=False, index=True)

    kanban_list: Mapped[KanbanList] = relationship("KanbanList", back_populates="cards")
    assignees: Mapped[list[User]] = relationship("User", secondary=kanban_card_assignees, order_by="User.id")


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    p256dh: Mapped[str] = mapped_column(Text, nullable=False)
    auth: Mapped[str] = mapped_column(Text, nullable=False)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class NotificationSettings(Base):
    __tablename__ = "notification_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    chat_messages: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
    project_assignments: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
    project_discussions: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
    project_updates: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
    task_assignments: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
    mentions: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
