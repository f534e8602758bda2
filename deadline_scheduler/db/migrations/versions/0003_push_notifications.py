"""push subscriptions and notification settings

Revision ID: 0003_push_notifications
Revises: 0002_kanban_boards
Create Date: 2025-12-05 14:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0003_push_notifications"
down_revision = "0002_kanban_boards"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("p256dh", sa.Text(), nullable=False),
        sa.Column("auth", sa.Text(), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("endpoint", name="uq_push_subscriptions_endpoint"),
    )
    op.create_index("ix_push_subscriptions_user_id", "push_subscriptions", ["user_id"])

    op.create_table(
        "notification_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("chat_messages", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column("project_assignments", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column("project_discussions", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column("project_updates", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column("task_assignments", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column("mentions", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.UniqueConstraint("user_id", name="uq_notification_settings_user_id"),
    )


def downgrade() -> None:
    op.drop_table("notification_settings")
    op.drop_table("push_subscriptions")
