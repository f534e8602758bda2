"""kanban boards, lists, cards

Revision ID: 0002_kanban_boards
Revises: 0001_init
Create Date: 2025-12-03 10:30:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_kanban_boards"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "kanban_boards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "kanban_board_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("board_id", sa.Integer(), sa.ForeignKey("kanban_boards.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("board_id", "user_id", name="uq_board_member"),
    )
    op.create_index("ix_kanban_board_members_board_id", "kanban_board_members", ["board_id"])
    op.create_index("ix_kanban_board_members_user_id", "kanban_board_members", ["user_id"])

    op.create_table(
        "kanban_lists",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("board_id", sa.Integer(), sa.ForeignKey("kanban_boards.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("ix_kanban_lists_board_id", "kanban_lists", ["board_id"])

    op.create_table(
        "kanban_cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed", sa.Boolean(), server_default=sa.text("0"), nullable=False),
        sa.Column("deadline_reminder_sent", sa.Boolean(), server_default=sa.text("0"), nullable=False),
        sa.Column("list_id", sa.Integer(), sa.ForeignKey("kanban_lists.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("ix_kanban_cards_list_id", "kanban_cards", ["list_id"])
    op.create_index(
        "ix_kanban_cards_deadline_pending", "kanban_cards", ["due_date", "completed", "deadline_reminder_sent"]
    )

    op.create_table(
        "kanban_card_assignees",
        sa.Column("card_id", sa.Integer(), sa.ForeignKey("kanban_cards.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    )


def downgrade() -> None:
    op.drop_table("kanban_card_assignees")
    op.drop_table("kanban_cards")
    op.drop_table("kanban_lists")
    op.drop_table("kanban_board_members")
    op.drop_table("kanban_boards")
