"""users, sessions and drinks

Revision ID: 20261019_init_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("google_id", sa.String(length=255), nullable=False),
        sa.Column("picture", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=True,
        ),
        sa.UniqueConstraint("google_id", name="uq_users_google_id"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "name",
            sa.String(length=255),
            nullable=False,
            server_default="Session",
        ),
        sa.Column(
            "start_time",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_sessions_user_start",
        "sessions",
        ["user_id", "start_time"],
    )
    op.create_index(
        "uq_sessions_user_active",
        "sessions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )

    op.create_table(
        "drinks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("sessions.id"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("units", sa.Float(), nullable=False),
        sa.Column("buzz_level", sa.Integer(), nullable=False),
        sa.Column(
            "drink_name",
            sa.String(length=255),
            nullable=False,
            server_default="Standard Drink",
        ),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("units > 0", name="drinks_units_check"),
        sa.CheckConstraint(
            "buzz_level BETWEEN 0 AND 10", name="drinks_buzz_level_check"
        ),
    )
    op.create_index("ix_drinks_session_id", "drinks", ["session_id"])
    op.create_index(
        "idx_drinks_session_timestamp",
        "drinks",
        ["session_id", "timestamp"],
    )


def downgrade() -> None:
    op.drop_index("idx_drinks_session_timestamp", table_name="drinks")
    op.drop_index("ix_drinks_session_id", table_name="drinks")
    op.drop_table("drinks")
    op.drop_index("uq_sessions_user_active", table_name="sessions")
    op.drop_index("idx_sessions_user_start", table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("users")
