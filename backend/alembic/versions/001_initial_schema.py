"""Initial schema: identities, allow-list, roles, seat layout, seats and bookings.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("email_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "allowed_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("credential_secret", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_allowed_users_id", "allowed_users", ["id"])
    op.create_index("ix_allowed_users_email", "allowed_users", ["email"], unique=True)

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        sa.CheckConstraint("role IN ('admin', 'user')", name="check_user_roles_role"),
    )
    op.create_index("ix_user_roles_id", "user_roles", ["id"])
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])

    op.create_table(
        "seat_layout",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("'Main Theatre'")),
        sa.Column("total_rows", sa.Integer(), nullable=False, server_default=sa.text("20")),
        sa.Column("total_columns", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("total_rows > 0", name="check_layout_rows_positive"),
        sa.CheckConstraint("total_columns > 0", name="check_layout_columns_positive"),
    )
    op.create_index("ix_seat_layout_id", "seat_layout", ["id"])
    # At most one active layout
    op.create_index(
        "uq_seat_layout_single_active",
        "seat_layout",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "seat_layout_id",
            sa.Integer(),
            sa.ForeignKey("seat_layout.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("row_num", sa.Integer(), nullable=False),
        sa.Column("col_num", sa.Integer(), nullable=False),
        sa.Column("is_booked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("seat_layout_id", "row_num", "col_num", name="uq_seats_layout_row_col"),
        sa.CheckConstraint("row_num > 0", name="check_seat_row_positive"),
        sa.CheckConstraint("col_num > 0", name="check_seat_col_positive"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_seat_layout_id", "seats", ["seat_layout_id"])
    op.create_index("ix_seats_layout_position", "seats", ["seat_layout_id", "row_num", "col_num"])

    # One booking per person and one person per seat
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_bookings_user_id"),
        sa.UniqueConstraint("seat_id", name="uq_bookings_seat_id"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("seats")
    op.drop_index("uq_seat_layout_single_active", table_name="seat_layout")
    op.drop_table("seat_layout")
    op.drop_table("user_roles")
    op.drop_table("allowed_users")
    op.drop_table("users")
