"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RESERVATION_STATUS = sa.Enum("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", name="reservation_status")
SEAT_RESERVATION_STATUS = sa.Enum("HELD", "CONFIRMED", "CANCELLED", "COMPLETED", name="seat_reservation_status")
RESERVATION_ACTION = sa.Enum("CREATED", "CONFIRMED", "CANCELLED", "EXPIRED", "COMPLETED", name="reservation_action")


def _base_columns():
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "theaters",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
    )
    op.create_index("ix_theaters_id", "theaters", ["id"])
    op.create_index("ix_theaters_name", "theaters", ["name"])

    op.create_table(
        "screens",
        *_base_columns(),
        sa.Column("theater_id", sa.Uuid(), sa.ForeignKey("theaters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.CheckConstraint("capacity > 0", name="ck_screens_capacity_positive"),
    )
    op.create_index("ix_screens_id", "screens", ["id"])
    op.create_index("ix_screens_theater_id", "screens", ["theater_id"])

    op.create_table(
        "seats",
        *_base_columns(),
        sa.Column("screen_id", sa.Uuid(), sa.ForeignKey("screens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.String(16), nullable=False),
        sa.Column("row_label", sa.String(8), nullable=True),
        sa.Column("col", sa.Integer(), nullable=True),
        sa.UniqueConstraint("screen_id", "label", name="uq_seats_screen_label"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_screen_id", "seats", ["screen_id"])

    op.create_table(
        "movies",
        *_base_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("genre", sa.String(100), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_movies_duration_positive",
        ),
    )
    op.create_index("ix_movies_id", "movies", ["id"])
    op.create_index("ix_movies_title", "movies", ["title"])

    op.create_table(
        "showtimes",
        *_base_columns(),
        sa.Column("movie_id", sa.Uuid(), sa.ForeignKey("movies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("screen_id", sa.Uuid(), sa.ForeignKey("screens.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("ticket_price", sa.Numeric(10, 2), nullable=False),
        sa.CheckConstraint("ticket_price > 0", name="ck_showtimes_ticket_price_positive"),
        sa.CheckConstraint("end_time > start_time", name="ck_showtimes_window_ordered"),
    )
    op.create_index("ix_showtimes_id", "showtimes", ["id"])
    op.create_index("ix_showtimes_movie_id", "showtimes", ["movie_id"])
    op.create_index("ix_showtimes_screen_window", "showtimes", ["screen_id", "start_time", "end_time"])

    op.create_table(
        "reservations",
        *_base_columns(),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("showtime_id", sa.Uuid(), sa.ForeignKey("showtimes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", RESERVATION_STATUS, nullable=False),
        sa.Column("hold_expiry", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("total_amount > 0", name="ck_reservations_total_amount_positive"),
        sa.CheckConstraint("version > 0", name="ck_reservations_version_positive"),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    op.create_index("ix_reservations_user_id", "reservations", ["user_id"])
    op.create_index("ix_reservations_showtime_id", "reservations", ["showtime_id"])
    op.create_index("ix_reservations_status_hold_expiry", "reservations", ["status", "hold_expiry"])

    op.create_table(
        "seat_reservations",
        *_base_columns(),
        sa.Column("reservation_id", sa.Uuid(), sa.ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seat_id", sa.Uuid(), sa.ForeignKey("seats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("showtime_id", sa.Uuid(), sa.ForeignKey("showtimes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", SEAT_RESERVATION_STATUS, nullable=False),
    )
    op.create_index("ix_seat_reservations_id", "seat_reservations", ["id"])
    op.create_index("ix_seat_reservations_reservation_id", "seat_reservations", ["reservation_id"])
    op.create_index("ix_seat_reservations_showtime_id", "seat_reservations", ["showtime_id"])
    op.create_index(
        "uq_seat_reservations_seat_showtime_active",
        "seat_reservations",
        ["seat_id", "showtime_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELLED'"),
        sqlite_where=sa.text("status <> 'CANCELLED'"),
    )

    op.create_table(
        "reservation_history",
        *_base_columns(),
        sa.Column("reservation_id", sa.Uuid(), sa.ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", RESERVATION_ACTION, nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(255), nullable=True),
    )
    op.create_index("ix_reservation_history_id", "reservation_history", ["id"])
    op.create_index("ix_reservation_history_reservation_id", "reservation_history", ["reservation_id"])
    op.create_index("ix_reservation_history_action", "reservation_history", ["action"])


def downgrade() -> None:
    op.drop_table("reservation_history")
    op.drop_table("seat_reservations")
    op.drop_table("reservations")
    op.drop_table("showtimes")
    op.drop_table("movies")
    op.drop_table("seats")
    op.drop_table("screens")
    op.drop_table("theaters")
    op.drop_table("users")

    bind = op.get_bind()
    RESERVATION_ACTION.drop(bind, checkfirst=True)
    SEAT_RESERVATION_STATUS.drop(bind, checkfirst=True)
    RESERVATION_STATUS.drop(bind, checkfirst=True)
