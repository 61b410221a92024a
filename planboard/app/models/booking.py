"""
models/booking.py — Consultant booking table.

A booking is the calendar record the planning/availability view reads. For
project work it mirrors exactly one allocation row (project_lines.booking_id
points here). Other kinds (leave, internal time) may be written by other
collaborators into the same table; this service only touches bookings it
created through the booking synchronizer.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.app.extensions import db


class Booking(db.Model):
    __tablename__ = "consultant_bookings"

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_consultant_bookings_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    consultant_id: Mapped[int] = mapped_column(
        ForeignKey("consultants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    kind: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default="",
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    consultant: Mapped["Consultant"] = relationship(  # noqa: F821
        "Consultant",
        back_populates="bookings",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Booking id={self.id} "
            f"consultant_id={self.consultant_id} "
            f"{self.start_date}..{self.end_date}>"
        )
