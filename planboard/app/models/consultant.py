"""
models/consultant.py — Consultant reference table.

A consultant is the resource an allocation assigns days to. Bookings are
filed against the consultant so the external planning view can show
availability.
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.app.extensions import db


class Consultant(db.Model):
    __tablename__ = "consultants"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    bookings: Mapped[list["Booking"]] = relationship(  # noqa: F821
        "Booking",
        back_populates="consultant",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Consultant id={self.id} name={self.name!r}>"
