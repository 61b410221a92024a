"""
models/client.py — Client reference table.

Read-only for this service: clients are maintained by the external
reference-data screens. Only the columns the booking title and the project
responses need are mapped.
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.app.extensions import db


class Client(db.Model):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Business identifier shown in front of the client name (e.g. "C-0042").
    client_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="",
        server_default="",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    projects: Mapped[list["Project"]] = relationship(  # noqa: F821
        "Project",
        back_populates="client",
    )

    contacts: Mapped[list["ClientContact"]] = relationship(  # noqa: F821
        "ClientContact",
        back_populates="client",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Client id={self.id} number={self.client_number!r} name={self.name!r}>"
