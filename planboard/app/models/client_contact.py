"""
models/client_contact.py — Client contact reference table.

A person at the client that a project can name as its counterpart. Contacts
are maintained with the client; a project may only point at a contact of its
own client.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.app.extensions import db


class ClientContact(db.Model):
    __tablename__ = "client_contacts"

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE: contacts belong to their client.
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        server_default="",
    )

    phone: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="",
        server_default="",
    )

    client: Mapped["Client"] = relationship(  # noqa: F821
        "Client",
        back_populates="contacts",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ClientContact id={self.id} client_id={self.client_id} name={self.name!r}>"
