"""models/article.py — Article (sold service) reference table."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from planboard.app.extensions import db


class Article(db.Model):
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Service family the article belongs to (free text, e.g. "Training").
    service: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
        server_default="",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Article id={self.id} name={self.name!r}>"
