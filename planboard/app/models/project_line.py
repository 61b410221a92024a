"""
models/project_line.py — ProjectLine table definition.

One row per remainder or allocation. All rows sharing a `group_id` form one
sold article-line on one project (a "line group"). No business logic here:
the role of a row (remainder vs allocation) is derived from its planning
columns by services/line_group.py and is never stored.

Key design points:
  - `sold_total` and `sold_amount` are copied onto every row of the group and
    never change after creation. They are the reference totals that the
    conservation invariants are checked against.
  - `line_quantity` / `amount` are the share of the group this row carries.
  - Quantities use Numeric(10, 2) and amounts Numeric(12, 2). Never Float.
  - `booking_id` is UNIQUE: a booking mirrors at most one allocation row.
  - `group_id` is a 32-char hex token generated when the group is created.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.app.extensions import db


def new_group_id() -> str:
    """Returns a fresh line-group identifier."""
    return uuid.uuid4().hex


class ProjectLine(db.Model):
    __tablename__ = "project_lines"

    __table_args__ = (
        CheckConstraint("sold_total > 0", name="ck_project_lines_sold_total_positive"),
        CheckConstraint("line_quantity >= 0", name="ck_project_lines_line_quantity_nonneg"),
        CheckConstraint("planned_quantity >= 0", name="ck_project_lines_planned_nonneg"),
        CheckConstraint("realized_quantity >= 0", name="ck_project_lines_realized_nonneg"),
        CheckConstraint(
            "planned_start IS NULL OR planned_end IS NULL OR planned_start <= planned_end",
            name="ck_project_lines_planned_range",
        ),
        # Group lookups (remainder search, cascade delete) always filter on group_id.
        Index("idx_project_lines_group", "group_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=new_group_id,
    )

    # ON DELETE RESTRICT: a project with lines cannot be deleted.
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    article_id: Mapped[int] = mapped_column(
        ForeignKey("articles.id", ondelete="RESTRICT"),
        nullable=False,
    )

    sold_total: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )

    sold_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    line_quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # ── Planning columns (all NULL / 0 on the remainder row) ───────────────

    consultant_id: Mapped[int | None] = mapped_column(
        ForeignKey("consultants.id", ondelete="RESTRICT"),
        nullable=True,
    )

    planned_start: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    planned_end: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    planned_quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        server_default="0",
    )

    realized_quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        server_default="0",
    )

    # ON DELETE SET NULL: if a booking disappears behind our back the row
    # simply loses its back-reference; the next sync recreates it.
    booking_id: Mapped[int | None] = mapped_column(
        ForeignKey("consultant_bookings.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    project: Mapped["Project"] = relationship(  # noqa: F821
        "Project",
        back_populates="lines",
    )

    article: Mapped["Article"] = relationship("Article")  # noqa: F821

    consultant: Mapped["Consultant | None"] = relationship("Consultant")  # noqa: F821

    booking: Mapped["Booking | None"] = relationship(  # noqa: F821
        "Booking",
        foreign_keys=[booking_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ProjectLine id={self.id} "
            f"group_id={self.group_id} "
            f"line_quantity={self.line_quantity} "
            f"amount={self.amount} "
            f"consultant_id={self.consultant_id}>"
        )
