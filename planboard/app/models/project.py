"""
models/project.py — Project table.

A project is a client order. Project lines (the sold articles) hang off it;
the booking title uses the project and client names.

Status follows the order from quote to payment (see ProjectStatus). A project
cannot be deleted while it still has lines.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.app.extensions import db


class ProjectStatus:
    QUOTE_IN_PROGRESS  = "quote_in_progress"
    ORDER_RECEIVED     = "order_received"
    AWAITING_MANAGER   = "awaiting_manager"
    IN_DEPLOYMENT      = "in_deployment"
    INVOICED           = "invoiced"
    PAID               = "paid"
    COMPLETED          = "completed"

    ALL = (
        QUOTE_IN_PROGRESS,
        ORDER_RECEIVED,
        AWAITING_MANAGER,
        IN_DEPLOYMENT,
        INVOICED,
        PAID,
        COMPLETED,
    )


class Project(db.Model):
    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint(
            "status IN ('quote_in_progress', 'order_received', 'awaiting_manager', "
            "'in_deployment', 'invoiced', 'paid', 'completed')",
            name="ck_projects_status",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE RESTRICT: a client with projects cannot be removed.
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # ON DELETE SET NULL: losing the contact does not lose the project.
    client_contact_id: Mapped[int | None] = mapped_column(
        ForeignKey("client_contacts.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Consultant leading the delivery, if one is assigned yet.
    project_manager_id: Mapped[int | None] = mapped_column(
        ForeignKey("consultants.id", ondelete="SET NULL"),
        nullable=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Name of the salesperson who closed the order.
    commercial_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        server_default="",
    )

    # Free text, e.g. "Fixed price", "Time and materials".
    sales_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
        server_default="",
    )

    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=ProjectStatus.QUOTE_IN_PROGRESS,
        server_default=ProjectStatus.QUOTE_IN_PROGRESS,
    )

    order_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default="",
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

    client: Mapped["Client"] = relationship(  # noqa: F821
        "Client",
        back_populates="projects",
    )

    client_contact: Mapped["ClientContact | None"] = relationship("ClientContact")  # noqa: F821

    project_manager: Mapped["Consultant | None"] = relationship("Consultant")  # noqa: F821

    lines: Mapped[list["ProjectLine"]] = relationship(  # noqa: F821
        "ProjectLine",
        back_populates="project",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Project id={self.id} name={self.name!r} status={self.status!r}>"
