"""Initial schema — reference tables, bookings and project lines.

Revision: 001_initial_schema
Created:  2026-10-12

Append-only: never edit this file once it has been applied to a database.
Schema changes go into a new migration.

Creation order (FK dependencies):
  clients → client_contacts → articles → consultants → projects
  → consultant_bookings → project_lines

ON DELETE policies:
  client_contacts.client_id     → CASCADE
  projects.client_id            → RESTRICT
  projects.client_contact_id    → SET NULL
  projects.project_manager_id   → SET NULL
  consultant_bookings.consultant_id → CASCADE  (bookings owned by consultant)
  project_lines.project_id      → RESTRICT
  project_lines.article_id      → RESTRICT
  project_lines.consultant_id   → RESTRICT
  project_lines.booking_id      → SET NULL (next sync recreates the booking)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    # ── Reference tables ───────────────────────────────────────────────────
    # Maintained by other screens; this service only reads them.

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_number", sa.String(50), nullable=False, server_default=""),
        sa.Column("name", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_clients"),
    )

    op.create_table(
        "client_contacts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("clients.id", ondelete="CASCADE", name="fk_client_contacts_client"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(50), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id", name="pk_client_contacts"),
    )

    op.create_table(
        "articles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("service", sa.String(100), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id", name="pk_articles"),
    )

    op.create_table(
        "consultants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_consultants"),
    )

    # ── projects ───────────────────────────────────────────────────────────
    # Client orders, managed through /projects. Deletion is refused while
    # project_lines reference the project.

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("clients.id", ondelete="RESTRICT", name="fk_projects_client"),
            nullable=False,
        ),
        sa.Column(
            "client_contact_id",
            sa.Integer(),
            sa.ForeignKey("client_contacts.id", ondelete="SET NULL", name="fk_projects_contact"),
            nullable=True,
        ),
        sa.Column(
            "project_manager_id",
            sa.Integer(),
            sa.ForeignKey("consultants.id", ondelete="SET NULL", name="fk_projects_manager"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("commercial_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("sales_type", sa.String(100), nullable=False, server_default=""),
        sa.Column("status", sa.String(40), nullable=False, server_default="quote_in_progress"),
        sa.Column("order_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_projects"),
        sa.CheckConstraint(
            "status IN ('quote_in_progress', 'order_received', 'awaiting_manager', "
            "'in_deployment', 'invoiced', 'paid', 'completed')",
            name="ck_projects_status",
        ),
    )

    # ── consultant_bookings ────────────────────────────────────────────────
    # Shared calendar table; project work writes kind = BOOKING_KIND.

    op.create_table(
        "consultant_bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "consultant_id",
            sa.Integer(),
            sa.ForeignKey("consultants.id", ondelete="CASCADE", name="fk_bookings_consultant"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_consultant_bookings"),
        sa.CheckConstraint("start_date <= end_date", name="ck_consultant_bookings_range"),
    )

    # ── project_lines ──────────────────────────────────────────────────────
    # One row per remainder or allocation; rows sharing group_id form one
    # sold line. sold_total / sold_amount are the group's reference totals.

    op.create_table(
        "project_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.String(32), nullable=False),
        sa.Column(
            "project_id",
            sa.Integer(),
            sa.ForeignKey("projects.id", ondelete="RESTRICT", name="fk_project_lines_project"),
            nullable=False,
        ),
        sa.Column(
            "article_id",
            sa.Integer(),
            sa.ForeignKey("articles.id", ondelete="RESTRICT", name="fk_project_lines_article"),
            nullable=False,
        ),
        sa.Column("sold_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("sold_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_quantity", sa.Numeric(10, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "consultant_id",
            sa.Integer(),
            sa.ForeignKey("consultants.id", ondelete="RESTRICT", name="fk_project_lines_consultant"),
            nullable=True,
        ),
        sa.Column("planned_start", sa.Date(), nullable=True),
        sa.Column("planned_end", sa.Date(), nullable=True),
        sa.Column("planned_quantity", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("realized_quantity", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("consultant_bookings.id", ondelete="SET NULL", name="fk_project_lines_booking"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_project_lines"),
        # A booking mirrors at most one allocation row.
        sa.UniqueConstraint("booking_id", name="uq_project_lines_booking"),
        sa.CheckConstraint("sold_total > 0", name="ck_project_lines_sold_total_positive"),
        sa.CheckConstraint("line_quantity >= 0", name="ck_project_lines_line_quantity_nonneg"),
        sa.CheckConstraint("planned_quantity >= 0", name="ck_project_lines_planned_nonneg"),
        sa.CheckConstraint("realized_quantity >= 0", name="ck_project_lines_realized_nonneg"),
        sa.CheckConstraint(
            "planned_start IS NULL OR planned_end IS NULL OR planned_start <= planned_end",
            name="ck_project_lines_planned_range",
        ),
    )

    # ── Indexes ────────────────────────────────────────────────────────────

    op.create_index("ix_client_contacts_client_id", "client_contacts", ["client_id"])
    op.create_index("ix_projects_client_id", "projects", ["client_id"])
    op.create_index("ix_consultant_bookings_consultant_id", "consultant_bookings", ["consultant_id"])
    op.create_index("ix_project_lines_project_id", "project_lines", ["project_id"])
    # Remainder lookup and group cascade delete always filter on group_id.
    op.create_index("idx_project_lines_group", "project_lines", ["group_id"])


def downgrade() -> None:
    """Local development reset only; production gets corrective migrations."""
    op.drop_index("idx_project_lines_group", table_name="project_lines")
    op.drop_index("ix_project_lines_project_id", table_name="project_lines")
    op.drop_index("ix_consultant_bookings_consultant_id", table_name="consultant_bookings")
    op.drop_index("ix_projects_client_id", table_name="projects")
    op.drop_index("ix_client_contacts_client_id", table_name="client_contacts")

    op.drop_table("project_lines")
    op.drop_table("consultant_bookings")
    op.drop_table("projects")
    op.drop_table("consultants")
    op.drop_table("articles")
    op.drop_table("client_contacts")
    op.drop_table("clients")
