"""
services/booking_service.py — Keeps consultant bookings in step with allocations.

sync_booking(line_id) is idempotent and may be called any number of times:

  should exist?  booking_id   action
  ─────────────  ──────────   ──────────────────────────────────────────
  no             set          delete the booking, clear booking_id
  no             NULL         nothing
  yes            NULL         create a booking, store its id on the row
  yes            set          update consultant/title/notes/dates in place,
                              only the fields that actually changed

"Should exist" means the row is a complete allocation: consultant, start,
end all present and planned_quantity > 0 (line_group.Allocation.is_complete).

Layer rules:
  - No Flask imports; the booking kind comes in as an argument.
  - Only flush; the unit of work commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from planboard.app.models.booking import Booking
from planboard.app.models.project_line import ProjectLine
from planboard.app.services.line_group import Allocation, get_line_or_404, line_role

logger = logging.getLogger(__name__)

DEFAULT_BOOKING_KIND = "booking"
_DEFAULT_PROJECT_NAME = "Project"
_DEFAULT_ARTICLE_NAME = "Service"


# ── Private helpers ────────────────────────────────────────────────────────

def _booking_title(line: ProjectLine) -> str:
    """
    "<client number> • <client name> - <project name> - <article name>".

    The planning view splits on the bullet to show a short label, so keep the
    bullet even when the client number is empty.
    """
    project = line.project
    client = project.client if project is not None else None
    client_number = (client.client_number if client is not None else "") or ""
    client_name = (client.name if client is not None else "") or ""
    project_name = (project.name if project is not None else "") or _DEFAULT_PROJECT_NAME
    article_name = (line.article.name if line.article is not None else "") or _DEFAULT_ARTICLE_NAME
    return f"{client_number} • {client_name} - {project_name} - {article_name}".strip()


def _format_quantity(value) -> str:
    """3.00 -> "3", 2.50 -> "2.5": stable whether the value was just set or reloaded."""
    quantity = Decimal(value).quantize(Decimal("0.01"))
    if quantity == quantity.to_integral_value():
        return str(int(quantity))
    return str(quantity).rstrip("0")


def _booking_notes(line: ProjectLine) -> str:
    return f"Project line: {line.id}\nPlanned quantity: {_format_quantity(line.planned_quantity)}"


def _desired_fields(line: ProjectLine, role: Allocation, kind: str) -> dict:
    return {
        "consultant_id": role.consultant_id,
        "kind":          kind,
        "title":         _booking_title(line),
        "notes":         _booking_notes(line),
        "start_date":    role.start,
        "end_date":      role.end,
    }


def delete_booking_for(line: ProjectLine, session: Session) -> None:
    """Deletes the booking the row points at (if any) and clears the reference."""
    booking_id = line.booking_id
    if booking_id is None:
        return

    line.booking_id = None
    session.flush()

    booking = session.get(Booking, booking_id)
    if booking is not None:
        session.delete(booking)
        session.flush()
    logger.info("Deleted booking %s for project line %s", booking_id, line.id)


def delete_bookings(booking_ids: list[int], session: Session) -> None:
    """Deletes the given bookings. Rows referencing them must be cleared or deleted first."""
    if not booking_ids:
        return
    stmt = select(Booking).where(Booking.id.in_(booking_ids))
    for booking in session.execute(stmt).scalars().all():
        session.delete(booking)
    session.flush()


# ── Public service functions ───────────────────────────────────────────────

def sync_line_booking(
        line: ProjectLine,
        session: Session,
        kind: str = DEFAULT_BOOKING_KIND,
) -> Booking | None:
    """
    Reconciles the booking of an already-loaded row. See module docstring.

    Returns the booking that mirrors the row afterwards, or None.
    """
    role = line_role(line)
    should_exist = isinstance(role, Allocation) and role.is_complete

    if not should_exist:
        delete_booking_for(line, session)
        return None

    desired = _desired_fields(line, role, kind)

    booking = session.get(Booking, line.booking_id) if line.booking_id is not None else None
    if booking is None:
        booking = Booking(**desired)
        session.add(booking)
        session.flush()  # populate booking.id before linking it
        line.booking_id = booking.id
        session.flush()
        logger.info(
            "Created booking %s for project line %s (consultant %s, %s..%s)",
            booking.id, line.id, role.consultant_id, role.start, role.end,
        )
        return booking

    changed = {
        name: value
        for name, value in desired.items()
        if getattr(booking, name) != value
    }
    if changed:
        for name, value in changed.items():
            setattr(booking, name, value)
        booking.updated_at = datetime.now(timezone.utc)
        session.flush()
        logger.info(
            "Updated booking %s for project line %s (%s)",
            booking.id, line.id, ", ".join(sorted(changed)),
        )
    return booking


def sync_booking(
        line_id: int,
        session: Session,
        kind: str = DEFAULT_BOOKING_KIND,
) -> Booking | None:
    """
    Idempotent booking reconciliation for one project line.

    Raises:
        NotFoundError(LINE_NOT_FOUND) — the line does not exist.
    """
    line = get_line_or_404(line_id, session)
    return sync_line_booking(line, session, kind=kind)
