"""
services/project_line_service.py — Project line lifecycle.

Operations:
  create_project_line  — enters a sold line: a new group with one remainder row
  list_project_lines   — every row of a project plus one summary per group
  get_project_line     — one row
  update_project_line  — re-plans an allocation (consultant, dates, realized)
  delete_project_line  — allocation: give quantity/amount back to the remainder
                         remainder: delete the whole group and its bookings
  check_group          — read-only invariant report for one group

Allocation rows are never created here; see allocation_service.allocate().

Layer rules:
  - No Flask imports. Receives plain values and a Session.
  - Only flush. The caller's unit_of_work commits or rolls back.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from planboard.app.errors import (
    ErrorCode,
    InvalidRequestError,
    NotFoundError,
    StateConflictError,
)
from planboard.app.models.article import Article
from planboard.app.models.project_line import ProjectLine, new_group_id
from planboard.app.services.booking_service import (
    DEFAULT_BOOKING_KIND,
    delete_booking_for,
    delete_bookings,
    sync_line_booking,
)
from planboard.app.services.line_group import (
    Allocation,
    Remainder,
    check_group_invariants,
    find_invariant_violations,
    get_consultant_or_404,
    get_group_lines,
    get_line_or_404,
    line_role,
    require_remainder,
    role_columns,
    summarize_group,
)
from planboard.app.services.project_service import get_project_or_404

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_article_or_404(article_id: int, session: Session) -> Article:
    article = session.get(Article, article_id)
    if article is None:
        raise NotFoundError(
            ErrorCode.ARTICLE_NOT_FOUND,
            f"Article {article_id} does not exist.",
        )
    return article


def _group_by_group_id(lines: list[ProjectLine]) -> "OrderedDict[str, list[ProjectLine]]":
    groups: OrderedDict[str, list[ProjectLine]] = OrderedDict()
    for line in lines:
        groups.setdefault(line.group_id, []).append(line)
    return groups


# ── Public service functions ───────────────────────────────────────────────

def create_project_line(
        project_id: int,
        data: dict,
        session: Session,
) -> ProjectLine:
    """
    Enters a sold article-line on a project.

    Args:
        data: Validated dict from CreateProjectLineSchema
              (article_id, sold_quantity, amount).

    Creates a new line group whose single row is the remainder, carrying the
    whole sold quantity and amount.
    """
    get_project_or_404(project_id, session)
    _get_article_or_404(data["article_id"], session)

    sold_quantity: Decimal = data["sold_quantity"]
    amount: Decimal = data["amount"]

    line = ProjectLine(
        group_id=new_group_id(),
        project_id=project_id,
        article_id=data["article_id"],
        sold_total=sold_quantity,
        sold_amount=amount,
        line_quantity=sold_quantity,
        amount=amount,
        realized_quantity=Decimal("0"),
        **role_columns(Remainder()),
    )
    session.add(line)
    session.flush()

    check_group_invariants(line.group_id, session)

    logger.info(
        "Created line group %s on project %s (article %s, %s units, %s)",
        line.group_id, project_id, line.article_id, sold_quantity, amount,
    )
    return line


def list_project_lines(project_id: int, session: Session) -> dict:
    """
    Returns {"lines": [...ProjectLine], "groups": [...summary dict]} for a
    project. Lines are oldest first; groups follow the order of their first row.
    """
    get_project_or_404(project_id, session)

    stmt = (
        select(ProjectLine)
        .where(ProjectLine.project_id == project_id)
        .order_by(ProjectLine.id.asc())
    )
    lines = list(session.execute(stmt).scalars().all())

    return {
        "lines": lines,
        "groups": [summarize_group(rows) for rows in _group_by_group_id(lines).values()],
    }


def get_project_line(line_id: int, session: Session) -> ProjectLine:
    return get_line_or_404(line_id, session)


def update_project_line(
        line_id: int,
        data: dict,
        session: Session,
        booking_kind: str = DEFAULT_BOOKING_KIND,
) -> ProjectLine:
    """
    Re-plans an allocation row in place.

    Args:
        data: Validated partial dict from PatchProjectLineSchema. Any of
              consultant_id, planned_start, planned_end, realized_quantity.

    Quantity and amount are never edited here: moving quantity in or out of
    an allocation goes through delete + allocate so the remainder stays exact.
    The booking is updated in place afterwards.
    """
    line = get_line_or_404(line_id, session)
    role = line_role(line)

    if not isinstance(role, Allocation):
        raise StateConflictError(
            ErrorCode.NOT_AN_ALLOCATION,
            f"Project line {line_id} is the remainder of its group; "
            f"use the allocation endpoint to plan it.",
        )

    consultant_id = data.get("consultant_id", role.consultant_id)
    start = data.get("planned_start", role.start)
    end = data.get("planned_end", role.end)

    if "consultant_id" in data:
        get_consultant_or_404(consultant_id, session)

    if start is not None and end is not None and start > end:
        raise InvalidRequestError(
            ErrorCode.INVALID_DATE_RANGE,
            f"planned_start ({start}) must not be after planned_end ({end}).",
            field="planned_end",
        )

    if "realized_quantity" in data:
        realized: Decimal = data["realized_quantity"]
        if realized > role.quantity:
            raise InvalidRequestError(
                ErrorCode.REALIZED_EXCEEDS_PLANNED,
                f"realized_quantity ({realized}) cannot exceed the planned "
                f"quantity ({role.quantity}).",
                field="realized_quantity",
            )
        line.realized_quantity = realized

    replanned = Allocation(
        consultant_id=consultant_id,
        start=start,
        end=end,
        quantity=role.quantity,
    )
    for column, value in role_columns(replanned).items():
        setattr(line, column, value)
    line.updated_at = datetime.now(timezone.utc)
    session.flush()

    sync_line_booking(line, session, kind=booking_kind)
    check_group_invariants(line.group_id, session)
    return line


def delete_project_line(line_id: int, session: Session) -> dict:
    """
    Deletes a project line.

    Allocation row:
      its booking is deleted, its quantity and amount go back onto the group's
      remainder, then the row is removed. A group without a remainder raises
      REMAINDER_MISSING before anything is touched.

    Remainder row:
      the whole group goes, with every booking any of its rows referenced.

    Returns:
        {"deleted_line_ids": [...], "group_id": str, "group_deleted": bool}
    """
    line = get_line_or_404(line_id, session)
    group_id = line.group_id

    if isinstance(line_role(line), Remainder):
        group_lines = get_group_lines(group_id, session)
        booking_ids = [row.booking_id for row in group_lines if row.booking_id is not None]
        deleted_ids = [row.id for row in group_lines]

        # Rows reference bookings, so rows go first within the same flush scope.
        for row in group_lines:
            session.delete(row)
        session.flush()
        delete_bookings(booking_ids, session)

        logger.info(
            "Deleted line group %s (%d rows, %d bookings)",
            group_id, len(deleted_ids), len(booking_ids),
        )
        return {"deleted_line_ids": deleted_ids, "group_id": group_id, "group_deleted": True}

    remainder = require_remainder(group_id, session)

    delete_booking_for(line, session)

    remainder.line_quantity = Decimal(remainder.line_quantity) + Decimal(line.line_quantity)
    remainder.amount = Decimal(remainder.amount) + Decimal(line.amount)
    remainder.updated_at = datetime.now(timezone.utc)

    session.delete(line)
    session.flush()

    check_group_invariants(group_id, session)

    logger.info(
        "Deleted allocation %s of line group %s; remainder %s back to %s / %s",
        line_id, group_id, remainder.id, remainder.line_quantity, remainder.amount,
    )
    return {"deleted_line_ids": [line_id], "group_id": group_id, "group_deleted": False}


def check_group(group_id: str, session: Session) -> dict:
    """
    Read-only health report for one line group.

    Unlike check_group_invariants() this never raises for a broken group;
    it lists the problems so an operator can decide on a repair.
    """
    lines = get_group_lines(group_id, session)
    if not lines:
        raise NotFoundError(
            ErrorCode.LINE_GROUP_NOT_FOUND,
            f"Line group {group_id} does not exist.",
        )

    problems = find_invariant_violations(lines)
    return {
        "group_id": group_id,
        "healthy":  not problems,
        "problems": problems,
        "summary":  summarize_group(lines),
    }
