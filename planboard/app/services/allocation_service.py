"""
services/allocation_service.py — Carving allocations out of a line group.

Operations:
  allocate(line_id, consultant_id, days)
      Plans a selection of days for one consultant against the group's
      remainder row. The selection is compacted into consecutive ranges; each
      range becomes one allocation row (1 day == 1 unit of quantity) with a
      prorated share of the remainder's amount. The remainder shrinks by
      exactly what was handed out.

  report_remainder(line_id)
      Data repair for a row that carries partial planning
      (0 < planned_quantity < line_quantity) in a group that has lost its
      remainder: the unplanned part is split off into a new remainder row.

Rejections (nothing is written when any of these is raised):
  LINE_NOT_FOUND (404), CONSULTANT_NOT_FOUND (404)
  NOT_A_REMAINDER / ALREADY_A_REMAINDER / REMAINDER_ALREADY_EXISTS (409)
  EMPTY_DAY_SELECTION / REMAINDER_EXHAUSTED / SELECTION_EXCEEDS_REMAINDER /
  NOTHING_TO_SPLIT (422)

Layer rules:
  - No Flask imports. Receives plain values and a Session.
  - Only flush. The caller's unit_of_work commits or rolls back.
  - Every operation ends with check_group_invariants().
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from planboard.app.errors import (
    ErrorCode,
    InvalidRequestError,
    StateConflictError,
)
from planboard.app.models.project_line import ProjectLine
from planboard.app.services.booking_service import DEFAULT_BOOKING_KIND, sync_line_booking
from planboard.app.services.date_ranges import compact_days
from planboard.app.services.line_group import (
    Allocation,
    Remainder,
    check_group_invariants,
    find_remainder,
    get_consultant_or_404,
    get_line_or_404,
    line_role,
    role_columns,
)
from planboard.app.services.proration import prorate_amounts, split_amount

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _sibling_row(source: ProjectLine, **values) -> ProjectLine:
    """A new row in the same group as `source`, sharing its reference totals."""
    return ProjectLine(
        group_id=source.group_id,
        project_id=source.project_id,
        article_id=source.article_id,
        sold_total=source.sold_total,
        sold_amount=source.sold_amount,
        realized_quantity=Decimal("0"),
        **values,
    )


# ── Public service functions ───────────────────────────────────────────────

def allocate(
        line_id: int,
        consultant_id: int,
        days: Iterable[date],
        session: Session,
        booking_kind: str = DEFAULT_BOOKING_KIND,
) -> list[ProjectLine]:
    """
    Allocates `days` to `consultant_id` out of remainder row `line_id`.

    Steps:
      1. Validate: row exists and is the remainder, selection non-empty,
         consultant exists, selection fits in the remainder.
      2. Compact the days into consecutive ranges.
      3. Prorate the remainder's amount over the ranges (residual to the last).
      4. Insert one allocation row per range.
      5. Shrink the remainder by the allocated sums (not re-derived from totals).
      6. Create one booking per new allocation.

    Returns:
        The new allocation rows, in ascending date order.
    """
    remainder = get_line_or_404(line_id, session)

    if not isinstance(line_role(remainder), Remainder):
        raise StateConflictError(
            ErrorCode.NOT_A_REMAINDER,
            f"Project line {line_id} is an allocation; planning must start "
            f"from the group's remainder row.",
        )

    selected = sorted(set(days))
    if not selected:
        raise InvalidRequestError(
            ErrorCode.EMPTY_DAY_SELECTION,
            "Select at least one day to allocate.",
            field="days",
        )

    get_consultant_or_404(consultant_id, session)

    remaining_quantity = Decimal(remainder.line_quantity)
    remaining_amount = Decimal(remainder.amount)
    requested = Decimal(len(selected))

    if remaining_quantity <= 0:
        raise InvalidRequestError(
            ErrorCode.REMAINDER_EXHAUSTED,
            f"Line group {remainder.group_id} has nothing left to plan.",
            field="days",
        )
    if requested > remaining_quantity:
        raise InvalidRequestError(
            ErrorCode.SELECTION_EXCEEDS_REMAINDER,
            f"{len(selected)} days selected but only {remaining_quantity} "
            f"remain to be planned.",
            field="days",
        )

    ranges = compact_days(selected)
    amounts = prorate_amounts(
        remaining_amount,
        remaining_quantity,
        [day_range.day_count for day_range in ranges],
    )

    created: list[ProjectLine] = []
    for day_range, amount in zip(ranges, amounts):
        quantity = Decimal(day_range.day_count)
        role = Allocation(
            consultant_id=consultant_id,
            start=day_range.start,
            end=day_range.end,
            quantity=quantity,
        )
        row = _sibling_row(
            remainder,
            line_quantity=quantity,
            amount=amount,
            **role_columns(role),
        )
        session.add(row)
        created.append(row)
    session.flush()  # populate ids before bookings reference them

    allocated_quantity = sum((Decimal(row.line_quantity) for row in created), Decimal("0"))
    allocated_amount = sum(amounts, Decimal("0"))
    remainder.line_quantity = remaining_quantity - allocated_quantity
    remainder.amount = remaining_amount - allocated_amount
    remainder.updated_at = datetime.now(timezone.utc)
    session.flush()

    for row in created:
        sync_line_booking(row, session, kind=booking_kind)

    check_group_invariants(remainder.group_id, session)

    logger.info(
        "Allocated %s day(s) in %s range(s) of line group %s to consultant %s; "
        "remainder %s now carries %s / %s",
        requested, len(ranges), remainder.group_id, consultant_id,
        remainder.id, remainder.line_quantity, remainder.amount,
    )
    return created


def report_remainder(
        line_id: int,
        session: Session,
        booking_kind: str = DEFAULT_BOOKING_KIND,
) -> ProjectLine:
    """
    Splits the unplanned part of a partially planned row into a new remainder.

    Given line_quantity L, planned_quantity P (0 < P < L) and amount A:
      source row    -> line_quantity P,     amount round2(A * P / L)
      new remainder -> line_quantity L - P, amount A - round2(A * P / L)

    Returns:
        The new remainder row.
    """
    line = get_line_or_404(line_id, session)
    role = line_role(line)

    if isinstance(role, Remainder):
        raise StateConflictError(
            ErrorCode.ALREADY_A_REMAINDER,
            f"Project line {line_id} is already the remainder of its group.",
        )

    line_quantity = Decimal(line.line_quantity)
    planned = role.quantity
    if not (0 < planned < line_quantity):
        raise InvalidRequestError(
            ErrorCode.NOTHING_TO_SPLIT,
            f"planned_quantity ({planned}) must be strictly between 0 and "
            f"line_quantity ({line_quantity}) to split off a remainder.",
            field="planned_quantity",
        )

    existing = find_remainder(line.group_id, session)
    if existing is not None:
        raise StateConflictError(
            ErrorCode.REMAINDER_ALREADY_EXISTS,
            f"Line group {line.group_id} already has remainder row {existing.id}.",
        )

    kept_amount, rest_amount = split_amount(Decimal(line.amount), planned, line_quantity)

    line.line_quantity = planned
    line.amount = kept_amount
    line.updated_at = datetime.now(timezone.utc)

    remainder = _sibling_row(
        line,
        line_quantity=line_quantity - planned,
        amount=rest_amount,
        **role_columns(Remainder()),
    )
    session.add(remainder)
    session.flush()

    sync_line_booking(line, session, kind=booking_kind)
    check_group_invariants(line.group_id, session)

    logger.info(
        "Split remainder %s (%s / %s) off project line %s in line group %s",
        remainder.id, remainder.line_quantity, remainder.amount, line.id, line.group_id,
    )
    return remainder
