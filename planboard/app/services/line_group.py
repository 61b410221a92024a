"""
services/line_group.py — Line-group roles, queries and invariants.

A line group is every project_lines row sharing one group_id. Exactly one row
is the remainder (quantity and amount not yet allocated); the others are
allocations (quantity assigned to one consultant over one date range).

Roles are a tagged variant in memory:

    Remainder()                                    — nothing planned
    Allocation(consultant_id, start, end, quantity) — anything planned

The database only has nullable planning columns. `line_role()` and
`role_columns()` are the single translation point between the two shapes,
and `remainder_clause()` is the same predicate expressed as SQL. Nothing
else in the codebase inspects the four planning columns to decide a role.

Group invariants (checked by check_group_invariants):
  1. exactly one remainder row
  2. sum(line_quantity) == sold_total
  3. sum(amount) == sold_amount
  4. every allocation has line_quantity == planned_quantity > 0
  5. remainder.line_quantity >= 0
  6. booking_id set iff the row is a complete allocation; booking ids unique

Layer rules: no Flask imports; receives a Session, only reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from planboard.app.errors import ConsistencyError, ErrorCode, NotFoundError
from planboard.app.models.consultant import Consultant
from planboard.app.models.project_line import ProjectLine

logger = logging.getLogger(__name__)

# Amounts may disagree by at most one cent before the group is declared broken.
AMOUNT_TOLERANCE = Decimal("0.01")


# ── Roles ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Remainder:
    """The group's unallocated share."""


@dataclass(frozen=True)
class Allocation:
    consultant_id: int | None
    start: date | None
    end: date | None
    quantity: Decimal

    @property
    def is_complete(self) -> bool:
        """True when the allocation is fully specified and must carry a booking."""
        return (
            self.consultant_id is not None
            and self.start is not None
            and self.end is not None
            and self.quantity > 0
        )


LineRole = Union[Remainder, Allocation]


def line_role(line: ProjectLine) -> LineRole:
    """Derives the role of a stored row from its planning columns."""
    planned = Decimal(line.planned_quantity or 0)
    if (
        line.consultant_id is None
        and line.planned_start is None
        and line.planned_end is None
        and planned == 0
    ):
        return Remainder()
    return Allocation(
        consultant_id=line.consultant_id,
        start=line.planned_start,
        end=line.planned_end,
        quantity=planned,
    )


def is_remainder(line: ProjectLine) -> bool:
    return isinstance(line_role(line), Remainder)


def role_columns(role: LineRole) -> dict:
    """Translates a role back into the planning column values it is stored as."""
    if isinstance(role, Remainder):
        return {
            "consultant_id":    None,
            "planned_start":    None,
            "planned_end":      None,
            "planned_quantity": Decimal("0"),
        }
    return {
        "consultant_id":    role.consultant_id,
        "planned_start":    role.start,
        "planned_end":      role.end,
        "planned_quantity": role.quantity,
    }


def role_name(role: LineRole) -> str:
    return "remainder" if isinstance(role, Remainder) else "allocation"


def remainder_clause():
    """SQL form of the remainder predicate, for queries."""
    return and_(
        ProjectLine.consultant_id.is_(None),
        ProjectLine.planned_start.is_(None),
        ProjectLine.planned_end.is_(None),
        ProjectLine.planned_quantity == 0,
    )


# ── Queries ────────────────────────────────────────────────────────────────

def get_line_or_404(line_id: int, session: Session) -> ProjectLine:
    """Returns the ProjectLine or raises LINE_NOT_FOUND (404)."""
    line = session.get(ProjectLine, line_id)
    if line is None:
        raise NotFoundError(
            ErrorCode.LINE_NOT_FOUND,
            f"Project line {line_id} does not exist.",
        )
    return line


def get_consultant_or_404(consultant_id: int, session: Session) -> Consultant:
    """Returns the Consultant an allocation points at or raises CONSULTANT_NOT_FOUND (404)."""
    consultant = session.get(Consultant, consultant_id)
    if consultant is None:
        raise NotFoundError(
            ErrorCode.CONSULTANT_NOT_FOUND,
            f"Consultant {consultant_id} does not exist.",
        )
    return consultant


def get_group_lines(group_id: str, session: Session) -> list[ProjectLine]:
    """Returns every row of a group, oldest first."""
    stmt = (
        select(ProjectLine)
        .where(ProjectLine.group_id == group_id)
        .order_by(ProjectLine.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def find_remainder(group_id: str, session: Session) -> ProjectLine | None:
    """
    Returns the group's remainder row, or None when the group has none.

    More than one match is a broken group and raises INVARIANT_VIOLATED.
    """
    stmt = (
        select(ProjectLine)
        .where(ProjectLine.group_id == group_id, remainder_clause())
        .order_by(ProjectLine.id.asc())
    )
    rows = list(session.execute(stmt).scalars().all())
    if len(rows) > 1:
        raise ConsistencyError(
            ErrorCode.INVARIANT_VIOLATED,
            f"Line group {group_id} has {len(rows)} remainder rows; expected exactly one.",
            group_id=group_id,
        )
    return rows[0] if rows else None


def require_remainder(group_id: str, session: Session) -> ProjectLine:
    """Returns the group's remainder or raises REMAINDER_MISSING."""
    remainder = find_remainder(group_id, session)
    if remainder is None:
        logger.warning("Line group %s has no remainder row", group_id)
        raise ConsistencyError(
            ErrorCode.REMAINDER_MISSING,
            f"No remainder row found for line group {group_id}.",
            group_id=group_id,
        )
    return remainder


# ── Invariants ─────────────────────────────────────────────────────────────

def find_invariant_violations(lines: list[ProjectLine]) -> list[str]:
    """
    Evaluates the group invariants over already-loaded rows.

    Pure: returns a list of human-readable problems, empty when the group
    is healthy.
    """
    if not lines:
        return ["group has no rows"]

    problems: list[str] = []
    sold_total = Decimal(lines[0].sold_total)
    sold_amount = Decimal(lines[0].sold_amount)

    remainders = [line for line in lines if is_remainder(line)]
    if len(remainders) != 1:
        problems.append(f"expected exactly one remainder row, found {len(remainders)}")

    if any(Decimal(line.sold_total) != sold_total for line in lines):
        problems.append("sold_total differs between rows")
    if any(Decimal(line.sold_amount) != sold_amount for line in lines):
        problems.append("sold_amount differs between rows")

    quantity_sum = sum((Decimal(line.line_quantity) for line in lines), Decimal("0"))
    if quantity_sum != sold_total:
        problems.append(f"line quantities sum to {quantity_sum}, sold total is {sold_total}")

    amount_sum = sum((Decimal(line.amount) for line in lines), Decimal("0"))
    if abs(amount_sum - sold_amount) > AMOUNT_TOLERANCE:
        problems.append(f"amounts sum to {amount_sum}, sold amount is {sold_amount}")

    seen_bookings: set[int] = set()
    for line in lines:
        role = line_role(line)
        if isinstance(role, Remainder):
            if Decimal(line.line_quantity) < 0:
                problems.append(f"remainder row {line.id} has negative quantity")
            if line.booking_id is not None:
                problems.append(f"remainder row {line.id} carries booking {line.booking_id}")
            continue

        if not (Decimal(line.line_quantity) == role.quantity and role.quantity > 0):
            problems.append(
                f"allocation row {line.id} has line_quantity {line.line_quantity} "
                f"and planned_quantity {role.quantity}"
            )
        if role.is_complete and line.booking_id is None:
            problems.append(f"allocation row {line.id} has no booking")
        if not role.is_complete and line.booking_id is not None:
            problems.append(f"incomplete allocation row {line.id} carries a booking")
        if line.booking_id is not None:
            if line.booking_id in seen_bookings:
                problems.append(f"booking {line.booking_id} is referenced twice")
            seen_bookings.add(line.booking_id)

    return problems


def check_group_invariants(group_id: str, session: Session) -> list[ProjectLine]:
    """
    Loads the group and raises INVARIANT_VIOLATED if any invariant fails.

    Called at the end of every mutating operation, inside the unit of work,
    so a violation rolls the whole operation back. Returns the loaded rows.
    """
    session.flush()
    lines = get_group_lines(group_id, session)
    problems = find_invariant_violations(lines)
    if problems:
        logger.warning("Line group %s violates invariants: %s", group_id, "; ".join(problems))
        raise ConsistencyError(
            ErrorCode.INVARIANT_VIOLATED,
            f"Line group {group_id} is inconsistent: {'; '.join(problems)}.",
            group_id=group_id,
        )
    return lines


# ── Summary ────────────────────────────────────────────────────────────────

class PlanningStatus:
    NEW         = "new"
    IN_PROGRESS = "in_progress"
    PLANNED     = "planned"


def summarize_group(lines: list[ProjectLine]) -> dict:
    """
    Aggregates one group's rows into the planning summary shown per sold line.

    remaining = max(0, sold_total - planned_total). Status is "new" when
    nothing is planned, "in_progress" while something remains, else "planned".
    """
    first = lines[0]
    sold_total = Decimal(first.sold_total)

    remainder_id = None
    planned_total = Decimal("0")
    realized_total = Decimal("0")
    allocation_count = 0
    for line in lines:
        role = line_role(line)
        if isinstance(role, Remainder):
            remainder_id = line.id
            continue
        allocation_count += 1
        planned_total += role.quantity
        realized_total += Decimal(line.realized_quantity or 0)

    remaining = max(Decimal("0"), sold_total - planned_total)
    if planned_total <= 0:
        status = PlanningStatus.NEW
    elif remaining > 0:
        status = PlanningStatus.IN_PROGRESS
    else:
        status = PlanningStatus.PLANNED

    return {
        "group_id":         first.group_id,
        "article_id":       first.article_id,
        "remainder_id":     remainder_id,
        "allocation_count": allocation_count,
        "sold_total":       sold_total,
        "sold_amount":      Decimal(first.sold_amount),
        "planned_total":    planned_total,
        "realized_total":   realized_total,
        "remaining":        remaining,
        "status":           status,
    }
