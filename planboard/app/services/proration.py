"""
services/proration.py — Amount proration across quantity segments.

Rounding mode: ROUND_HALF_UP to 2 decimal places (the cent). This is pinned
by tests/unit/test_proration.py; do not change it without changing those.

Residual rule:
  Every segment but the last gets round2(total_amount * q_i / total_quantity).
  The last segment gets the allocated total minus what was already handed out,
  where the allocated total is round2(total_amount * sum(q) / total_quantity).
  The produced amounts therefore always sum to the allocated total exactly,
  however many segments there are.

All arithmetic is Decimal. Never float.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from planboard.app.errors import ErrorCode, StateConflictError

CENT = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    """Rounds to the cent, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _require_valid_base(total_amount: Decimal, total_quantity: Decimal) -> None:
    if total_quantity <= 0:
        raise StateConflictError(
            ErrorCode.INVALID_PRORATION_BASE,
            f"Cannot prorate over a quantity of {total_quantity}; "
            f"the source line has nothing left to split.",
        )
    if total_amount < 0:
        raise StateConflictError(
            ErrorCode.INVALID_PRORATION_BASE,
            f"Cannot prorate a negative amount ({total_amount}).",
        )


def prorate_amounts(
        total_amount: Decimal,
        total_quantity: Decimal,
        quantities: Sequence[Decimal | int],
) -> list[Decimal]:
    """
    Splits the share of `total_amount` that corresponds to sum(quantities)
    across the given segments.

    Args:
        total_amount:   Amount currently carried by the source (remainder) row.
        total_quantity: Quantity currently carried by the source row. Must be > 0.
        quantities:     Ordered segment quantities, each > 0, summing to at most
                        total_quantity.

    Returns:
        One Decimal per segment, in the same order. Their sum equals
        round2(total_amount * sum(quantities) / total_quantity) exactly.

    Raises:
        StateConflictError(INVALID_PRORATION_BASE) for an empty or negative
        base, non-positive segments, or segments exceeding the base.
    """
    _require_valid_base(total_amount, total_quantity)

    segment_quantities = [Decimal(q) for q in quantities]
    if not segment_quantities:
        raise StateConflictError(
            ErrorCode.INVALID_PRORATION_BASE,
            "At least one segment is required to prorate an amount.",
        )
    if any(q <= 0 for q in segment_quantities):
        raise StateConflictError(
            ErrorCode.INVALID_PRORATION_BASE,
            "Every segment quantity must be strictly positive.",
        )

    allocated_quantity = sum(segment_quantities, Decimal("0"))
    if allocated_quantity > total_quantity:
        raise StateConflictError(
            ErrorCode.INVALID_PRORATION_BASE,
            f"Segments total {allocated_quantity}, more than the available "
            f"{total_quantity}.",
        )

    allocated_total = round2(total_amount * allocated_quantity / total_quantity)

    amounts: list[Decimal] = []
    handed_out = Decimal("0.00")
    for q in segment_quantities[:-1]:
        share = round2(total_amount * q / total_quantity)
        amounts.append(share)
        handed_out += share

    # Last segment absorbs the rounding residual.
    amounts.append(allocated_total - handed_out)
    return amounts


def split_amount(
        amount: Decimal,
        kept_quantity: Decimal,
        total_quantity: Decimal,
) -> tuple[Decimal, Decimal]:
    """
    Two-way split used when carving a remainder back out of a planned line.

    Returns (kept, rest) where kept = round2(amount * kept_quantity / total_quantity)
    and rest = amount - kept, so kept + rest == amount exactly.
    """
    _require_valid_base(amount, total_quantity)
    kept = round2(amount * Decimal(kept_quantity) / total_quantity)
    return kept, amount - kept
