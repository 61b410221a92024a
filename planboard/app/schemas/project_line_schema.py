"""
schemas/project_line_schema.py — Marshmallow schemas for project line endpoints.

Validation responsibility:
  - This file:
      - Field types, positivity, decimal precision (2 dp for amounts and
        quantities), ISO date parsing, non-empty day list
      - Partial-update shape (at least one field, no nulls)
  - services/:
      - Existence of project / article / consultant (DB lookups)
      - Selection size vs the remainder's quantity
      - Role checks (remainder vs allocation)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from planboard.app.errors import ErrorCode


# ── Shared validators ──────────────────────────────────────────────────────
#
# Input with more than 2 decimal places is REJECTED, never rounded.
# Decimal.as_tuple().exponent is the negated scale:
#   Decimal("10.123") -> -3 -> reject;  Decimal("10.12") -> -2 -> accept
# ──────────────────────────────────────────────────────────────────────────

def _validate_monetary_amount(value: Decimal) -> None:
    """Strictly positive, at most 2 decimal places."""
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_quantity_precision(value: Decimal) -> None:
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_QUANTITY_PRECISION)


def _validate_positive_quantity(value: Decimal) -> None:
    if value <= Decimal("0"):
        raise ValidationError("Quantity must be greater than zero.")
    _validate_quantity_precision(value)


def _validate_non_negative_quantity(value: Decimal) -> None:
    if value < Decimal("0"):
        raise ValidationError("Quantity must not be negative.")
    _validate_quantity_precision(value)


# ── Create line ────────────────────────────────────────────────────────────

class CreateProjectLineSchema(Schema):
    """
    POST /projects/:id/lines

    Enters a sold line. The service creates the group's remainder row carrying
    the full quantity and amount.
    """

    article_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="article_id must be a positive integer."),
    )

    # Total quantity sold (days). Immutable once the group exists.
    sold_quantity = fields.Decimal(
        required=True,
        validate=_validate_positive_quantity,
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )


# ── Allocate days ──────────────────────────────────────────────────────────

class AllocateDaysSchema(Schema):
    """
    POST /project-lines/:id/allocations

    `days` is the raw calendar selection. Order and duplicates do not matter;
    the service deduplicates and compacts it. An empty list is rejected here
    with EMPTY_DAY_SELECTION so no service call is made.
    """

    consultant_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="consultant_id must be a positive integer."),
    )

    days = fields.List(
        fields.Date(format="%Y-%m-%d"),
        required=True,
        validate=validate.Length(min=1, error=ErrorCode.EMPTY_DAY_SELECTION),
    )


# ── Patch allocation ───────────────────────────────────────────────────────

class PatchProjectLineSchema(Schema):
    """
    PATCH /project-lines/:id

    Partial update of an allocation's planning. Quantity and amount are not
    editable; unknown keys (including line_quantity / amount) are rejected by
    marshmallow's default RAISE policy.
    """

    consultant_id = fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="consultant_id must be a positive integer."),
    )
    planned_start = fields.Date(format="%Y-%m-%d")
    planned_end = fields.Date(format="%Y-%m-%d")
    realized_quantity = fields.Decimal(validate=_validate_non_negative_quantity)

    @validates_schema
    def validate_patch_shape(self, data: dict, **kwargs) -> None:
        """At least one field; start <= end when both are sent."""
        if not data:
            raise ValidationError("Provide at least one field to update.")

        start = data.get("planned_start")
        end = data.get("planned_end")
        if start is not None and end is not None and start > end:
            raise ValidationError(ErrorCode.INVALID_DATE_RANGE, field_name="planned_end")
