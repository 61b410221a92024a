"""
schemas/project_schema.py — Marshmallow schemas for project endpoints.

Validation responsibility:
  - This file:
      - Field types, string lengths, non-blank names, ISO order date
      - Status is one of ProjectStatus.ALL
      - Partial-update shape (at least one field)
  - services/project_service.py:
      - Existence of client / contact / project manager (DB lookups)
      - The contact belongs to the project's client
      - Refusing deletion while the project has lines

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from planboard.app.models.project import ProjectStatus


def _validate_non_empty_after_trim(value: str) -> None:
    """Rejects blank and whitespace-only strings."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_NAME_RULES = [
    validate.Length(min=1, max=255, error="Must be between 1 and 255 characters."),
    _validate_non_empty_after_trim,
]

_SALES_TYPE_RULES = [
    validate.Length(min=1, max=100, error="Must be between 1 and 100 characters."),
    _validate_non_empty_after_trim,
]

_STATUS_RULE = validate.OneOf(
    ProjectStatus.ALL,
    error="status must be one of: " + ", ".join(ProjectStatus.ALL) + ".",
)

_ID_RULE = validate.Range(min=1, error="Must be a positive integer.")


# ── Create project ─────────────────────────────────────────────────────────

class CreateProjectSchema(Schema):
    """
    POST /projects

    name, client_id, commercial_name and sales_type are required. A new
    project starts as quote_in_progress unless a status is given.
    """

    name = fields.Str(required=True, validate=_NAME_RULES)
    client_id = fields.Int(required=True, strict=True, validate=_ID_RULE)
    client_contact_id = fields.Int(strict=True, allow_none=True, load_default=None, validate=_ID_RULE)
    commercial_name = fields.Str(required=True, validate=_NAME_RULES)
    project_manager_id = fields.Int(strict=True, allow_none=True, load_default=None, validate=_ID_RULE)
    order_date = fields.Date(format="%Y-%m-%d", allow_none=True, load_default=None)
    sales_type = fields.Str(required=True, validate=_SALES_TYPE_RULES)
    status = fields.Str(load_default=ProjectStatus.QUOTE_IN_PROGRESS, validate=_STATUS_RULE)
    notes = fields.Str(load_default="")


# ── Update project ─────────────────────────────────────────────────────────

class UpdateProjectSchema(Schema):
    """
    PATCH /projects/:id

    Partial update. Only the optional references and the order date accept
    null (to clear them).
    """

    name = fields.Str(validate=_NAME_RULES)
    client_id = fields.Int(strict=True, validate=_ID_RULE)
    client_contact_id = fields.Int(strict=True, allow_none=True, validate=_ID_RULE)
    commercial_name = fields.Str(validate=_NAME_RULES)
    project_manager_id = fields.Int(strict=True, allow_none=True, validate=_ID_RULE)
    order_date = fields.Date(format="%Y-%m-%d", allow_none=True)
    sales_type = fields.Str(validate=_SALES_TYPE_RULES)
    status = fields.Str(validate=_STATUS_RULE)
    notes = fields.Str()

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("Provide at least one field to update.")
