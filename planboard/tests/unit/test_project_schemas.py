"""
tests/unit/test_project_schemas.py — Unit tests for the project schemas.

What this file proves:
  - Create requires name, client, commercial name and sales type; the rest
    defaults (status quote_in_progress, empty notes, null references)
  - Status must be one of the known project statuses
  - Blank names are rejected even when they have length
  - PATCH is partial, needs at least one field, and accepts null only for
    the clearable references and the order date
"""

from __future__ import annotations

from datetime import date

import pytest
from marshmallow import ValidationError

from planboard.app.models.project import ProjectStatus
from planboard.app.schemas.project_schema import CreateProjectSchema, UpdateProjectSchema

_VALID = {
    "name": "ERP rollout",
    "client_id": 1,
    "commercial_name": "Sam Seller",
    "sales_type": "Fixed price",
}


class TestCreateProjectSchema:

    def test_minimal_payload_gets_defaults(self):
        result = CreateProjectSchema().load(dict(_VALID))

        assert result["status"] == ProjectStatus.QUOTE_IN_PROGRESS
        assert result["notes"] == ""
        assert result["client_contact_id"] is None
        assert result["project_manager_id"] is None
        assert result["order_date"] is None

    def test_order_date_is_parsed(self):
        result = CreateProjectSchema().load({**_VALID, "order_date": "2024-02-15"})
        assert result["order_date"] == date(2024, 2, 15)

    @pytest.mark.parametrize("field", ["name", "client_id", "commercial_name", "sales_type"])
    def test_required_fields(self, field):
        payload = {k: v for k, v in _VALID.items() if k != field}

        with pytest.raises(ValidationError) as exc_info:
            CreateProjectSchema().load(payload)

        assert field in exc_info.value.messages

    def test_every_known_status_is_accepted(self):
        for status in ProjectStatus.ALL:
            assert CreateProjectSchema().load({**_VALID, "status": status})["status"] == status

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateProjectSchema().load({**_VALID, "status": "lost"})
        assert "status" in exc_info.value.messages

    def test_whitespace_name_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateProjectSchema().load({**_VALID, "name": "   "})
        assert "name" in exc_info.value.messages

    def test_client_id_must_be_an_integer(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateProjectSchema().load({**_VALID, "client_id": "1"})
        assert "client_id" in exc_info.value.messages


class TestUpdateProjectSchema:

    def test_partial_payload(self):
        assert UpdateProjectSchema().load({"status": "paid"}) == {"status": "paid"}

    def test_empty_payload_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateProjectSchema().load({})
        assert "_schema" in exc_info.value.messages

    def test_references_can_be_cleared(self):
        result = UpdateProjectSchema().load(
            {"client_contact_id": None, "project_manager_id": None, "order_date": None}
        )
        assert result == {"client_contact_id": None, "project_manager_id": None, "order_date": None}

    def test_name_cannot_be_nulled(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateProjectSchema().load({"name": None})
        assert "name" in exc_info.value.messages
