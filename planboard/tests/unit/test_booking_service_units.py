"""
Unit tests for booking_service helpers and the no-database branches of
sync_line_booking (mocked session).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from planboard.app.services import booking_service

MON = date(2024, 3, 4)
WED = date(2024, 3, 6)


def _line(**overrides) -> SimpleNamespace:
    values = dict(
        id=12,
        consultant_id=3,
        planned_start=MON,
        planned_end=WED,
        planned_quantity=Decimal("3.00"),
        booking_id=None,
        project=SimpleNamespace(
            name="Website relaunch",
            client=SimpleNamespace(client_number="C-0042", name="Acme"),
        ),
        article=SimpleNamespace(name="Senior consulting"),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


# ── Title / notes ──────────────────────────────────────────────────────────

def test_booking_title_joins_client_project_and_article():
    assert booking_service._booking_title(_line()) == (
        "C-0042 • Acme - Website relaunch - Senior consulting"
    )


def test_booking_title_falls_back_to_default_names():
    line = _line(
        project=SimpleNamespace(name="", client=SimpleNamespace(client_number="7", name="Acme")),
        article=None,
    )
    assert booking_service._booking_title(line) == "7 • Acme - Project - Service"


@pytest.mark.parametrize("raw, expected", [
    (Decimal("3"), "3"),
    (Decimal("3.00"), "3"),
    (Decimal("2.50"), "2.5"),
    (Decimal("0.25"), "0.25"),
])
def test_format_quantity_is_stable(raw, expected):
    assert booking_service._format_quantity(raw) == expected


def test_booking_notes_reference_line_and_quantity():
    assert booking_service._booking_notes(_line()) == "Project line: 12\nPlanned quantity: 3"


# ── sync_line_booking branches ─────────────────────────────────────────────

def test_remainder_without_booking_is_left_alone():
    session = MagicMock()
    line = _line(consultant_id=None, planned_start=None, planned_end=None,
                 planned_quantity=Decimal("0"))

    assert booking_service.sync_line_booking(line, session) is None

    session.get.assert_not_called()
    session.delete.assert_not_called()


def test_incomplete_allocation_loses_its_booking():
    session = MagicMock()
    stale = SimpleNamespace(id=55)
    session.get.return_value = stale
    line = _line(consultant_id=None, booking_id=55)

    assert booking_service.sync_line_booking(line, session) is None

    assert line.booking_id is None
    session.delete.assert_called_once_with(stale)


def test_unchanged_booking_is_not_written():
    session = MagicMock()
    line = _line(booking_id=55)
    existing = SimpleNamespace(
        id=55,
        consultant_id=3,
        kind="booking",
        title="C-0042 • Acme - Website relaunch - Senior consulting",
        notes="Project line: 12\nPlanned quantity: 3",
        start_date=MON,
        end_date=WED,
        updated_at=None,
    )
    session.get.return_value = existing

    assert booking_service.sync_line_booking(line, session) is existing

    session.flush.assert_not_called()
    assert existing.updated_at is None


def test_changed_dates_update_booking_in_place():
    session = MagicMock()
    line = _line(booking_id=55, planned_end=date(2024, 3, 8))
    existing = SimpleNamespace(
        id=55,
        consultant_id=3,
        kind="booking",
        title="C-0042 • Acme - Website relaunch - Senior consulting",
        notes="Project line: 12\nPlanned quantity: 3",
        start_date=MON,
        end_date=WED,
        updated_at=None,
    )
    session.get.return_value = existing

    booking_service.sync_line_booking(line, session, kind="project")

    assert existing.end_date == date(2024, 3, 8)
    assert existing.kind == "project"
    assert existing.updated_at is not None
    session.add.assert_not_called()


def test_delete_bookings_with_no_ids_is_a_no_op():
    session = MagicMock()
    booking_service.delete_bookings([], session)
    session.execute.assert_not_called()
