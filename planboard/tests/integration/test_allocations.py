"""
tests/integration/test_allocations.py — Allocating days out of a line group.

Endpoints covered:
  POST /projects/:id/lines              → 201 (enter sold line)
  POST /project-lines/:id/allocations   → 201 (allocate days)

Behaviour verified:
  - Consecutive days become one allocation; gaps produce one row per range
  - The remainder shrinks by exactly the allocated quantity and amount
  - Each allocation gets its own booking with the derived title
  - Oversized / empty selections and wrong targets write nothing
"""

from __future__ import annotations

from decimal import Decimal

MON, TUE, WED, THU = "2024-03-04", "2024-03-05", "2024-03-06", "2024-03-07"


def _remainder_of(rows: list) -> object:
    from planboard.app.services.line_group import is_remainder

    remainders = [row for row in rows if is_remainder(row)]
    assert len(remainders) == 1
    return remainders[0]


# ═══════════════════════════════════════════════════════════════════════════
# POST /projects/:id/lines
# ═══════════════════════════════════════════════════════════════════════════

class TestEnterSoldLine:

    def test_new_line_is_the_remainder_of_a_new_group(self, make_line):
        line = make_line("5", "500.00")
        assert line["role"] == "remainder"
        assert line["line_quantity"] == "5.00"
        assert line["amount"] == "500.00"
        assert line["sold_total"] == "5.00"
        assert line["consultant_id"] is None
        assert line["booking_id"] is None
        assert len(line["group_id"]) == 32

    def test_two_lines_get_distinct_groups(self, make_line):
        assert make_line()["group_id"] != make_line()["group_id"]

    def test_unknown_project_returns_404(self, client, headers, refs):
        resp = client.post(
            "/api/v1/projects/99999/lines",
            json={"article_id": refs.article_id, "sold_quantity": "5", "amount": "500.00"},
            headers=headers,
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "PROJECT_NOT_FOUND"

    def test_unknown_article_returns_404(self, client, headers, refs):
        resp = client.post(
            f"/api/v1/projects/{refs.project_id}/lines",
            json={"article_id": 99999, "sold_quantity": "5", "amount": "500.00"},
            headers=headers,
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "ARTICLE_NOT_FOUND"

    def test_amount_precision_is_a_400(self, client, headers, refs):
        resp = client.post(
            f"/api/v1/projects/{refs.project_id}/lines",
            json={"article_id": refs.article_id, "sold_quantity": "5", "amount": "500.001"},
            headers=headers,
        )
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_AMOUNT_PRECISION"
        assert error["field"] == "amount"


# ═══════════════════════════════════════════════════════════════════════════
# POST /project-lines/:id/allocations: happy paths
# ═══════════════════════════════════════════════════════════════════════════

class TestAllocate:

    def test_three_consecutive_days_make_one_allocation(self, make_line, allocate, refs, group_rows):
        line = make_line("5", "500.00")

        resp = allocate(line["id"], refs.r1, [MON, TUE, WED])

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert len(data["allocations"]) == 1
        row = data["allocations"][0]
        assert row["role"] == "allocation"
        assert row["line_quantity"] == "3.00"
        assert row["planned_quantity"] == "3.00"
        assert row["amount"] == "300.00"
        assert row["planned_start"] == MON
        assert row["planned_end"] == WED
        assert row["consultant_id"] == refs.r1
        assert row["group_id"] == line["group_id"]
        assert row["booking_id"] is not None

        assert data["remainder"]["id"] == line["id"]
        assert data["remainder"]["line_quantity"] == "2.00"
        assert data["remainder"]["amount"] == "200.00"

        rows = group_rows(line["group_id"])
        assert len(rows) == 2
        remainder = _remainder_of(rows)
        assert Decimal(remainder.line_quantity) == Decimal("2")
        assert Decimal(remainder.amount) == Decimal("200.00")

    def test_gap_produces_two_allocations_with_residual_on_last(self, make_line, allocate, refs):
        line = make_line("5", "500.00")

        resp = allocate(line["id"], refs.r1, [MON, TUE, THU])

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        rows = data["allocations"]
        assert [(r["planned_start"], r["planned_end"]) for r in rows] == [(MON, TUE), (THU, THU)]
        assert [r["line_quantity"] for r in rows] == ["2.00", "1.00"]
        assert [r["amount"] for r in rows] == ["200.00", "100.00"]
        assert data["remainder"]["line_quantity"] == "2.00"
        assert data["remainder"]["amount"] == "200.00"
        assert rows[0]["booking_id"] != rows[1]["booking_id"]

    def test_uneven_amount_is_conserved(self, make_line, allocate, refs, group_rows):
        line = make_line("3", "1000.00")

        resp = allocate(line["id"], refs.r1, [MON, WED])

        assert resp.status_code == 201
        assert [r["amount"] for r in resp.get_json()["data"]["allocations"]] == ["333.33", "333.34"]

        rows = group_rows(line["group_id"])
        assert sum(Decimal(r.amount) for r in rows) == Decimal("1000.00")
        assert Decimal(_remainder_of(rows).amount) == Decimal("333.33")

    def test_duplicate_days_count_once(self, make_line, allocate, refs):
        line = make_line("5", "500.00")

        resp = allocate(line["id"], refs.r1, [TUE, MON, TUE])

        assert resp.status_code == 201
        allocations = resp.get_json()["data"]["allocations"]
        assert len(allocations) == 1
        assert allocations[0]["line_quantity"] == "2.00"

    def test_allocating_everything_keeps_a_zero_remainder(self, make_line, allocate, refs, group_rows):
        line = make_line("2", "150.00")

        resp = allocate(line["id"], refs.r1, [MON, TUE])

        assert resp.status_code == 201
        remainder = resp.get_json()["data"]["remainder"]
        assert remainder["line_quantity"] == "0.00"
        assert remainder["amount"] == "0.00"
        assert remainder["role"] == "remainder"
        assert len(group_rows(line["group_id"])) == 2

    def test_booking_mirrors_the_allocation(self, app, make_line, allocate, refs):
        from planboard.app.extensions import db
        from planboard.app.models.booking import Booking

        line = make_line("5", "500.00")
        row = allocate(line["id"], refs.r2, [MON, TUE, WED]).get_json()["data"]["allocations"][0]

        with app.app_context():
            booking = db.session.get(Booking, row["booking_id"])
            assert booking.consultant_id == refs.r2
            assert booking.kind == "booking"
            assert booking.title == "C-0042 • Acme - Website relaunch - Senior consulting"
            assert booking.notes == f"Project line: {row['id']}\nPlanned quantity: 3"
            assert booking.start_date.isoformat() == MON
            assert booking.end_date.isoformat() == WED

    def test_second_allocation_prorates_from_current_remainder(self, make_line, allocate, refs):
        line = make_line("5", "500.00")
        allocate(line["id"], refs.r1, [MON, TUE, WED])

        resp = allocate(line["id"], refs.r2, [THU])

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["allocations"][0]["amount"] == "100.00"
        assert data["remainder"]["line_quantity"] == "1.00"
        assert data["remainder"]["amount"] == "100.00"


# ═══════════════════════════════════════════════════════════════════════════
# POST /project-lines/:id/allocations: rejections
# ═══════════════════════════════════════════════════════════════════════════

class TestAllocateRejections:

    def test_more_days_than_remaining_is_rejected_and_writes_nothing(
            self, make_line, allocate, refs, group_rows,
    ):
        line = make_line("5", "500.00")
        days = ["2024-03-04", "2024-03-05", "2024-03-06", "2024-03-07", "2024-03-08", "2024-03-11"]

        resp = allocate(line["id"], refs.r1, days)

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "SELECTION_EXCEEDS_REMAINDER"
        rows = group_rows(line["group_id"])
        assert len(rows) == 1
        assert Decimal(rows[0].line_quantity) == Decimal("5")
        assert Decimal(rows[0].amount) == Decimal("500.00")

    def test_exhausted_remainder_is_rejected(self, make_line, allocate, refs):
        line = make_line("1", "100.00")
        allocate(line["id"], refs.r1, [MON])

        resp = allocate(line["id"], refs.r1, [TUE])

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "REMAINDER_EXHAUSTED"

    def test_empty_selection_is_rejected(self, make_line, allocate, refs):
        line = make_line()

        resp = allocate(line["id"], refs.r1, [])

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "EMPTY_DAY_SELECTION"

    def test_allocating_from_an_allocation_is_a_conflict(self, make_line, allocate, refs):
        line = make_line()
        row = allocate(line["id"], refs.r1, [MON]).get_json()["data"]["allocations"][0]

        resp = allocate(row["id"], refs.r1, [TUE])

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "NOT_A_REMAINDER"

    def test_unknown_consultant_returns_404(self, make_line, allocate, group_rows):
        line = make_line()

        resp = allocate(line["id"], 99999, [MON])

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "CONSULTANT_NOT_FOUND"
        assert len(group_rows(line["group_id"])) == 1

    def test_unknown_line_returns_404(self, allocate, refs):
        resp = allocate(99999, refs.r1, [MON])
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "LINE_NOT_FOUND"

    def test_malformed_day_is_a_400(self, make_line, allocate, refs):
        line = make_line()

        resp = allocate(line["id"], refs.r1, ["2024-13-01"])

        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_FIELD"
        assert error["field"] == "days"


# ═══════════════════════════════════════════════════════════════════════════
# All-or-nothing
# ═══════════════════════════════════════════════════════════════════════════

class TestAllocateIsAtomic:

    def test_failed_second_booking_rolls_back_whole_allocation(
            self, app, monkeypatch, make_line, allocate, group_rows, refs,
    ):
        from sqlalchemy import func, select

        from planboard.app.extensions import db
        from planboard.app.models.booking import Booking
        from planboard.app.services import allocation_service

        real_sync = allocation_service.sync_line_booking
        calls = []

        def sync_failing_on_second_range(row, session, **kwargs):
            calls.append(row)
            if len(calls) == 2:
                raise RuntimeError("calendar unavailable")
            return real_sync(row, session, **kwargs)

        monkeypatch.setattr(allocation_service, "sync_line_booking", sync_failing_on_second_range)
        line = make_line("5", "500.00")

        # MON and WED are two ranges, so two bookings are synced.
        resp = allocate(line["id"], refs.r1, [MON, WED])

        assert resp.status_code == 500
        assert resp.get_json()["error"]["code"] == "INTERNAL_ERROR"
        assert len(calls) == 2

        rows = group_rows(line["group_id"])
        assert [(r.id, Decimal(r.line_quantity), Decimal(r.amount), r.booking_id) for r in rows] == [
            (line["id"], Decimal("5.00"), Decimal("500.00"), None),
        ]
        with app.app_context():
            assert db.session.scalar(select(func.count()).select_from(Booking)) == 0
