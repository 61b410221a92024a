"""
tests/integration/test_group_conservation.py — Group invariants under random use.

Drives a seeded random sequence of allocate / delete / re-plan / repair /
re-sync operations through the HTTP API against several groups and, after
every step, asserts:
  - sum(line_quantity) == sold_total and sum(amount) == sold_amount (± 0.01)
  - exactly one remainder per group
  - booking_id set iff the row is a complete allocation; no shared booking ids
Rejected operations must leave the group untouched.

The repair step first turns the group's remainder into a partially planned
row directly in the database (the shape legacy data arrives in), then asks
the API to split the remainder back out.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal

from planboard.app.extensions import db
from planboard.app.models.project_line import ProjectLine
from planboard.app.services.line_group import find_invariant_violations, is_remainder

_ORIGIN = date(2024, 5, 1)


def _assert_group_sound(rows: list, sold_total: Decimal, sold_amount: Decimal) -> None:
    assert find_invariant_violations(rows) == []
    assert sum(Decimal(r.line_quantity) for r in rows) == sold_total
    assert abs(sum(Decimal(r.amount) for r in rows) - sold_amount) <= Decimal("0.01")
    assert len([r for r in rows if is_remainder(r)]) == 1

    booking_ids = [r.booking_id for r in rows if r.booking_id is not None]
    assert len(booking_ids) == len(set(booking_ids))
    for row in rows:
        assert (row.booking_id is not None) == (not is_remainder(row))


def _plan_remainder_partially(app, line_id: int, consultant_id: int, planned: int) -> None:
    """Leaves the group without a remainder: its remainder row now plans `planned` days."""
    with app.app_context():
        row = db.session.get(ProjectLine, line_id)
        row.consultant_id = consultant_id
        row.planned_start = _ORIGIN + timedelta(days=40)
        row.planned_end = row.planned_start + timedelta(days=planned - 1)
        row.planned_quantity = Decimal(planned)
        db.session.commit()


def test_random_operation_sequences_preserve_invariants(
        app, client, headers, refs, make_line, allocate, group_rows,
):
    rng = random.Random(1234)
    groups = [
        make_line("10", "1000.00"),
        make_line("7", "100.00"),
        make_line("3", "0.99"),
        make_line("12", "250.00"),
    ]
    totals = {
        g["group_id"]: (Decimal(g["sold_total"]), Decimal(g["sold_amount"])) for g in groups
    }
    performed = set()

    for _ in range(120):
        group = rng.choice(groups)
        rows = group_rows(group["group_id"])
        remainder = next(r for r in rows if is_remainder(r))
        allocations = [r for r in rows if not is_remainder(r)]
        action = rng.choice(["allocate", "allocate", "delete", "sync", "replan", "repair"])

        if action == "allocate":
            picked = {
                (_ORIGIN + timedelta(days=rng.randint(0, 20))).isoformat()
                for _ in range(rng.randint(1, 4))
            }
            resp = allocate(remainder.id, rng.choice([refs.r1, refs.r2]), sorted(picked))
            assert resp.status_code in (201, 422), resp.get_json()
        elif action == "delete" and allocations:
            victim = rng.choice(allocations)
            resp = client.delete(f"/api/v1/project-lines/{victim.id}", headers=headers)
            assert resp.status_code == 200
        elif action == "replan" and allocations:
            victim = rng.choice(allocations)
            shift = timedelta(days=rng.randint(-3, 3))
            resp = client.patch(
                f"/api/v1/project-lines/{victim.id}",
                json={
                    "consultant_id": refs.r2 if victim.consultant_id == refs.r1 else refs.r1,
                    "planned_start": (victim.planned_start + shift).isoformat(),
                    "planned_end": (victim.planned_end + shift).isoformat(),
                },
                headers=headers,
            )
            assert resp.status_code == 200, resp.get_json()
        elif action == "repair" and Decimal(remainder.line_quantity) >= 2:
            planned = rng.randint(1, int(Decimal(remainder.line_quantity)) - 1)
            _plan_remainder_partially(app, remainder.id, rng.choice([refs.r1, refs.r2]), planned)
            resp = client.post(f"/api/v1/project-lines/{remainder.id}/remainder", headers=headers)
            assert resp.status_code == 201, resp.get_json()
            assert resp.get_json()["data"]["line"]["line_quantity"] == f"{planned}.00"
        elif action == "sync" and allocations:
            victim = rng.choice(allocations)
            resp = client.post(f"/api/v1/project-lines/{victim.id}/booking", headers=headers)
            assert resp.status_code == 200
        else:
            continue

        performed.add(action)
        sold_total, sold_amount = totals[group["group_id"]]
        _assert_group_sound(group_rows(group["group_id"]), sold_total, sold_amount)

    assert performed == {"allocate", "delete", "sync", "replan", "repair"}
