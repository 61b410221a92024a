"""
routes/project_lines.py — Project line route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns the
project-scoped paths (/projects/:id/lines), the line-ID paths
(/project-lines/:id) and the group health path (/line-groups/:gid).

Layer rules:
  - Parse, validate, open a unit of work, call ONE service, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - _serialize_line() is a pure data-shape helper.

Endpoints:
  POST   /projects/:id/lines                → 201  enter a sold line (new group)
  GET    /projects/:id/lines                → 200  rows + per-group summaries
  GET    /project-lines/:id                 → 200  one row
  PATCH  /project-lines/:id                 → 200  re-plan an allocation
  DELETE /project-lines/:id                 → 200  delete allocation or whole group
  POST   /project-lines/:id/allocations     → 201  allocate days from the remainder
  POST   /project-lines/:id/remainder       → 201  split a remainder off a planned row
  POST   /project-lines/:id/booking         → 200  re-sync the row's booking
  GET    /line-groups/:gid/health           → 200  invariant report
"""

from __future__ import annotations

from decimal import Decimal

from flask import Blueprint, current_app, jsonify, request

from planboard.app.extensions import db
from planboard.app.middleware.auth_middleware import require_auth
from planboard.app.models.booking import Booking
from planboard.app.models.project_line import ProjectLine
from planboard.app.schemas.project_line_schema import (
    AllocateDaysSchema,
    CreateProjectLineSchema,
    PatchProjectLineSchema,
)
from planboard.app.services import (
    allocation_service,
    booking_service,
    project_line_service,
)
from planboard.app.services.line_group import line_role, role_name
from planboard.app.services.proration import round2
from planboard.app.services.unit_of_work import unit_of_work

project_lines_bp = Blueprint("project_lines", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────
# Pure data-shaping; display names come through the line's relationships.
# Quantities and amounts go out as 2-dp strings whether the value was just
# set or reloaded.

def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _decimal_str(value) -> str:
    return str(round2(Decimal(value or 0)))


def _serialize_line(line: ProjectLine) -> dict:
    """
    Converts a ProjectLine ORM object to a plain dict for JSON output, with the
    article and consultant names the planning board displays.
    """
    article = line.article
    consultant = line.consultant
    return {
        "id": line.id,
        "group_id": line.group_id,
        "project_id": line.project_id,
        "article_id": line.article_id,
        "article_name": article.name if article is not None else "",
        "article_service": article.service if article is not None else "",
        "role": role_name(line_role(line)),
        "sold_total": _decimal_str(line.sold_total),
        "sold_amount": _decimal_str(line.sold_amount),
        "line_quantity": _decimal_str(line.line_quantity),
        "amount": _decimal_str(line.amount),
        "consultant_id": line.consultant_id,
        "consultant_name": consultant.name if consultant is not None else None,
        "planned_start": _iso(line.planned_start),
        "planned_end": _iso(line.planned_end),
        "planned_quantity": _decimal_str(line.planned_quantity),
        "realized_quantity": _decimal_str(line.realized_quantity),
        "booking_id": line.booking_id,
        "created_at": _iso(line.created_at),
        "updated_at": _iso(line.updated_at),
    }


def _serialize_booking(booking: Booking | None) -> dict | None:
    if booking is None:
        return None
    return {
        "id": booking.id,
        "consultant_id": booking.consultant_id,
        "kind": booking.kind,
        "title": booking.title,
        "notes": booking.notes,
        "start_date": _iso(booking.start_date),
        "end_date": _iso(booking.end_date),
    }


def _booking_kind() -> str:
    return current_app.config.get("BOOKING_KIND", booking_service.DEFAULT_BOOKING_KIND)


# ── Project-scoped routes ──────────────────────────────────────────────────

@project_lines_bp.route("/projects/<int:project_id>/lines", methods=["POST"])
@require_auth
def create_project_line(project_id: int):
    """POST /projects/:id/lines — Enter a sold line; creates its remainder row."""
    data = CreateProjectLineSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        line = project_line_service.create_project_line(
            project_id=project_id,
            data=data,
            session=session,
        )
        payload = _serialize_line(line)
    return jsonify({"data": payload, "warnings": []}), 201


@project_lines_bp.route("/projects/<int:project_id>/lines", methods=["GET"])
@require_auth
def list_project_lines(project_id: int):
    """GET /projects/:id/lines — Every row of the project plus group summaries."""
    result = project_line_service.list_project_lines(
        project_id=project_id,
        session=db.session,
    )
    return jsonify({
        "data": {
            "lines": [_serialize_line(line) for line in result["lines"]],
            "groups": result["groups"],
        },
        "warnings": [],
    }), 200


# ── Line-ID routes ─────────────────────────────────────────────────────────

@project_lines_bp.route("/project-lines/<int:line_id>", methods=["GET"])
@require_auth
def get_project_line(line_id: int):
    """GET /project-lines/:id — One row with its derived role."""
    line = project_line_service.get_project_line(line_id=line_id, session=db.session)
    return jsonify({"data": _serialize_line(line), "warnings": []}), 200


@project_lines_bp.route("/project-lines/<int:line_id>", methods=["PATCH"])
@require_auth
def update_project_line(line_id: int):
    """PATCH /project-lines/:id — Re-plan an allocation; its booking follows."""
    data = PatchProjectLineSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        line = project_line_service.update_project_line(
            line_id=line_id,
            data=data,
            session=session,
            booking_kind=_booking_kind(),
        )
        payload = _serialize_line(line)
    return jsonify({"data": payload, "warnings": []}), 200


@project_lines_bp.route("/project-lines/<int:line_id>", methods=["DELETE"])
@require_auth
def delete_project_line(line_id: int):
    """
    DELETE /project-lines/:id — Allocation: quantity goes back to the remainder.
    Remainder: the whole group and its bookings are removed.
    """
    with unit_of_work(db.session) as session:
        result = project_line_service.delete_project_line(line_id=line_id, session=session)
    return jsonify({"data": {"deleted": True, **result}, "warnings": []}), 200


@project_lines_bp.route("/project-lines/<int:line_id>/allocations", methods=["POST"])
@require_auth
def allocate(line_id: int):
    """POST /project-lines/:id/allocations — Plan days for a consultant from the remainder."""
    data = AllocateDaysSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        created = allocation_service.allocate(
            line_id=line_id,
            consultant_id=data["consultant_id"],
            days=data["days"],
            session=session,
            booking_kind=_booking_kind(),
        )
        remainder = project_line_service.get_project_line(line_id=line_id, session=session)
        payload = {
            "allocations": [_serialize_line(row) for row in created],
            "remainder": _serialize_line(remainder),
        }
    return jsonify({"data": payload, "warnings": []}), 201


@project_lines_bp.route("/project-lines/<int:line_id>/remainder", methods=["POST"])
@require_auth
def report_remainder(line_id: int):
    """POST /project-lines/:id/remainder — Repair: split the unplanned part into a remainder."""
    with unit_of_work(db.session) as session:
        remainder = allocation_service.report_remainder(
            line_id=line_id,
            session=session,
            booking_kind=_booking_kind(),
        )
        source = project_line_service.get_project_line(line_id=line_id, session=session)
        payload = {
            "line": _serialize_line(source),
            "remainder": _serialize_line(remainder),
        }
    return jsonify({"data": payload, "warnings": []}), 201


@project_lines_bp.route("/project-lines/<int:line_id>/booking", methods=["POST"])
@require_auth
def sync_booking(line_id: int):
    """POST /project-lines/:id/booking — Idempotent booking reconciliation."""
    with unit_of_work(db.session) as session:
        booking = booking_service.sync_booking(
            line_id=line_id,
            session=session,
            kind=_booking_kind(),
        )
        payload = {"line_id": line_id, "booking": _serialize_booking(booking)}
    return jsonify({"data": payload, "warnings": []}), 200


# ── Group routes ───────────────────────────────────────────────────────────

@project_lines_bp.route("/line-groups/<string:group_id>/health", methods=["GET"])
@require_auth
def group_health(group_id: str):
    """GET /line-groups/:gid/health — Invariant report; never repairs anything."""
    result = project_line_service.check_group(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200
