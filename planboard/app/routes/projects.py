"""
routes/projects.py — Project route handlers.

Layer rules:
  - Parse, validate, open a unit of work, call ONE service, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/projects):
  POST   /projects        → 201  create project
  GET    /projects        → 200  list projects, newest first
  GET    /projects/:id    → 200  one project
  PATCH  /projects/:id    → 200  partial update
  DELETE /projects/:id    → 200  delete (refused while lines exist)

The project's lines live under /projects/:id/lines in project_lines.py.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from planboard.app.extensions import db
from planboard.app.middleware.auth_middleware import require_auth
from planboard.app.models.project import Project
from planboard.app.schemas.project_schema import CreateProjectSchema, UpdateProjectSchema
from planboard.app.services import project_service
from planboard.app.services.unit_of_work import unit_of_work

projects_bp = Blueprint("projects", __name__)


def _serialize_project(project: Project) -> dict:
    """Project fields plus the display names of the rows it references."""
    client = project.client
    contact = project.client_contact
    manager = project.project_manager
    return {
        "id": project.id,
        "name": project.name,
        "client_id": project.client_id,
        "client_number": client.client_number if client is not None else "",
        "client_name": client.name if client is not None else "",
        "client_contact_id": project.client_contact_id,
        "client_contact_name": contact.name if contact is not None else None,
        "client_contact_email": contact.email if contact is not None else None,
        "client_contact_phone": contact.phone if contact is not None else None,
        "commercial_name": project.commercial_name,
        "project_manager_id": project.project_manager_id,
        "project_manager_name": manager.name if manager is not None else None,
        "order_date": project.order_date.isoformat() if project.order_date else None,
        "sales_type": project.sales_type,
        "status": project.status,
        "notes": project.notes,
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
    }


@projects_bp.route("", methods=["POST"])
@require_auth
def create_project():
    """POST /projects — Create a project for an existing client."""
    data = CreateProjectSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        project = project_service.create_project(data=data, session=session)
        payload = _serialize_project(project)
    return jsonify({"data": payload, "warnings": []}), 201


@projects_bp.route("", methods=["GET"])
@require_auth
def list_projects():
    """GET /projects — Every project, newest first."""
    projects = project_service.list_projects(session=db.session)
    return jsonify({"data": [_serialize_project(p) for p in projects], "warnings": []}), 200


@projects_bp.route("/<int:project_id>", methods=["GET"])
@require_auth
def get_project(project_id: int):
    """GET /projects/:id — One project."""
    project = project_service.get_project(project_id=project_id, session=db.session)
    return jsonify({"data": _serialize_project(project), "warnings": []}), 200


@projects_bp.route("/<int:project_id>", methods=["PATCH"])
@require_auth
def update_project(project_id: int):
    """PATCH /projects/:id — Partial update; the contact must match the client."""
    data = UpdateProjectSchema().load(request.get_json(force=True) or {})
    with unit_of_work(db.session) as session:
        project = project_service.update_project(
            project_id=project_id,
            data=data,
            session=session,
        )
        payload = _serialize_project(project)
    return jsonify({"data": payload, "warnings": []}), 200


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
@require_auth
def delete_project(project_id: int):
    """DELETE /projects/:id — Only a project without lines can be deleted."""
    with unit_of_work(db.session) as session:
        result = project_service.delete_project(project_id=project_id, session=session)
    return jsonify({"data": {"deleted": True, **result}, "warnings": []}), 200
