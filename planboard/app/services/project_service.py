"""
services/project_service.py — Project management.

Operations:
  create_project  — new project for an existing client
  list_projects   — every project, newest first
  get_project     — one project
  update_project  — partial update of any project field
  delete_project  — refused while the project still has lines

Reference checks:
  client_id           → CLIENT_NOT_FOUND (404)
  client_contact_id   → CLIENT_CONTACT_NOT_FOUND (404); must belong to the
                        project's client, else CONTACT_CLIENT_MISMATCH (422)
  project_manager_id  → CONSULTANT_NOT_FOUND (404)

Layer rules:
  - No Flask imports. Receives plain values and a Session.
  - Only flush. The caller's unit_of_work commits or rolls back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from planboard.app.errors import (
    ErrorCode,
    InvalidRequestError,
    NotFoundError,
    StateConflictError,
)
from planboard.app.models.client import Client
from planboard.app.models.client_contact import ClientContact
from planboard.app.models.project import Project
from planboard.app.models.project_line import ProjectLine
from planboard.app.services.line_group import get_consultant_or_404

logger = logging.getLogger(__name__)

_TRIMMED_FIELDS = ("name", "commercial_name", "sales_type")


# ── Lookups ────────────────────────────────────────────────────────────────

def get_project_or_404(project_id: int, session: Session) -> Project:
    """Returns the Project or raises PROJECT_NOT_FOUND (404)."""
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(
            ErrorCode.PROJECT_NOT_FOUND,
            f"Project {project_id} does not exist.",
        )
    return project


def _get_client_or_404(client_id: int, session: Session) -> Client:
    client = session.get(Client, client_id)
    if client is None:
        raise NotFoundError(
            ErrorCode.CLIENT_NOT_FOUND,
            f"Client {client_id} does not exist.",
        )
    return client


def _check_contact(contact_id: int | None, client_id: int, session: Session) -> None:
    """The contact, when given, must exist and work for `client_id`."""
    if contact_id is None:
        return
    contact = session.get(ClientContact, contact_id)
    if contact is None:
        raise NotFoundError(
            ErrorCode.CLIENT_CONTACT_NOT_FOUND,
            f"Client contact {contact_id} does not exist.",
        )
    if contact.client_id != client_id:
        raise InvalidRequestError(
            ErrorCode.CONTACT_CLIENT_MISMATCH,
            f"Client contact {contact_id} belongs to client {contact.client_id}, "
            f"not to client {client_id}.",
            field="client_contact_id",
        )


def _clean(data: dict) -> dict:
    return {
        key: value.strip() if key in _TRIMMED_FIELDS else value
        for key, value in data.items()
    }


# ── Public service functions ───────────────────────────────────────────────

def create_project(data: dict, session: Session) -> Project:
    """
    Creates a project.

    Args:
        data: Validated dict from CreateProjectSchema.
    """
    data = _clean(data)
    _get_client_or_404(data["client_id"], session)
    _check_contact(data["client_contact_id"], data["client_id"], session)
    if data["project_manager_id"] is not None:
        get_consultant_or_404(data["project_manager_id"], session)

    project = Project(**data)
    session.add(project)
    session.flush()

    logger.info(
        "Created project %s %r for client %s (status %s)",
        project.id, project.name, project.client_id, project.status,
    )
    return project


def list_projects(session: Session) -> list[Project]:
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    return list(session.execute(stmt).scalars().all())


def get_project(project_id: int, session: Session) -> Project:
    return get_project_or_404(project_id, session)


def update_project(project_id: int, data: dict, session: Session) -> Project:
    """
    Applies a partial update.

    The contact is re-checked against the resulting client whenever either
    of them changes, so moving a project to another client without also
    changing (or clearing) its contact is rejected.
    """
    project = get_project_or_404(project_id, session)
    data = _clean(data)

    client_id = data.get("client_id", project.client_id)
    contact_id = data.get("client_contact_id", project.client_contact_id)

    if "client_id" in data:
        _get_client_or_404(client_id, session)
    if "client_id" in data or "client_contact_id" in data:
        _check_contact(contact_id, client_id, session)
    if data.get("project_manager_id") is not None:
        get_consultant_or_404(data["project_manager_id"], session)

    for field, value in data.items():
        setattr(project, field, value)
    project.updated_at = datetime.now(timezone.utc)
    session.flush()

    logger.info("Updated project %s (%s)", project.id, ", ".join(sorted(data)))
    return project


def delete_project(project_id: int, session: Session) -> dict:
    """
    Deletes a project that has no lines left.

    Lines carry bookings and conserved totals, so they must be removed
    through the line endpoints first; otherwise PROJECT_HAS_LINES (409).
    """
    project = get_project_or_404(project_id, session)

    line_count = session.scalar(
        select(func.count())
        .select_from(ProjectLine)
        .where(ProjectLine.project_id == project_id)
    )
    if line_count:
        raise StateConflictError(
            ErrorCode.PROJECT_HAS_LINES,
            f"Project {project_id} still has {line_count} line(s); delete them first.",
        )

    session.delete(project)
    session.flush()

    logger.info("Deleted project %s", project_id)
    return {"deleted_project_id": project_id}
