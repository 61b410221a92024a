"""
tests/integration/conftest.py — Fixtures for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig points at TEST_DATABASE_URL, in-memory SQLite by default;
    set it to a PostgreSQL URL to run the suite against the real engine.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
  - Access tokens are minted locally with the testing JWT secret, standing in
    for the external identity provider.

Fixtures are used (rather than importable helper functions) so test modules
never import from conftest.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest
from sqlalchemy import text

from planboard.app import create_app
from planboard.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in (
            "project_lines",
            "consultant_bookings",
            "projects",
            "client_contacts",
            "clients",
            "articles",
            "consultants",
        ):
            _db.session.execute(text(f"DELETE FROM {table}"))
        _db.session.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client / auth fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


@pytest.fixture
def make_token(app):
    """Returns a function that mints an HS256 access token for `sub`."""

    def _make_token(sub: str = "planner-1", expires_in: timedelta = timedelta(hours=1), **claims) -> str:
        payload = {
            "sub": sub,
            "iat": datetime.now(timezone.utc),
            "exp": datetime.now(timezone.utc) + expires_in,
            **claims,
        }
        return jwt.encode(payload, app.config["JWT_SECRET_KEY"], algorithm="HS256")

    return _make_token


@pytest.fixture
def headers(make_token) -> dict:
    """Authorization header for a valid planner token."""
    return {"Authorization": f"Bearer {make_token()}"}


# ═══════════════════════════════════════════════════════════════════════════
# Reference data and API helpers
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def refs(app) -> SimpleNamespace:
    """
    Seeds two clients with one contact each, a project for the first client,
    an article and two consultants. Returns their ids as a namespace:
    client_id, contact_id, other_client_id, other_contact_id, project_id,
    article_id, r1, r2.
    """
    from planboard.app.models.article import Article
    from planboard.app.models.client import Client
    from planboard.app.models.client_contact import ClientContact
    from planboard.app.models.consultant import Consultant
    from planboard.app.models.project import Project

    with app.app_context():
        acme = Client(client_number="C-0042", name="Acme")
        buyer = ClientContact(client=acme, name="Ada Buyer", email="ada@acme.test")
        globex = Client(client_number="C-0077", name="Globex")
        hank = ClientContact(client=globex, name="Hank Scorpio")
        project = Project(client=acme, name="Website relaunch")
        article = Article(name="Senior consulting", service="Consulting")
        r1 = Consultant(name="Rita One")
        r2 = Consultant(name="Rob Two")
        _db.session.add_all([acme, buyer, globex, hank, project, article, r1, r2])
        _db.session.commit()

        return SimpleNamespace(
            client_id=acme.id,
            contact_id=buyer.id,
            other_client_id=globex.id,
            other_contact_id=hank.id,
            project_id=project.id,
            article_id=article.id,
            r1=r1.id,
            r2=r2.id,
        )


@pytest.fixture
def make_line(client, headers, refs):
    """Returns a function that enters a sold line and returns its remainder row."""

    def _make_line(sold_quantity: str = "5", amount: str = "500.00") -> dict:
        resp = client.post(
            f"/api/v1/projects/{refs.project_id}/lines",
            json={"article_id": refs.article_id, "sold_quantity": sold_quantity, "amount": amount},
            headers=headers,
        )
        assert resp.status_code == 201, f"make_line failed: {resp.get_json()}"
        return resp.get_json()["data"]

    return _make_line


@pytest.fixture
def allocate(client, headers):
    """Returns a function that posts a day selection; returns the HTTP response."""

    def _allocate(line_id: int, consultant_id: int, days: list[str]):
        return client.post(
            f"/api/v1/project-lines/{line_id}/allocations",
            json={"consultant_id": consultant_id, "days": days},
            headers=headers,
        )

    return _allocate


@pytest.fixture
def group_rows(app):
    """Returns a function that loads every row of a group straight from the DB."""
    from planboard.app.services.line_group import get_group_lines

    def _group_rows(group_id: str) -> list:
        with app.app_context():
            rows = get_group_lines(group_id, _db.session)
            _db.session.expunge_all()
            return rows

    return _group_rows
