"""
Shared pytest fixtures for the practice workflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - staff / client_record: a small firm directory
    - actors: Actor values matching the directory rows
    - make_service: factory for services at an arbitrary status

Factories commit rather than flush: a failing transition rolls the session
back, and flushed-only fixture rows would vanish with it.
"""

import pytest

from practiceflow import create_app
from practiceflow.core.actor import SYSTEM_ACTOR, Actor
from practiceflow.models import db as _db
from practiceflow.models.directory import (
    ROLE_ADMIN,
    ROLE_CLIENT,
    ROLE_PROJECT_MANAGER,
    ROLE_SUPER_ADMIN,
    ROLE_TEAM_MEMBER,
    Client,
    StaffMember,
)
from practiceflow.models.service import (
    ASSIGNMENT_ACTIVE,
    ASSIGNMENT_INITIAL,
    Service,
    ServiceAssignment,
)
from practiceflow.models.status_history import write_status_history


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Directory ────────────────────────────────────────────────────────────


@pytest.fixture()
def staff():
    """One staff member per role, plus a second PM and TM and an inactive TM."""
    members = {
        "super_admin": StaffMember(id="sa-1", name="Sanjay Admin", role=ROLE_SUPER_ADMIN),
        "admin": StaffMember(id="ad-1", name="Anita Admin", role=ROLE_ADMIN),
        "pm": StaffMember(id="pm-1", name="Priya PM", role=ROLE_PROJECT_MANAGER),
        "pm2": StaffMember(id="pm-2", name="Rohit PM", role=ROLE_PROJECT_MANAGER),
        "tm": StaffMember(id="tm-1", name="Tara TM", role=ROLE_TEAM_MEMBER),
        "tm2": StaffMember(id="tm-2", name="Vikram TM", role=ROLE_TEAM_MEMBER),
        "tm_inactive": StaffMember(id="tm-9", name="Former TM", role=ROLE_TEAM_MEMBER, is_active=False),
    }
    _db.session.add_all(members.values())
    _db.session.commit()
    return members


@pytest.fixture()
def client_record(staff):
    """A client managed by pm-1."""
    c = Client(id="cl-1", name="Mehta Traders", email="accounts@mehta.example",
               managed_by_id=staff["pm"].id)
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def other_client(staff):
    """A client managed by pm-2."""
    c = Client(id="cl-2", name="Kapoor & Sons", managed_by_id=staff["pm2"].id)
    _db.session.add(c)
    _db.session.commit()
    return c


def _actor(member) -> Actor:
    return Actor(id=member.id, name=member.name, role=member.role)


@pytest.fixture()
def actors(staff, client_record):
    """Actor values keyed like ``staff`` plus ``client`` and ``system``."""
    result = {key: _actor(member) for key, member in staff.items()}
    result["client"] = Actor(id=client_record.id, name=client_record.name, role=ROLE_CLIENT)
    result["system"] = SYSTEM_ACTOR
    return result


# ── Services ─────────────────────────────────────────────────────────────


@pytest.fixture()
def make_service(client_record):
    """
    Factory: create a service directly at ``status`` (bypasses the engine).

    ``assignee`` is a StaffMember; when given an ACTIVE INITIAL assignment
    row is created too.  A CREATE history entry is always written.
    """

    def _make(status="PENDING", assignee=None, title="ITR Filing FY 2024-25",
              service_type="ITR_FILING", client=None):
        owner = client or client_record
        svc = Service(
            client_id=owner.id,
            project_manager_id=owner.managed_by_id,
            service_type=service_type,
            title=title,
            status=status,
            created_by_id="pm-1",
            created_by_name="Priya PM",
            created_by_role=ROLE_PROJECT_MANAGER,
        )
        if assignee is not None:
            svc.current_assignee_id = assignee.id
            svc.current_assignee_type = assignee.role
            svc.current_assignee_name = assignee.name
        _db.session.add(svc)
        _db.session.flush()
        write_status_history(
            service_id=svc.id, from_status=None, to_status=status, action="CREATE",
            changed_by_id="pm-1", changed_by_name="Priya PM",
            changed_by_role=ROLE_PROJECT_MANAGER, notes="Service created",
        )
        if assignee is not None:
            _db.session.add(ServiceAssignment(
                service_id=svc.id,
                assignee_id=assignee.id,
                assignee_type=assignee.role,
                assignee_name=assignee.name,
                assigned_by_id="pm-1",
                assigned_by_name="Priya PM",
                assigned_by_role=ROLE_PROJECT_MANAGER,
                assignment_type=ASSIGNMENT_INITIAL,
                status=ASSIGNMENT_ACTIVE,
            ))
        _db.session.commit()
        return svc

    return _make


# ── HTTP helpers ─────────────────────────────────────────────────────────


def headers_for(actor: Actor) -> dict:
    """Auth-gateway headers for ``actor``."""
    h = {"X-User-Id": actor.id, "X-User-Role": actor.role}
    if actor.name:
        h["X-User-Name"] = actor.name
    return h


@pytest.fixture()
def auth_headers(actors):
    """``auth_headers("pm")`` → headers for the pm-1 actor."""

    def _headers(key):
        return headers_for(actors[key])

    return _headers
