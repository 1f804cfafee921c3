"""
Shared pytest fixtures for the demand engine test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context + table recreation (autouse)
    - client: Flask test client
    - organization / unit / applicant: one clinic to work in
    - make_member: factory for users + members with a given role
    - staff: one member per role (ADMIN, MANAGER, CLERK, ANALYST, BILLING)
    - actor_of: builds the Actor a member acts as inside the clinic unit
"""

import pytest

from demandflow import create_app
from demandflow.models import db as _db
from demandflow.models.demand import Demand
from demandflow.models.enums import DemandCategory, DemandPriority, DemandStatus, Role
from demandflow.models.organization import Applicant, Member, Organization, Unit, User
from demandflow.services.actor import resolve_actor


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


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def organization():
    org = Organization(name="Clínica Teste", slug="clinica-teste")
    _db.session.add(org)
    _db.session.commit()
    return org


@pytest.fixture()
def unit(organization):
    u = Unit(organization_id=organization.id, name="Centro", slug="centro")
    _db.session.add(u)
    _db.session.commit()
    return u


@pytest.fixture()
def applicant(organization):
    a = Applicant(organization_id=organization.id, name="Maria Souza", email="maria@example.com")
    _db.session.add(a)
    _db.session.commit()
    return a


@pytest.fixture()
def make_member(organization, unit):
    """Factory: ``make_member(Role.ANALYST, working_days=[...], job_title=...)``."""
    counter = {"n": 0}

    def _make(role, *, working_days=None, job_title=None, name=None, unit_role=None, unit_id="default"):
        counter["n"] += 1
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=f"{role.value.lower()}{counter['n']}@clinic.test",
        )
        _db.session.add(user)
        _db.session.flush()
        member = Member(
            user_id=user.id,
            organization_id=organization.id,
            unit_id=unit.id if unit_id == "default" else unit_id,
            organization_role=role.value,
            unit_role=unit_role.value if unit_role else None,
            job_title=job_title,
            working_days=working_days,
        )
        _db.session.add(member)
        _db.session.commit()
        return member

    return _make


@pytest.fixture()
def staff(make_member):
    """One member per role, keyed by ``Role``."""
    return {
        Role.ADMIN: make_member(Role.ADMIN, name="Ana Admin"),
        Role.MANAGER: make_member(Role.MANAGER, name="Marcos Manager"),
        Role.CLERK: make_member(Role.CLERK, name="Clara Clerk"),
        Role.ANALYST: make_member(Role.ANALYST, name="Paula Psicóloga",
                                  job_title=DemandCategory.PSYCHOLOGIST.value),
        Role.BILLING: make_member(Role.BILLING, name="Bia Billing"),
    }


@pytest.fixture()
def actor_of(unit):
    def _actor(member):
        return resolve_actor(member.user_id, unit.id)
    return _actor


@pytest.fixture()
def make_demand(unit, applicant, staff):
    """Insert a demand directly, bypassing the lifecycle service."""

    def _make(status=DemandStatus.PENDING, responsible=None, scheduled_date=None,
              scheduled_time=None, title="Consulta inicial"):
        demand = Demand(
            title=title,
            description="Primeira avaliação do paciente.",
            status=DemandStatus(status).value,
            priority=DemandPriority.MEDIUM.value,
            category=DemandCategory.PSYCHOLOGIST.value,
            unit_id=unit.id,
            applicant_id=applicant.id,
            owner_id=staff[Role.CLERK].user_id,
            created_by_member_name="Clara Clerk",
            responsible_id=responsible.id if responsible else None,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
        )
        _db.session.add(demand)
        _db.session.commit()
        return demand

    return _make


@pytest.fixture()
def headers():
    """``headers(member)`` → X-User-Id header dict for the test client."""

    def _headers(member_or_user_id):
        user_id = getattr(member_or_user_id, "user_id", member_or_user_id)
        return {"X-User-Id": str(user_id)}

    return _headers
