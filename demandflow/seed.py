"""
Demo data for local development (``flask seed-demo``).

Creates one organization with one unit, a member for every role, an
applicant and one pending demand. Idempotent on the organization slug.
"""

import logging

from demandflow.models import db
from demandflow.models.demand import Demand
from demandflow.models.enums import DemandCategory, DemandPriority, DemandStatus, Role, Weekday
from demandflow.models.organization import Applicant, Member, Organization, Unit, User

logger = logging.getLogger(__name__)

DEMO_SLUG = "clinica-demo"

_DEMO_STAFF = [
    ("Ana Admin", "admin@clinica.demo", Role.ADMIN, None, None),
    ("Marcos Manager", "manager@clinica.demo", Role.MANAGER, None, None),
    ("Clara Clerk", "clerk@clinica.demo", Role.CLERK, None, None),
    ("Paula Psychologist", "psy@clinica.demo", Role.ANALYST, DemandCategory.PSYCHOLOGIST,
     [Weekday.SEGUNDA, Weekday.QUARTA, Weekday.SEXTA]),
    ("Nuno Nutritionist", "nutri@clinica.demo", Role.ANALYST, DemandCategory.NUTRITIONIST, []),
    ("Bia Billing", "billing@clinica.demo", Role.BILLING, None, None),
]


def seed_demo() -> dict:
    """Insert demo rows (flush only) and return a summary of ids."""
    org = Organization.query.filter_by(slug=DEMO_SLUG).first()
    if org is not None:
        logger.info("Demo organization already present (id=%s)", org.id)
        return {"organization_id": org.id, "created": False}

    org = Organization(name="Clínica Demo", slug=DEMO_SLUG)
    db.session.add(org)
    db.session.flush()
    unit = Unit(organization_id=org.id, name="Unidade Centro", slug="centro")
    db.session.add(unit)
    db.session.flush()

    members = {}
    for name, email, role, job_title, working_days in _DEMO_STAFF:
        user = User(name=name, email=email)
        db.session.add(user)
        db.session.flush()
        member = Member(
            user_id=user.id,
            organization_id=org.id,
            unit_id=unit.id,
            organization_role=role.value,
            job_title=job_title.value if job_title else None,
            working_days=[d.value for d in working_days] if working_days is not None else None,
        )
        db.session.add(member)
        db.session.flush()
        members[email] = member

    applicant = Applicant(organization_id=org.id, name="João da Silva", email="joao@example.com")
    db.session.add(applicant)
    db.session.flush()

    db.session.add(Demand(
        title="Avaliação psicológica inicial",
        description="Primeira consulta de avaliação para o paciente.",
        status=DemandStatus.PENDING.value,
        priority=DemandPriority.MEDIUM.value,
        category=DemandCategory.PSYCHOLOGIST.value,
        unit_id=unit.id,
        applicant_id=applicant.id,
        owner_id=members["clerk@clinica.demo"].user_id,
        created_by_member_name="Clara Clerk",
    ))
    db.session.flush()

    return {
        "organization_id": org.id,
        "unit_id": unit.id,
        "applicant_id": applicant.id,
        "members": {email: m.id for email, m in members.items()},
        "created": True,
    }
