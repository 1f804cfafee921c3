"""
Demand Lifecycle & Scheduling Engine
Organization domain models.

Models:
    - Organization: top-level tenant (e.g. a clinic network)
    - Unit: one site inside an organization; demands live here
    - User: an authenticated person
    - Member: a user's role-bound identity inside an organization/unit pair
    - Applicant: the person a demand is opened for
"""

from datetime import datetime, timezone

from demandflow.models import db
from demandflow.models.enums import Role, Weekday


def _utcnow():
    return datetime.now(timezone.utc)


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    units = db.relationship("Unit", back_populates="organization", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name, "slug": self.slug}

    def __repr__(self):
        return f"<Organization {self.id}: {self.slug}>"


class Unit(db.Model):
    __tablename__ = "units"
    __table_args__ = (
        db.UniqueConstraint("organization_id", "slug", name="uq_units_org_slug"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    organization = db.relationship("Organization", back_populates="units")

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "slug": self.slug,
        }

    def __repr__(self):
        return f"<Unit {self.id}: {self.slug}>"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


class Member(db.Model):
    """
    A user's role inside one organization, optionally narrowed to one unit.

    ``unit_role`` overrides ``organization_role`` for unit-scoped checks.
    ``working_days`` is a JSON list of ``Weekday`` tokens; empty or NULL
    means the member can be booked every day.
    """

    __tablename__ = "members"
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "organization_id", "unit_id",
            name="uq_members_user_org_unit",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit_id = db.Column(
        db.Integer,
        db.ForeignKey("units.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="NULL = organization-wide membership",
    )
    organization_role = db.Column(db.String(20), nullable=False, default=Role.CLERK.value)
    unit_role = db.Column(db.String(20), nullable=True)
    job_title = db.Column(
        db.String(60), nullable=True,
        comment="DemandCategory the member attends (PSYCHOLOGIST, NUTRITIONIST, ...)",
    )
    working_days = db.Column(db.JSON, nullable=True, default=list)

    user = db.relationship("User")
    unit = db.relationship("Unit")

    @property
    def effective_role(self) -> Role:
        return Role(self.unit_role or self.organization_role)

    @property
    def working_day_set(self) -> frozenset[Weekday]:
        return frozenset(Weekday(d) for d in (self.working_days or []))

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "user_email": self.user.email if self.user else None,
            "organization_id": self.organization_id,
            "unit_id": self.unit_id,
            "organization_role": self.organization_role,
            "unit_role": self.unit_role,
            "role": self.effective_role.value,
            "job_title": self.job_title,
            "working_days": list(self.working_days or []),
        }

    def __repr__(self):
        return f"<Member {self.id}: user={self.user_id} unit={self.unit_id} role={self.effective_role}>"


class Applicant(db.Model):
    __tablename__ = "applicants"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "email": self.email,
        }

    def __repr__(self):
        return f"<Applicant {self.id}: {self.name}>"
