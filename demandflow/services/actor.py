"""
Actor resolution — who is acting, in which role, for which unit.

Authentication is external: the boundary layer hands us a user id and we
look up that user's membership for the target unit. A unit-scoped
membership row wins over an organization-wide one.
"""

import logging
from dataclasses import dataclass

from demandflow.core.exceptions import ForbiddenError, NotFoundError
from demandflow.models import db
from demandflow.models.enums import Role
from demandflow.models.organization import Member, Unit, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Snapshot of the requester used by every lifecycle operation."""

    user_id: int
    member_id: int | None
    role: Role
    name: str
    organization_id: int
    unit_id: int | None = None

    @property
    def is_analyst(self) -> bool:
        return self.role == Role.ANALYST


def membership_for_unit(user_id: int, unit: Unit) -> Member | None:
    """Return the member row that governs ``user_id`` inside ``unit``."""
    rows = (
        Member.query
        .filter(
            Member.user_id == user_id,
            Member.organization_id == unit.organization_id,
            db.or_(Member.unit_id == unit.id, Member.unit_id.is_(None)),
        )
        .all()
    )
    unit_scoped = [m for m in rows if m.unit_id == unit.id]
    if unit_scoped:
        return unit_scoped[0]
    return rows[0] if rows else None


def in_organization(user_id: int, organization_id: int) -> bool:
    return db.session.query(
        Member.query.filter_by(user_id=user_id, organization_id=organization_id).exists()
    ).scalar()


def resolve_actor(user_id: int, unit_id: int) -> Actor:
    """Build the ``Actor`` for ``user_id`` acting inside ``unit_id``.

    Raises:
        NotFoundError: unknown unit or user, or a unit of an organization
            the user does not belong to.
        ForbiddenError: the user belongs to the organization but no
            membership covers the unit.
    """
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError(resource="Unit", resource_id=unit_id)
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)

    member = membership_for_unit(user_id, unit)
    if member is None:
        if not in_organization(user_id, unit.organization_id):
            raise NotFoundError(resource="Unit", resource_id=unit_id)
        logger.warning(
            "User %s has no membership for unit %s", user_id, unit_id,
            extra={"user_id": user_id, "unit_id": unit_id},
        )
        raise ForbiddenError(f"User {user_id} is not a member of unit {unit_id}")

    return Actor(
        user_id=user.id,
        member_id=member.id,
        role=member.effective_role,
        name=user.name,
        organization_id=unit.organization_id,
        unit_id=unit.id,
    )


def resolve_org_actor(user_id: int, organization_id: int) -> Actor:
    """Build the ``Actor`` from the user's organization-wide membership."""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    member = Member.query.filter_by(
        user_id=user_id, organization_id=organization_id, unit_id=None,
    ).first()
    if member is None:
        if not in_organization(user_id, organization_id):
            raise NotFoundError(resource="Organization", resource_id=organization_id)
        raise ForbiddenError(f"User {user_id} is not a member of organization {organization_id}")
    return Actor(
        user_id=user.id,
        member_id=member.id,
        role=member.effective_role,
        name=user.name,
        organization_id=organization_id,
    )


def actor_for_member(user_id: int, member: Member) -> Actor:
    """Actor governing operations on ``member`` (its unit, else its organization)."""
    if member.unit_id is not None:
        return resolve_actor(user_id, member.unit_id)
    return resolve_org_actor(user_id, member.organization_id)
