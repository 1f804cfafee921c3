"""
Visibility filter — ANALYST members only see demands assigned to them.

The same rule backs list queries (``scope_query``) and single fetches
(``ensure_visible``). A non-owning ANALYST fetching one demand gets
``ForbiddenError``, never ``NotFoundError``.
"""

import logging

from demandflow.core.exceptions import ForbiddenError
from demandflow.models.demand import Demand
from demandflow.models.enums import Role

logger = logging.getLogger(__name__)

# Roles restricted to their own assigned work
OWN_WORK_ONLY = frozenset({Role.ANALYST})


class VisibilityFilter:

    def __init__(self, restricted_roles=OWN_WORK_ONLY):
        self.restricted_roles = frozenset(restricted_roles)

    def is_restricted(self, role: Role) -> bool:
        return Role(role) in self.restricted_roles

    def scope_query(self, role: Role, member_id: int | None, base_query):
        """Narrow ``base_query`` (over ``Demand``) to what ``role`` may see."""
        if self.is_restricted(role):
            return base_query.filter(Demand.responsible_id == member_id)
        return base_query

    def ensure_visible(self, role: Role, member_id: int | None, demand: Demand) -> Demand:
        if self.is_restricted(role) and (member_id is None or demand.responsible_id != member_id):
            logger.warning(
                "Member %s (%s) denied access to demand %s", member_id, role, demand.id,
                extra={"member_id": member_id, "demand_id": demand.id},
            )
            raise ForbiddenError(
                f"Role {Role(role).value} can only access demands assigned to them",
                details={"demand_id": demand.id},
            )
        return demand


visibility_filter = VisibilityFilter()
