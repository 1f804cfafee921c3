"""
Audit blueprint — status-change history by actor.

Endpoints:
    GET /api/v1/audit/users/<user_id>?limit=   transitions performed by a user

Per-demand history lives on the demand blueprint, where visibility rules apply.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from demandflow.blueprints import current_user_id
from demandflow.core.exceptions import ForbiddenError
from demandflow.models.enums import Role
from demandflow.models.organization import Member
from demandflow.services.audit_trail import audit_trail
from demandflow.utils.helpers import parse_bounded_int

logger = logging.getLogger(__name__)

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1/audit")

_SUPERVISORS = (Role.ADMIN.value, Role.MANAGER.value)


def _supervises(requester_id: int, user_id: int) -> bool:
    """True if the requester is ADMIN/MANAGER in an organization the user belongs to."""
    target_orgs = {
        m.organization_id for m in Member.query.filter_by(user_id=user_id).all()
    }
    if not target_orgs:
        return False
    for m in Member.query.filter(
        Member.user_id == requester_id,
        Member.organization_id.in_(target_orgs),
    ).all():
        if (m.unit_role or m.organization_role) in _SUPERVISORS:
            return True
    return False


@audit_bp.route("/users/<int:user_id>", methods=["GET"])
def user_history(user_id):
    requester_id, err = current_user_id()
    if err:
        return err
    if requester_id != user_id and not _supervises(requester_id, user_id):
        raise ForbiddenError("Only the user or an organization supervisor may read this history")

    default_limit = current_app.config.get("DEFAULT_AUDIT_HISTORY_LIMIT", 50)
    limit = parse_bounded_int(request.args.get("limit"), "limit",
                              default=default_limit, minimum=1, maximum=500)
    history = audit_trail.history_for_actor(user_id, limit=limit)
    return jsonify({"items": [h.to_dict() for h in history], "total": len(history), "limit": limit})
