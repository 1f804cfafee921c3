"""
Demand blueprint — thin HTTP layer over DemandLifecycleService.

Endpoints:
    POST   /api/v1/units/<unit_id>/applicants/<applicant_id>/demands   create
    GET    /api/v1/units/<unit_id>/demands                             list (paginated)
    GET    /api/v1/demands/<id>                                        detail
    PATCH  /api/v1/demands/<id>                                        edit details
    PATCH  /api/v1/demands/<id>/assign                                 book a member
    PATCH  /api/v1/demands/<id>/status                                 status transition
    GET    /api/v1/demands/<id>/transitions                            allowed next statuses
    GET    /api/v1/demands/<id>/history                                audit history

The caller is identified by the X-User-Id header; the acting role is the
caller's membership in the demand's unit. Domain errors raised by the
service are translated by the app-level handlers in utils/errors.py.
"""

import logging

from flask import Blueprint, jsonify, request

from demandflow.blueprints import current_user_id, json_body
from demandflow.core.exceptions import NotFoundError
from demandflow.services.actor import resolve_actor
from demandflow.services.demand_lifecycle import lifecycle_service
from demandflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

demand_bp = Blueprint("demands", __name__, url_prefix="/api/v1")


def _actor_for_demand(demand_id):
    user_id, err = current_user_id()
    if err:
        return None, err
    unit_id = lifecycle_service.unit_of(demand_id)
    try:
        return resolve_actor(user_id, unit_id), None
    except NotFoundError as exc:
        # a demand outside the caller's organization does not exist for them
        if exc.resource == "Unit":
            raise NotFoundError(resource="Demand", resource_id=demand_id) from exc
        raise


def _actor_for_unit(unit_id):
    user_id, err = current_user_id()
    if err:
        return None, err
    return resolve_actor(user_id, unit_id), None


# ═══════════════════════════════════════════════════════════════════════════
#  Unit-scoped
# ═══════════════════════════════════════════════════════════════════════════

@demand_bp.route("/units/<int:unit_id>/applicants/<int:applicant_id>/demands", methods=["POST"])
def create_demand(unit_id, applicant_id):
    actor, err = _actor_for_unit(unit_id)
    if err:
        return err
    demand = lifecycle_service.create_demand(unit_id, applicant_id, json_body(), actor)
    return jsonify({"demand_id": demand.id, "demand": demand.to_dict()}), 201


@demand_bp.route("/units/<int:unit_id>/demands", methods=["GET"])
def list_demands(unit_id):
    actor, err = _actor_for_unit(unit_id)
    if err:
        return err
    page = lifecycle_service.list_demands(unit_id, request.args, actor)
    return jsonify(page.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  Demand-scoped
# ═══════════════════════════════════════════════════════════════════════════

@demand_bp.route("/demands/<int:demand_id>", methods=["GET"])
def get_demand(demand_id):
    actor, err = _actor_for_demand(demand_id)
    if err:
        return err
    return jsonify(lifecycle_service.get_demand(demand_id, actor).to_dict())


@demand_bp.route("/demands/<int:demand_id>", methods=["PATCH"])
def update_demand(demand_id):
    actor, err = _actor_for_demand(demand_id)
    if err:
        return err
    demand = lifecycle_service.update_details(demand_id, actor, json_body())
    return jsonify(demand.to_dict())


@demand_bp.route("/demands/<int:demand_id>/assign", methods=["PATCH"])
def assign_member(demand_id):
    actor, err = _actor_for_demand(demand_id)
    if err:
        return err
    data = json_body()
    missing = [f for f in ("member_id", "date", "time") if not data.get(f)]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} required",
                         details={f: "required" for f in missing})
    demand = lifecycle_service.assign_member(
        demand_id, data["member_id"], data["date"], data["time"], actor,
    )
    return jsonify(demand.to_dict())


@demand_bp.route("/demands/<int:demand_id>/status", methods=["PATCH"])
def update_status(demand_id):
    actor, err = _actor_for_demand(demand_id)
    if err:
        return err
    data = json_body()
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        return api_error(E.VALIDATION_INVALID, "metadata must be an object")

    demand, record = lifecycle_service.update_status(
        demand_id, actor, data["status"], reason=data.get("reason"), metadata=metadata,
    )
    return jsonify({
        "demand": demand.to_dict(),
        "audit_record": record.to_dict() if record else None,
    })


@demand_bp.route("/demands/<int:demand_id>/transitions", methods=["GET"])
def available_transitions(demand_id):
    actor, err = _actor_for_demand(demand_id)
    if err:
        return err
    statuses = lifecycle_service.available_transitions(demand_id, actor)
    return jsonify({"demand_id": demand_id, "role": actor.role.value,
                    "transitions": [s.value for s in statuses]})


@demand_bp.route("/demands/<int:demand_id>/history", methods=["GET"])
def demand_history(demand_id):
    actor, err = _actor_for_demand(demand_id)
    if err:
        return err
    history = lifecycle_service.history(demand_id, actor)
    return jsonify({"items": [h.to_dict() for h in history], "total": len(history)})
