"""
Member scheduling blueprint.

Endpoints:
    GET  /api/v1/units/<unit_id>/members/available?date=&time=&category=
    GET  /api/v1/units/<unit_id>/members/schedule-availability
             ?start_date=&days=&start_hour=&end_hour=
    GET  /api/v1/members/<member_id>/schedule?start=&end=
    PUT  /api/v1/members/<member_id>/working-days
"""

import logging
from datetime import date

from flask import Blueprint, current_app, jsonify, request

from demandflow.blueprints import current_user_id, json_body
from demandflow.core.exceptions import ForbiddenError, NotFoundError
from demandflow.models import db
from demandflow.models.enums import Role
from demandflow.models.organization import Member
from demandflow.services.actor import actor_for_member, resolve_actor
from demandflow.services.availability import MAX_GRID_DAYS, availability_checker, weekday_token
from demandflow.utils.errors import E, api_error
from demandflow.utils.helpers import parse_bounded_int, parse_slot_date, parse_slot_time

logger = logging.getLogger(__name__)

member_bp = Blueprint("members", __name__, url_prefix="/api/v1")

CAN_MANAGE_SCHEDULES = frozenset({Role.ADMIN, Role.MANAGER})


def _get_member_or_404(member_id):
    member = db.session.get(Member, member_id)
    if member is None:
        raise NotFoundError(resource="Member", resource_id=member_id)
    return member


@member_bp.route("/units/<int:unit_id>/members/available", methods=["GET"])
def available_members(unit_id):
    user_id, err = current_user_id()
    if err:
        return err
    resolve_actor(user_id, unit_id)

    if not request.args.get("date") or not request.args.get("time"):
        return api_error(E.VALIDATION_REQUIRED, "date and time are required")
    day = parse_slot_date(request.args["date"])
    slot = parse_slot_time(request.args["time"])
    category = request.args.get("category") or None

    members = availability_checker.available_members(unit_id, day, slot, category)
    return jsonify({
        "available_members": members,
        "search_criteria": {
            "date": day.isoformat(),
            "time": slot.strftime("%H:%M"),
            "weekday": weekday_token(day).value,
            "category": category,
        },
    })


@member_bp.route("/units/<int:unit_id>/members/schedule-availability", methods=["GET"])
def schedule_availability(unit_id):
    user_id, err = current_user_id()
    if err:
        return err
    resolve_actor(user_id, unit_id)

    raw_start = request.args.get("start_date")
    start = parse_slot_date(raw_start, "start_date") if raw_start else date.today()
    days = parse_bounded_int(request.args.get("days"), "days", default=7, minimum=1, maximum=MAX_GRID_DAYS)
    start_hour = parse_bounded_int(request.args.get("start_hour"), "start_hour", default=8, minimum=0, maximum=23)
    end_hour = parse_bounded_int(request.args.get("end_hour"), "end_hour", default=18, minimum=1, maximum=24)

    grid = availability_checker.schedule_grid(
        unit_id, start, days=days, start_hour=start_hour, end_hour=end_hour,
        slot_minutes=current_app.config.get("SCHEDULE_SLOT_MINUTES", 30),
    )
    return jsonify({
        "schedule": grid,
        "filters": {
            "start_date": start.isoformat(),
            "days": days,
            "start_hour": start_hour,
            "end_hour": end_hour,
        },
    })


@member_bp.route("/members/<int:member_id>/schedule", methods=["GET"])
def member_schedule(member_id):
    user_id, err = current_user_id()
    if err:
        return err
    member = _get_member_or_404(member_id)
    actor = actor_for_member(user_id, member)
    if actor.is_analyst and actor.member_id != member.id:
        raise ForbiddenError("ANALYST members can only view their own schedule")

    if not request.args.get("start") or not request.args.get("end"):
        return api_error(E.VALIDATION_REQUIRED, "start and end are required")
    start = parse_slot_date(request.args["start"], "start")
    end = parse_slot_date(request.args["end"], "end")

    demands = availability_checker.member_schedule(member_id, start, end)
    return jsonify({
        "member_id": member_id,
        "items": [
            {
                "id": d.id,
                "title": d.title,
                "status": d.status,
                "scheduled_date": d.scheduled_date.isoformat() if d.scheduled_date else None,
                "scheduled_time": d.scheduled_time.strftime("%H:%M") if d.scheduled_time else None,
            }
            for d in demands
        ],
    })


@member_bp.route("/members/<int:member_id>/working-days", methods=["PUT"])
def set_working_days(member_id):
    user_id, err = current_user_id()
    if err:
        return err
    member = _get_member_or_404(member_id)
    actor = actor_for_member(user_id, member)
    if actor.role not in CAN_MANAGE_SCHEDULES:
        raise ForbiddenError(f"Role {actor.role.value} is not allowed to change working days")

    data = json_body()
    if "working_days" not in data:
        return api_error(E.VALIDATION_REQUIRED, "working_days is required")

    member = availability_checker.set_working_days(member_id, data["working_days"], actor.organization_id)
    db.session.commit()
    return jsonify(member.to_dict())
