"""
Demand Lifecycle Service — create, assign, transition, list and fetch demands.

Orchestrates the engine components in a fixed order:
  - create_demand:  role gate → input validation → availability → insert
  - assign_member:  role gate → visibility → availability (excluding self) → update
  - update_status:  visibility (ANALYST ownership) → TransitionValidator →
                    status write + AuditTrail.record in one transaction
  - list_demands / get_demand: VisibilityFilter

The service owns commits. Any failure rolls the session back before the
exception propagates, so a status change never lands without its audit row.

Usage:
    from demandflow.services.demand_lifecycle import lifecycle_service

    demand, audit = lifecycle_service.update_status(
        demand_id=12, actor=actor, new_status="IN_PROGRESS", reason="Patient arrived",
    )
"""

import logging
import math
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from demandflow.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from demandflow.models import db
from demandflow.models.audit import DemandStatusAuditLog
from demandflow.models.demand import Demand
from demandflow.models.enums import (
    CLOSED_FOR_ASSIGNMENT,
    DemandCategory,
    DemandPriority,
    DemandStatus,
    Role,
)
from demandflow.models.organization import Applicant, Member, Unit
from demandflow.services.actor import Actor
from demandflow.services.audit_trail import AuditEntry, AuditTrail, audit_trail
from demandflow.services.availability import (
    AvailabilityChecker,
    availability_checker,
    translate_slot_violation,
)
from demandflow.services.status_rules import TransitionValidator, default_validator
from demandflow.services.visibility import VisibilityFilter, visibility_filter
from demandflow.utils.helpers import parse_bounded_int, parse_slot_date, parse_slot_time

logger = logging.getLogger(__name__)

# Role gates for non-status operations
CAN_CREATE = frozenset({Role.ADMIN, Role.MANAGER, Role.CLERK})
CAN_EDIT = frozenset({Role.ADMIN, Role.CLERK, Role.ANALYST})

TITLE_MIN, TITLE_MAX = 3, 200
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 2000

SORTABLE_FIELDS = ("created_at", "updated_at", "priority", "status")
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

_PRIORITY_RANK = {p.value: i for i, p in enumerate(DemandPriority)}
_STATUS_RANK = {s.value: i for i, s in enumerate(DemandStatus)}


@dataclass(frozen=True)
class DemandPage:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def to_dict(self) -> dict:
        return {
            "items": [d.to_dict() for d in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
                "has_next": self.page < self.total_pages,
                "has_prev": self.page > 1,
            },
        }


# ── Input validation ─────────────────────────────────────────────────────────

def _require_text(payload: dict, field: str, minimum: int, maximum: int) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={field: "required"})
    value = value.strip()
    if len(value) < minimum:
        raise ValidationError(f"{field} must have at least {minimum} characters", details={field: value})
    if len(value) > maximum:
        raise ValidationError(f"{field} must have at most {maximum} characters", details={field: "too long"})
    return value


def _require_choice(payload: dict, field: str, enum_cls):
    value = payload.get(field)
    if value is None:
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"{field} must be one of: {', '.join(e.value for e in enum_cls)}",
            details={field: value},
        )


def _parse_schedule(payload: dict):
    """Return ``(date, time)`` or ``(None, None)``; both or neither must be given."""
    raw_date = payload.get("scheduled_date")
    raw_time = payload.get("scheduled_time")
    if not raw_date and not raw_time:
        return None, None
    if not raw_date or not raw_time:
        raise ValidationError(
            "scheduled_date and scheduled_time must be supplied together",
            details={"scheduled_date": raw_date, "scheduled_time": raw_time},
        )
    return parse_slot_date(raw_date, "scheduled_date"), parse_slot_time(raw_time, "scheduled_time")


def parse_status(value) -> DemandStatus:
    try:
        return DemandStatus(value)
    except ValueError:
        raise ValidationError(
            f"status must be one of: {', '.join(s.value for s in DemandStatus)}",
            details={"status": value},
        )


class DemandLifecycleService:

    def __init__(self,
                 validator: TransitionValidator = default_validator,
                 checker: AvailabilityChecker = availability_checker,
                 trail: AuditTrail = audit_trail,
                 visibility: VisibilityFilter = visibility_filter):
        self.validator = validator
        self.checker = checker
        self.trail = trail
        self.visibility = visibility

    # ── Lookups ──────────────────────────────────────────────────────────

    def unit_of(self, demand_id: int) -> int:
        """Unit id of a demand, used by callers to resolve the actor."""
        unit_id = db.session.query(Demand.unit_id).filter(Demand.id == demand_id).scalar()
        if unit_id is None:
            raise NotFoundError(resource="Demand", resource_id=demand_id)
        return unit_id

    def _load_demand(self, demand_id: int, actor: Actor) -> Demand:
        demand = db.session.get(Demand, demand_id)
        if demand is None or demand.unit.organization_id != actor.organization_id:
            raise NotFoundError(resource="Demand", resource_id=demand_id)
        return demand

    def _unit_member(self, member_id, unit_id: int) -> Member:
        member = db.session.get(Member, member_id) if member_id is not None else None
        if member is None or member.unit_id != unit_id:
            raise NotFoundError(resource="Member", resource_id=member_id)
        return member

    @staticmethod
    def _require_role(actor: Actor, allowed: frozenset, action: str) -> None:
        if actor.role not in allowed:
            logger.warning(
                "Role %s may not %s", actor.role, action,
                extra={"user_id": actor.user_id, "member_id": actor.member_id},
            )
            raise ForbiddenError(f"Role {actor.role.value} is not allowed to {action}")

    def _flush_booking(self, member_id, scheduled_date, scheduled_time) -> None:
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            translated = translate_slot_violation(exc, member_id, scheduled_date, scheduled_time)
            if translated is not None:
                logger.warning(
                    "Concurrent booking rejected by slot index for member %s", member_id,
                    extra={"member_id": member_id},
                )
                raise translated from exc
            raise

    # ── Operations ───────────────────────────────────────────────────────

    def create_demand(self, unit_id: int, applicant_id: int, payload: dict, actor: Actor) -> Demand:
        """Open a demand at PENDING; books the responsible member when a slot is given."""
        self._require_role(actor, CAN_CREATE, "create demands")

        unit = db.session.get(Unit, unit_id)
        if unit is None or unit.organization_id != actor.organization_id:
            raise NotFoundError(resource="Unit", resource_id=unit_id)
        applicant = db.session.get(Applicant, applicant_id)
        if applicant is None or applicant.organization_id != unit.organization_id:
            raise NotFoundError(resource="Applicant", resource_id=applicant_id)

        title = _require_text(payload, "title", TITLE_MIN, TITLE_MAX)
        description = _require_text(payload, "description", DESCRIPTION_MIN, DESCRIPTION_MAX)
        priority = _require_choice(payload, "priority", DemandPriority)
        category = _require_choice(payload, "category", DemandCategory)
        scheduled_date, scheduled_time = _parse_schedule(payload)

        responsible = None
        if payload.get("responsible_id") is not None:
            responsible = self._unit_member(payload["responsible_id"], unit.id)
            if scheduled_date is not None:
                self.checker.check_availability(responsible, scheduled_date, scheduled_time)

        demand = Demand(
            title=title,
            description=description,
            status=DemandStatus.PENDING.value,
            priority=priority.value,
            category=category.value,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            responsible_id=responsible.id if responsible else None,
            unit_id=unit.id,
            applicant_id=applicant.id,
            owner_id=actor.user_id,
            created_by_member_name=actor.name,
        )
        db.session.add(demand)
        self._flush_booking(demand.responsible_id, scheduled_date, scheduled_time)
        db.session.commit()

        logger.info(
            "Demand %s created in unit %s", demand.id, unit.id,
            extra={"demand_id": demand.id, "unit_id": unit.id, "member_id": demand.responsible_id},
        )
        return demand

    def assign_member(self, demand_id: int, member_id: int, scheduled_date, scheduled_time,
                      actor: Actor) -> Demand:
        """Book ``member_id`` on the demand at an exact slot. Status is untouched."""
        demand = self._load_demand(demand_id, actor)
        self._require_role(actor, CAN_EDIT, "assign demands")
        self.visibility.ensure_visible(actor.role, actor.member_id, demand)

        if DemandStatus(demand.status) in CLOSED_FOR_ASSIGNMENT:
            raise ValidationError(
                f"Demands with status {demand.status} cannot be assigned",
                details={"status": demand.status},
            )

        scheduled_date = parse_slot_date(scheduled_date, "scheduled_date")
        scheduled_time = parse_slot_time(scheduled_time, "scheduled_time")
        member = self._unit_member(member_id, demand.unit_id)

        self.checker.check_availability(member, scheduled_date, scheduled_time,
                                        exclude_demand_id=demand.id)

        demand.responsible_id = member.id
        demand.scheduled_date = scheduled_date
        demand.scheduled_time = scheduled_time
        demand.updated_by_member_name = actor.name
        self._flush_booking(member.id, scheduled_date, scheduled_time)
        db.session.commit()

        logger.info(
            "Demand %s assigned to member %s on %s %s",
            demand.id, member.id, scheduled_date, scheduled_time.strftime("%H:%M"),
            extra={"demand_id": demand.id, "member_id": member.id, "unit_id": demand.unit_id},
        )
        return demand

    def update_status(self, demand_id: int, actor: Actor, new_status, reason: str | None = None,
                      metadata: dict | None = None) -> tuple[Demand, DemandStatusAuditLog | None]:
        """Move a demand to ``new_status`` and append its audit record.

        Returns ``(demand, audit_record)``; ``audit_record`` is None for a
        same-status request, which writes nothing.
        """
        target = parse_status(new_status)
        demand = self._load_demand(demand_id, actor)
        self.visibility.ensure_visible(actor.role, actor.member_id, demand)

        current = DemandStatus(demand.status)
        check = self.validator.check(actor.role, current, target)
        if not check.valid:
            logger.warning(
                "Transition %s -> %s refused for role %s: %s",
                current, target, actor.role, check.message,
                extra={"demand_id": demand.id, "user_id": actor.user_id},
            )
            raise check.error
        if current == target:
            return demand, None

        try:
            demand.status = target.value
            demand.updated_by_member_name = actor.name
            record = self.trail.record(AuditEntry(
                demand_id=demand.id,
                previous_status=current,
                new_status=target,
                changed_by_user_id=actor.user_id,
                changed_by_member_id=actor.member_id,
                changed_by_user_name=actor.name,
                changed_by_role=actor.role,
                reason=reason,
                metadata=metadata,
            ))
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.error(
                "Status update failed for demand %s", demand_id,
                exc_info=True, extra={"demand_id": demand_id},
            )
            raise

        logger.info(
            "Demand %s status %s -> %s", demand.id, current, target,
            extra={
                "demand_id": demand.id,
                "user_id": actor.user_id,
                "previous_status": current.value,
                "new_status": target.value,
            },
        )
        return demand, record

    def update_details(self, demand_id: int, actor: Actor, changes: dict) -> Demand:
        """Edit title, description, priority or category. Never touches status."""
        if "status" in changes:
            raise ValidationError("status can only be changed through the status endpoint",
                                  details={"status": changes["status"]})
        demand = self._load_demand(demand_id, actor)
        self._require_role(actor, CAN_EDIT, "edit demands")
        self.visibility.ensure_visible(actor.role, actor.member_id, demand)

        if "title" in changes:
            demand.title = _require_text(changes, "title", TITLE_MIN, TITLE_MAX)
        if "description" in changes:
            demand.description = _require_text(changes, "description", DESCRIPTION_MIN, DESCRIPTION_MAX)
        if "priority" in changes:
            demand.priority = _require_choice(changes, "priority", DemandPriority).value
        if "category" in changes:
            demand.category = _require_choice(changes, "category", DemandCategory).value
        demand.updated_by_member_name = actor.name
        db.session.commit()

        logger.info("Demand %s details updated", demand.id, extra={"demand_id": demand.id})
        return demand

    def get_demand(self, demand_id: int, actor: Actor) -> Demand:
        demand = self._load_demand(demand_id, actor)
        return self.visibility.ensure_visible(actor.role, actor.member_id, demand)

    def list_demands(self, unit_id: int, filters: dict, actor: Actor) -> DemandPage:
        """Visibility-scoped, filtered, sorted page of a unit's demands.

        Filters: status, priority, category, search, sort_by, sort_order,
        page, limit.
        """
        unit = db.session.get(Unit, unit_id)
        if unit is None or unit.organization_id != actor.organization_id:
            raise NotFoundError(resource="Unit", resource_id=unit_id)

        query = self.visibility.scope_query(
            actor.role, actor.member_id, Demand.query.filter(Demand.unit_id == unit_id),
        )

        if filters.get("status"):
            query = query.filter(Demand.status == parse_status(filters["status"]).value)
        if filters.get("priority"):
            query = query.filter(Demand.priority == _require_choice(filters, "priority", DemandPriority).value)
        if filters.get("category"):
            query = query.filter(Demand.category == _require_choice(filters, "category", DemandCategory).value)
        if filters.get("search"):
            term = filters["search"].strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            pattern = f"%{term}%"
            query = query.filter(db.or_(
                Demand.title.ilike(pattern, escape="\\"),
                Demand.description.ilike(pattern, escape="\\"),
            ))

        sort_by = filters.get("sort_by") or "created_at"
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(f"sort_by must be one of: {', '.join(SORTABLE_FIELDS)}",
                                  details={"sort_by": sort_by})
        sort_order = (filters.get("sort_order") or "desc").lower()
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be asc or desc", details={"sort_order": sort_order})

        if sort_by == "priority":
            column = db.case(_PRIORITY_RANK, value=Demand.priority, else_=len(_PRIORITY_RANK))
        elif sort_by == "status":
            column = db.case(_STATUS_RANK, value=Demand.status, else_=len(_STATUS_RANK))
        else:
            column = getattr(Demand, sort_by)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        page = parse_bounded_int(filters.get("page"), "page", default=1, minimum=1, maximum=10**6)
        limit = parse_bounded_int(
            filters.get("limit"), "limit",
            default=current_app.config.get("DEMAND_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            minimum=1,
            maximum=current_app.config.get("MAX_DEMAND_PAGE_SIZE", MAX_PAGE_SIZE),
        )

        total = query.count()
        items = query.order_by(ordering, Demand.id.desc()).limit(limit).offset((page - 1) * limit).all()
        return DemandPage(items=items, page=page, limit=limit, total=total)

    def available_transitions(self, demand_id: int, actor: Actor) -> list[DemandStatus]:
        demand = self.get_demand(demand_id, actor)
        return self.validator.available_transitions(actor.role, DemandStatus(demand.status))

    def history(self, demand_id: int, actor: Actor) -> list[DemandStatusAuditLog]:
        """Audit history of one demand, subject to the same visibility as ``get_demand``."""
        demand = self.get_demand(demand_id, actor)
        return self.trail.history_for_demand(demand.id)


lifecycle_service = DemandLifecycleService()
