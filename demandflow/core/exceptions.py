"""
Demand engine exception hierarchy.

Services raise these types; the Flask app registers one handler per type
(see ``demandflow.utils.errors``) so every endpoint maps them to the same
HTTP status and error code.

Usage:
    from demandflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Demand", resource_id=42)
    raise ValidationError("title must have at least 3 characters", details={"title": "..."})

Infrastructure failures (``sqlalchemy.exc.SQLAlchemyError``) are deliberately
not wrapped: they propagate unchanged and surface as HTTP 500.
"""


class DemandError(Exception):
    """Base class for every domain error raised by the demand engine."""

    code = "ERR_INTERNAL"
    status = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DemandError):
    """Raised when a referenced demand, member, unit or applicant does not exist
    or lies outside the actor's organization.

    Args:
        resource: Human-readable entity name (e.g. "Demand", "Member").
        resource_id: The key that was looked up.
    """

    code = "ERR_NOT_FOUND"
    status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(DemandError):
    """Raised when input is well-formed JSON but violates a field rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    code = "ERR_VALIDATION_INVALID"
    status = 400


class ForbiddenError(DemandError):
    """Raised when the actor's role does not allow the operation, or an
    ANALYST touches a demand that is not assigned to them."""

    code = "ERR_FORBIDDEN"
    status = 403


class TransitionForbiddenError(ForbiddenError):
    """Role-level refusal of a legal status edge.

    ``side`` is ``"from"`` when the role may not leave ``from_status`` and
    ``"to"`` when it may not enter ``to_status``.
    """

    def __init__(self, role: str, from_status: str, to_status: str, side: str) -> None:
        self.role = role
        self.from_status = from_status
        self.to_status = to_status
        self.side = side
        if side == "from":
            msg = f"Role {role} cannot alter demands with status {from_status}"
        else:
            msg = f"Role {role} cannot change status to {to_status}"
        super().__init__(msg, details={"role": role, "from": from_status, "to": to_status})


class IllegalTransitionError(DemandError):
    """Raised when no status-graph edge leads from ``from_status`` to ``to_status``."""

    code = "ERR_ILLEGAL_TRANSITION"
    status = 422

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition: cannot move from {from_status} to {to_status}",
            details={"from": from_status, "to": to_status},
        )


class AvailabilityConflictError(DemandError):
    """Base for scheduling refusals. The client must pick another slot or member."""

    code = "ERR_AVAILABILITY_CONFLICT"
    status = 409


class NotWorkingThisDayError(AvailabilityConflictError):
    """The member's working days do not include the requested weekday."""

    code = "ERR_NOT_WORKING_DAY"

    def __init__(self, member_id: int, weekday: str) -> None:
        self.member_id = member_id
        self.weekday = weekday
        super().__init__(
            f"Member {member_id} does not work on {weekday}",
            details={"member_id": member_id, "weekday": weekday, "reason": "not-working-day"},
        )


class SlotAlreadyBookedError(AvailabilityConflictError):
    """Another live demand already holds the exact (member, date, time) slot."""

    code = "ERR_SLOT_BOOKED"

    def __init__(self, member_id: int, scheduled_date, scheduled_time,
                 conflicting_demand_id: int | None = None) -> None:
        self.member_id = member_id
        self.conflicting_demand_id = conflicting_demand_id
        details = {
            "member_id": member_id,
            "date": str(scheduled_date),
            "time": scheduled_time.strftime("%H:%M") if hasattr(scheduled_time, "strftime") else str(scheduled_time),
            "reason": "schedule-conflict",
        }
        if conflicting_demand_id is not None:
            details["conflicting_demand_id"] = conflicting_demand_id
        super().__init__(
            f"Member {member_id} is already booked on {details['date']} at {details['time']}",
            details=details,
        )


class AuditImmutableError(DemandError):
    """Raised when code tries to update or delete an audit record."""

    code = "ERR_AUDIT_IMMUTABLE"
    status = 500
