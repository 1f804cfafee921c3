"""
Member availability — working-day rule, slot conflicts and schedule views.

A slot is the exact ``(member, date, time)`` tuple; appointments have no
duration. Two rules decide whether a member may be booked, in this order:

  1. Working day: if ``member.working_days`` is non-empty it must contain
     the weekday token of the date (``NotWorkingThisDayError``).
  2. Conflict: no other live demand (status not REJECTED/BILLED) may hold
     the same slot (``SlotAlreadyBookedError``).

The conflict query runs after locking the member row (``SELECT ... FOR
UPDATE``; ignored by SQLite). The partial unique index
``uq_demands_member_slot`` is the final guard: callers translate its
``IntegrityError`` with ``translate_slot_violation``.
"""

import logging
from datetime import date, time, timedelta

from sqlalchemy.exc import IntegrityError

from demandflow.core.exceptions import (
    NotFoundError,
    NotWorkingThisDayError,
    SlotAlreadyBookedError,
    ValidationError,
)
from demandflow.models import db
from demandflow.models.demand import Demand
from demandflow.models.enums import TERMINAL_STATUSES, WEEKDAY_BY_INDEX, DemandStatus, Weekday
from demandflow.models.organization import Member, Unit

logger = logging.getLogger(__name__)

_TERMINAL_VALUES = tuple(s.value for s in TERMINAL_STATUSES)

MAX_GRID_DAYS = 30


def weekday_token(day: date) -> Weekday:
    """Map a calendar date to its working-day token (2025-10-20 → SEGUNDA)."""
    return WEEKDAY_BY_INDEX[day.weekday()]


def works_on(member: Member, day: date) -> bool:
    days = member.working_day_set
    return not days or weekday_token(day) in days


def time_slots(start_hour: int = 8, end_hour: int = 18, slot_minutes: int = 30) -> list[time]:
    """Slot start times from ``start_hour`` (inclusive) to ``end_hour`` (exclusive)."""
    slots = []
    minutes = start_hour * 60
    while minutes < end_hour * 60:
        slots.append(time(minutes // 60, minutes % 60))
        minutes += slot_minutes
    return slots


def _live_bookings():
    return Demand.query.filter(
        Demand.responsible_id.isnot(None),
        Demand.status.notin_(_TERMINAL_VALUES),
    )


def _get_member(member_id: int) -> Member:
    member = db.session.get(Member, member_id)
    if member is None:
        raise NotFoundError(resource="Member", resource_id=member_id)
    return member


def translate_slot_violation(exc: IntegrityError, member_id: int, scheduled_date, scheduled_time):
    """Return ``SlotAlreadyBookedError`` if ``exc`` came from the slot index, else None."""
    if "uq_demands_member_slot" in str(exc.orig) or "demands.responsible_id" in str(exc.orig):
        return SlotAlreadyBookedError(member_id, scheduled_date, scheduled_time)
    return None


class AvailabilityChecker:
    """Decides whether a member may take a slot, and answers schedule queries."""

    def find_conflict(self, member_id: int, scheduled_date: date, scheduled_time: time,
                      exclude_demand_id: int | None = None) -> Demand | None:
        query = _live_bookings().filter(
            Demand.responsible_id == member_id,
            Demand.scheduled_date == scheduled_date,
            Demand.scheduled_time == scheduled_time,
        )
        if exclude_demand_id is not None:
            query = query.filter(Demand.id != exclude_demand_id)
        return query.order_by(Demand.id).first()

    def check_availability(self, member: Member | int, scheduled_date: date, scheduled_time: time,
                           exclude_demand_id: int | None = None) -> None:
        """Raise an ``AvailabilityConflictError`` subclass if the slot cannot be booked."""
        if not isinstance(member, Member):
            member = _get_member(member)

        if not works_on(member, scheduled_date):
            weekday = weekday_token(scheduled_date)
            logger.warning(
                "Member %s not working on %s (%s)", member.id, scheduled_date, weekday,
                extra={"member_id": member.id},
            )
            raise NotWorkingThisDayError(member.id, weekday.value)

        # Serialise concurrent bookings of the same member
        db.session.execute(
            db.select(Member.id).where(Member.id == member.id).with_for_update()
        )

        conflict = self.find_conflict(member.id, scheduled_date, scheduled_time, exclude_demand_id)
        if conflict is not None:
            logger.warning(
                "Slot %s %s already booked for member %s by demand %s",
                scheduled_date, scheduled_time.strftime("%H:%M"), member.id, conflict.id,
                extra={"member_id": member.id, "demand_id": conflict.id},
            )
            raise SlotAlreadyBookedError(member.id, scheduled_date, scheduled_time, conflict.id)

    # ── Schedule queries ─────────────────────────────────────────────────

    def member_schedule(self, member_id: int, start: date, end: date) -> list[Demand]:
        """Demands booked on a member between ``start`` and ``end`` (inclusive)."""
        _get_member(member_id)
        if end < start:
            raise ValidationError("end must not be before start", details={"start": str(start), "end": str(end)})
        return (
            Demand.query
            .filter(
                Demand.responsible_id == member_id,
                Demand.scheduled_date >= start,
                Demand.scheduled_date <= end,
                Demand.status != DemandStatus.REJECTED.value,
            )
            .order_by(Demand.scheduled_date, Demand.scheduled_time)
            .all()
        )

    def available_members(self, unit_id: int, scheduled_date: date, scheduled_time: time,
                          category: str | None = None) -> list[dict]:
        """Unit members working on that weekday, conflict-free ones first."""
        unit = db.session.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError(resource="Unit", resource_id=unit_id)

        query = Member.query.filter(Member.unit_id == unit_id)
        if category:
            query = query.filter(Member.job_title == category)
        members = [m for m in query.order_by(Member.id).all() if works_on(m, scheduled_date)]

        booked = {
            row.responsible_id
            for row in _live_bookings().filter(
                Demand.scheduled_date == scheduled_date,
                Demand.scheduled_time == scheduled_time,
            ).with_entities(Demand.responsible_id)
        }

        result = [{**m.to_dict(), "has_conflict": m.id in booked} for m in members]
        # stable sort keeps id order inside each group
        result.sort(key=lambda item: item["has_conflict"])
        return result

    def schedule_grid(self, unit_id: int, start: date, days: int = 7,
                      start_hour: int = 8, end_hour: int = 18,
                      slot_minutes: int = 30) -> dict:
        """Per member, per date, per slot availability for a unit.

        Each cell is ``{"available": bool, "reason": "not-working-day" |
        "conflict" | "available"}``.
        """
        if not 1 <= days <= MAX_GRID_DAYS:
            raise ValidationError(f"days must be between 1 and {MAX_GRID_DAYS}", details={"days": days})
        if not (0 <= start_hour < end_hour <= 24):
            raise ValidationError(
                "start_hour must be before end_hour, within 0..24",
                details={"start_hour": start_hour, "end_hour": end_hour},
            )
        unit = db.session.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError(resource="Unit", resource_id=unit_id)

        dates = [start + timedelta(days=i) for i in range(days)]
        slots = time_slots(start_hour, end_hour, slot_minutes)
        members = Member.query.filter(Member.unit_id == unit_id).order_by(Member.id).all()

        booked: dict[int, set[tuple[date, time]]] = {}
        rows = _live_bookings().filter(
            Demand.scheduled_date >= dates[0],
            Demand.scheduled_date <= dates[-1],
            Demand.scheduled_time.isnot(None),
        ).with_entities(Demand.responsible_id, Demand.scheduled_date, Demand.scheduled_time)
        for responsible_id, booked_date, booked_time in rows:
            booked.setdefault(responsible_id, set()).add((booked_date, booked_time))

        grid = []
        for member in members:
            taken = booked.get(member.id, set())
            availability = {}
            for day in dates:
                working = works_on(member, day)
                cells = {}
                for slot in slots:
                    if not working:
                        cells[slot.strftime("%H:%M")] = {"available": False, "reason": "not-working-day"}
                    elif (day, slot) in taken:
                        cells[slot.strftime("%H:%M")] = {"available": False, "reason": "conflict"}
                    else:
                        cells[slot.strftime("%H:%M")] = {"available": True, "reason": "available"}
                availability[day.isoformat()] = cells
            grid.append({**member.to_dict(), "availability": availability})

        return {
            "dates": [d.isoformat() for d in dates],
            "time_slots": [s.strftime("%H:%M") for s in slots],
            "members": grid,
        }

    def set_working_days(self, member_id: int, days: list, organization_id: int) -> Member:
        """Replace a member's working days. Flushes; the caller commits."""
        member = db.session.get(Member, member_id)
        if member is None or member.organization_id != organization_id:
            raise NotFoundError(resource="Member", resource_id=member_id)
        if not isinstance(days, list):
            raise ValidationError("working_days must be a list", details={"working_days": days})
        if not all(isinstance(d, str) for d in days):
            raise ValidationError("working_days must contain weekday names", details={"working_days": days})

        valid = {w.value for w in Weekday}
        unknown = [d for d in days if d not in valid]
        if unknown:
            raise ValidationError(
                f"Unknown weekday tokens: {', '.join(map(str, unknown))}",
                details={"working_days": unknown},
            )
        if len(set(days)) != len(days):
            raise ValidationError("working_days must not contain duplicates", details={"working_days": days})

        member.working_days = [w.value for w in Weekday if w.value in set(days)]
        db.session.flush()
        logger.info(
            "Working days for member %s set to %s", member.id, member.working_days,
            extra={"member_id": member.id},
        )
        return member


availability_checker = AvailabilityChecker()
