"""
Demand Lifecycle & Scheduling Engine
Demand domain model.

Models:
    - Demand: one service request for one applicant inside one unit,
      optionally booked on a member at an exact (date, time) slot.
"""

from datetime import datetime, timezone

from demandflow.models import db
from demandflow.models.enums import DemandStatus

# Rows in these statuses release their slot.
_LIVE_SLOT_PREDICATE = "status NOT IN ('REJECTED', 'BILLED')"


def _utcnow():
    return datetime.now(timezone.utc)


class Demand(db.Model):
    """
    A trackable unit of requested service work.

    ``status`` is only written through ``DemandLifecycleService.update_status``;
    assignment fields only through ``assign_member`` / ``create_demand``.
    """

    __tablename__ = "demands"
    __table_args__ = (
        db.Index("ix_demands_unit_status", "unit_id", "status"),
        db.Index("ix_demands_member_date", "responsible_id", "scheduled_date"),
        # One live booking per (member, date, time): closes the check-then-write race
        db.Index(
            "uq_demands_member_slot",
            "responsible_id", "scheduled_date", "scheduled_time",
            unique=True,
            postgresql_where=db.text(_LIVE_SLOT_PREDICATE),
            sqlite_where=db.text(_LIVE_SLOT_PREDICATE),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default=DemandStatus.PENDING.value,
        comment="PENDING | CHECK_IN | IN_PROGRESS | RESOLVED | REJECTED | BILLED",
    )
    priority = db.Column(db.String(20), nullable=False)
    category = db.Column(db.String(60), nullable=False)

    scheduled_date = db.Column(db.Date, nullable=True)
    scheduled_time = db.Column(db.Time, nullable=True)
    responsible_id = db.Column(
        db.Integer,
        db.ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    unit_id = db.Column(
        db.Integer,
        db.ForeignKey("units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    applicant_id = db.Column(
        db.Integer,
        db.ForeignKey("applicants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="User who opened the demand",
    )
    created_by_member_name = db.Column(db.String(200), nullable=False)
    updated_by_member_name = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    responsible = db.relationship("Member", foreign_keys=[responsible_id])
    applicant = db.relationship("Applicant")
    unit = db.relationship("Unit")

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_date is not None and self.scheduled_time is not None

    def to_dict(self):
        responsible = None
        if self.responsible is not None:
            responsible = {
                "id": self.responsible.id,
                "user_id": self.responsible.user_id,
                "name": self.responsible.user.name if self.responsible.user else None,
                "job_title": self.responsible.job_title,
            }
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "category": self.category,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time.strftime("%H:%M") if self.scheduled_time else None,
            "responsible_id": self.responsible_id,
            "responsible": responsible,
            "unit_id": self.unit_id,
            "applicant_id": self.applicant_id,
            "applicant_name": self.applicant.name if self.applicant else None,
            "owner_id": self.owner_id,
            "created_by_member_name": self.created_by_member_name,
            "updated_by_member_name": self.updated_by_member_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Demand {self.id}: {self.status} unit={self.unit_id}>"
