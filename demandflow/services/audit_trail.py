"""
Audit trail for demand status changes.

Every accepted transition appends exactly one immutable
``DemandStatusAuditLog`` row; no-op transitions (``previous == new``) write
nothing. Rows are flushed, not committed: the caller owns the transaction,
so the status update and its audit row commit or roll back together.

Usage:
    from demandflow.services.audit_trail import AuditEntry, audit_trail

    audit_trail.record(AuditEntry(
        demand_id=7,
        previous_status=DemandStatus.CHECK_IN,
        new_status=DemandStatus.IN_PROGRESS,
        changed_by_user_id=3,
        changed_by_role=Role.ANALYST,
        reason="Patient called in",
        metadata={"ip": "10.0.0.4"},
    ))
"""

import logging
from dataclasses import dataclass, field

from demandflow.models import db
from demandflow.models.audit import DemandStatusAuditLog
from demandflow.models.enums import DemandStatus, Role

logger = logging.getLogger(__name__)

SYSTEM_USER_NAME = "Sistema"
DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class AuditEntry:
    demand_id: int
    previous_status: DemandStatus
    new_status: DemandStatus
    changed_by_user_id: int | None
    changed_by_role: Role
    changed_by_member_id: int | None = None
    changed_by_user_name: str | None = None
    reason: str | None = None
    metadata: dict | None = field(default=None, hash=False)


class AuditTrail:
    """Append-only writer and ordered reader for demand status history."""

    def record(self, entry: AuditEntry) -> DemandStatusAuditLog | None:
        """Insert one audit row, or return None for a no-op transition.

        Persistence errors propagate unchanged.
        """
        if DemandStatus(entry.previous_status) == DemandStatus(entry.new_status):
            return None

        log = DemandStatusAuditLog(
            demand_id=entry.demand_id,
            previous_status=DemandStatus(entry.previous_status).value,
            new_status=DemandStatus(entry.new_status).value,
            changed_by_user_id=entry.changed_by_user_id,
            changed_by_member_id=entry.changed_by_member_id,
            changed_by_user_name=entry.changed_by_user_name or SYSTEM_USER_NAME,
            changed_by_role=Role(entry.changed_by_role).value,
            reason=entry.reason or None,
        )
        log.meta = entry.metadata
        db.session.add(log)
        db.session.flush()

        logger.info(
            "Audit: demand %s %s -> %s by user %s",
            entry.demand_id, log.previous_status, log.new_status, entry.changed_by_user_id,
            extra={
                "demand_id": entry.demand_id,
                "user_id": entry.changed_by_user_id,
                "previous_status": log.previous_status,
                "new_status": log.new_status,
            },
        )
        return log

    def history_for_demand(self, demand_id: int) -> list[DemandStatusAuditLog]:
        """All transitions of one demand, newest first."""
        return (
            DemandStatusAuditLog.query
            .filter_by(demand_id=demand_id)
            .order_by(DemandStatusAuditLog.changed_at.desc(), DemandStatusAuditLog.id.desc())
            .all()
        )

    def history_for_actor(self, user_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> list[DemandStatusAuditLog]:
        """Transitions performed by one user, newest first, at most ``limit`` rows."""
        return (
            DemandStatusAuditLog.query
            .filter_by(changed_by_user_id=user_id)
            .order_by(DemandStatusAuditLog.changed_at.desc(), DemandStatusAuditLog.id.desc())
            .limit(limit)
            .all()
        )


audit_trail = AuditTrail()
