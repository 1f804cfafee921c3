"""
Demand Lifecycle & Scheduling Engine
Audit domain model.

Models:
    - DemandStatusAuditLog: immutable, append-only trail of demand status changes.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import event as _sa_event

from demandflow.core.exceptions import AuditImmutableError
from demandflow.models import db


class DemandStatusAuditLog(db.Model):
    """
    One row per effective status transition (never for ``previous == new``).

    ``metadata_json`` is the storage form of an optional dict; read it
    through ``meta``.
    """

    __tablename__ = "demand_status_audit_log"
    __table_args__ = (
        db.Index("idx_demand_audit_demand_ts", "demand_id", "changed_at"),
        db.Index("idx_demand_audit_user_ts", "changed_by_user_id", "changed_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    demand_id = db.Column(
        db.Integer,
        db.ForeignKey("demands.id", ondelete="CASCADE"),
        nullable=False,
    )
    previous_status = db.Column(db.String(20), nullable=False)
    new_status = db.Column(db.String(20), nullable=False)

    # Actor snapshot at the time of change
    changed_by_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    changed_by_member_id = db.Column(
        db.Integer,
        db.ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
    )
    changed_by_user_name = db.Column(db.String(200), nullable=False, default="Sistema")
    changed_by_role = db.Column(db.String(20), nullable=False)

    reason = db.Column(db.Text, nullable=True)
    metadata_json = db.Column(db.Text, nullable=True, comment="JSON object or NULL")

    changed_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def meta(self) -> dict | None:
        """Deserialise *metadata_json* to a Python dict."""
        if not self.metadata_json:
            return None
        try:
            return json.loads(self.metadata_json)
        except (json.JSONDecodeError, TypeError):
            return None

    @meta.setter
    def meta(self, value: dict | None) -> None:
        self.metadata_json = json.dumps(value, default=str, sort_keys=True) if value else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "demand_id": self.demand_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "changed_by_user_id": self.changed_by_user_id,
            "changed_by_member_id": self.changed_by_member_id,
            "changed_by_user_name": self.changed_by_user_name,
            "changed_by_role": self.changed_by_role,
            "reason": self.reason,
            "metadata": self.meta,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
        }

    def __repr__(self):
        return (f"<DemandStatusAuditLog {self.id}: demand={self.demand_id} "
                f"{self.previous_status}->{self.new_status}>")


# ── Append-only guard ────────────────────────────────────────────────────────

@_sa_event.listens_for(DemandStatusAuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditImmutableError(f"Audit record {target.id} cannot be updated")


@_sa_event.listens_for(DemandStatusAuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditImmutableError(f"Audit record {target.id} cannot be deleted")
