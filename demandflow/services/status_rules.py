"""
Demand status rules — legal edges, role permissions and the validator that
combines them.

Two independent tables gate every status change:
  - StatusGraph:          which status may follow which (domain legality)
  - RolePermissionMatrix: which statuses a role may leave and enter

Both are immutable and built once at import time as ``DEFAULT_STATUS_GRAPH``
and ``DEFAULT_ROLE_MATRIX``. ``TransitionValidator`` takes them by reference,
so tests can construct a validator over alternative tables.

Usage:
    from demandflow.services.status_rules import default_validator

    default_validator.validate(Role.CLERK, DemandStatus.PENDING, DemandStatus.CHECK_IN)
    default_validator.available_transitions(Role.ANALYST, DemandStatus.CHECK_IN)
    # -> [DemandStatus.IN_PROGRESS, DemandStatus.RESOLVED]
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from demandflow.core.exceptions import IllegalTransitionError, TransitionForbiddenError
from demandflow.models.enums import DemandStatus, Role

S = DemandStatus


def _freeze(table, keys, label):
    missing = [k.value for k in keys if k not in table]
    if missing:
        raise ValueError(f"{label} is missing entries for: {', '.join(missing)}")
    return MappingProxyType({k: frozenset(v) for k, v in table.items()})


class StatusGraph:
    """Directed graph of legal status edges. Self-loops are always legal."""

    def __init__(self, edges: Mapping[DemandStatus, set | frozenset | list]):
        self._edges = _freeze(edges, DemandStatus, "StatusGraph")

    def is_legal_edge(self, from_status: DemandStatus, to_status: DemandStatus) -> bool:
        if from_status == to_status:
            return True
        return to_status in self._edges.get(from_status, frozenset())

    def successors(self, status: DemandStatus) -> frozenset[DemandStatus]:
        return self._edges.get(status, frozenset())

    def is_terminal(self, status: DemandStatus) -> bool:
        return not self.successors(status)


@dataclass(frozen=True)
class RolePermission:
    allowed_from: frozenset
    allowed_to: frozenset


class RolePermissionMatrix:
    """Per role, the statuses it may move a demand away from and into.

    Both halves must hold for a transition to be permitted. The matrix is
    checked independently of the status graph.
    """

    def __init__(self, permissions: Mapping[Role, tuple]):
        missing = [r.value for r in Role if r not in permissions]
        if missing:
            raise ValueError(f"RolePermissionMatrix is missing entries for: {', '.join(missing)}")
        self._permissions = MappingProxyType({
            role: RolePermission(frozenset(allowed_from), frozenset(allowed_to))
            for role, (allowed_from, allowed_to) in permissions.items()
        })

    def __getitem__(self, role: Role) -> RolePermission:
        return self._permissions[role]

    def can_leave(self, role: Role, status: DemandStatus) -> bool:
        return status in self._permissions[role].allowed_from

    def can_enter(self, role: Role, status: DemandStatus) -> bool:
        return status in self._permissions[role].allowed_to

    def is_permitted(self, role: Role, from_status: DemandStatus, to_status: DemandStatus) -> bool:
        return self.can_leave(role, from_status) and self.can_enter(role, to_status)


DEFAULT_STATUS_GRAPH = StatusGraph({
    S.PENDING: {S.CHECK_IN, S.IN_PROGRESS, S.RESOLVED},
    S.CHECK_IN: {S.IN_PROGRESS, S.RESOLVED},
    S.IN_PROGRESS: {S.RESOLVED},
    S.RESOLVED: {S.BILLED},
    S.REJECTED: set(),
    S.BILLED: set(),
})

DEFAULT_ROLE_MATRIX = RolePermissionMatrix({
    Role.ADMIN: (
        {S.PENDING, S.CHECK_IN, S.IN_PROGRESS, S.RESOLVED},
        {S.CHECK_IN, S.IN_PROGRESS, S.RESOLVED, S.BILLED},
    ),
    # MANAGER supervises but never moves status
    Role.MANAGER: (set(), set()),
    Role.CLERK: (
        {S.PENDING, S.CHECK_IN, S.IN_PROGRESS},
        {S.CHECK_IN, S.IN_PROGRESS, S.RESOLVED},
    ),
    Role.ANALYST: (
        {S.CHECK_IN, S.IN_PROGRESS},
        {S.IN_PROGRESS, S.RESOLVED},
    ),
    Role.BILLING: (
        {S.RESOLVED},
        {S.BILLED},
    ),
})


@dataclass(frozen=True)
class TransitionCheck:
    """Outcome of a transition check. ``error`` is None when ``valid``."""

    valid: bool
    error: Exception | None = None

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None


class TransitionValidator:
    """Approves or rejects a requested status change for a role.

    Edge legality is reported before role authorization, so a role never
    learns what it could do on an edge that does not exist.
    """

    def __init__(self, graph: StatusGraph = DEFAULT_STATUS_GRAPH,
                 matrix: RolePermissionMatrix = DEFAULT_ROLE_MATRIX):
        self.graph = graph
        self.matrix = matrix

    def check(self, role: Role, from_status: DemandStatus, to_status: DemandStatus) -> TransitionCheck:
        role, from_status, to_status = Role(role), DemandStatus(from_status), DemandStatus(to_status)
        if from_status == to_status:
            return TransitionCheck(valid=True)

        legal = self.graph.is_legal_edge(from_status, to_status)
        can_leave = self.matrix.can_leave(role, from_status)
        can_enter = self.matrix.can_enter(role, to_status)

        if not legal:
            return TransitionCheck(False, IllegalTransitionError(from_status.value, to_status.value))
        if not can_leave:
            return TransitionCheck(False, TransitionForbiddenError(
                role.value, from_status.value, to_status.value, side="from"))
        if not can_enter:
            return TransitionCheck(False, TransitionForbiddenError(
                role.value, from_status.value, to_status.value, side="to"))
        return TransitionCheck(valid=True)

    def validate(self, role: Role, from_status: DemandStatus, to_status: DemandStatus) -> None:
        """Raise ``IllegalTransitionError`` or ``TransitionForbiddenError`` on refusal."""
        result = self.check(role, from_status, to_status)
        if not result.valid:
            raise result.error

    def available_transitions(self, role: Role, current: DemandStatus) -> list[DemandStatus]:
        """Statuses ``role`` may move a demand into from ``current``, in enum order."""
        role, current = Role(role), DemandStatus(current)
        if not self.matrix.can_leave(role, current):
            return []
        successors = self.graph.successors(current)
        return [s for s in DemandStatus if s in successors and self.matrix.can_enter(role, s)]


default_validator = TransitionValidator()
