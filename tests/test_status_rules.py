"""
Status rule tests — pure, no database:
  - StatusGraph edges and terminal statuses
  - RolePermissionMatrix halves
  - TransitionValidator ordering (illegal edge before forbidden role)
  - Exhaustive role × status properties
  - Available transitions per role
  - Construction guards for incomplete tables
"""

import itertools

import pytest

from demandflow.core.exceptions import IllegalTransitionError, TransitionForbiddenError
from demandflow.models.enums import DemandStatus as S, Role
from demandflow.services.status_rules import (
    DEFAULT_ROLE_MATRIX,
    DEFAULT_STATUS_GRAPH,
    RolePermissionMatrix,
    StatusGraph,
    TransitionValidator,
    default_validator,
)

ALL_PAIRS = list(itertools.product(S, S))


# ═══════════════════════════════════════════════════════════════════════════
# StatusGraph
# ═══════════════════════════════════════════════════════════════════════════


class TestStatusGraph:

    @pytest.mark.parametrize("to_status", [S.CHECK_IN, S.IN_PROGRESS, S.RESOLVED])
    def test_pending_edges(self, to_status):
        assert DEFAULT_STATUS_GRAPH.is_legal_edge(S.PENDING, to_status)

    def test_pending_cannot_jump_to_billed(self):
        assert not DEFAULT_STATUS_GRAPH.is_legal_edge(S.PENDING, S.BILLED)

    def test_no_edge_goes_backwards(self):
        assert not DEFAULT_STATUS_GRAPH.is_legal_edge(S.IN_PROGRESS, S.CHECK_IN)
        assert not DEFAULT_STATUS_GRAPH.is_legal_edge(S.RESOLVED, S.IN_PROGRESS)

    @pytest.mark.parametrize("status", list(S))
    def test_self_loop_always_legal(self, status):
        assert DEFAULT_STATUS_GRAPH.is_legal_edge(status, status)

    def test_terminal_statuses(self):
        terminal = {s for s in S if DEFAULT_STATUS_GRAPH.is_terminal(s)}
        assert terminal == {S.BILLED, S.REJECTED}

    def test_successors(self):
        assert DEFAULT_STATUS_GRAPH.successors(S.CHECK_IN) == frozenset({S.IN_PROGRESS, S.RESOLVED})
        assert DEFAULT_STATUS_GRAPH.successors(S.REJECTED) == frozenset()

    def test_missing_vertex_rejected(self):
        with pytest.raises(ValueError, match="BILLED"):
            StatusGraph({s: set() for s in S if s != S.BILLED})


# ═══════════════════════════════════════════════════════════════════════════
# RolePermissionMatrix
# ═══════════════════════════════════════════════════════════════════════════


class TestRolePermissionMatrix:

    def test_manager_never_moves_status(self):
        for from_status, to_status in ALL_PAIRS:
            assert not DEFAULT_ROLE_MATRIX.is_permitted(Role.MANAGER, from_status, to_status)

    def test_billing_only_resolved_to_billed(self):
        permitted = [
            (f, t) for f, t in ALL_PAIRS
            if DEFAULT_ROLE_MATRIX.is_permitted(Role.BILLING, f, t)
        ]
        assert permitted == [(S.RESOLVED, S.BILLED)]

    def test_halves_are_independent(self):
        # CLERK may enter RESOLVED but not leave it
        assert DEFAULT_ROLE_MATRIX.can_enter(Role.CLERK, S.RESOLVED)
        assert not DEFAULT_ROLE_MATRIX.can_leave(Role.CLERK, S.RESOLVED)

    def test_analyst_cannot_leave_pending(self):
        assert not DEFAULT_ROLE_MATRIX.can_leave(Role.ANALYST, S.PENDING)
        assert DEFAULT_ROLE_MATRIX.is_permitted(Role.ANALYST, S.CHECK_IN, S.IN_PROGRESS)

    def test_missing_role_rejected(self):
        with pytest.raises(ValueError, match="BILLING"):
            RolePermissionMatrix({r: (set(), set()) for r in Role if r != Role.BILLING})


# ═══════════════════════════════════════════════════════════════════════════
# TransitionValidator — properties over every role and status pair
# ═══════════════════════════════════════════════════════════════════════════


class TestValidatorProperties:

    @pytest.mark.parametrize("role", list(Role))
    def test_non_edges_are_illegal_for_every_role(self, role):
        for from_status, to_status in ALL_PAIRS:
            if from_status == to_status or DEFAULT_STATUS_GRAPH.is_legal_edge(from_status, to_status):
                continue
            with pytest.raises(IllegalTransitionError):
                default_validator.validate(role, from_status, to_status)

    @pytest.mark.parametrize("role", list(Role))
    def test_edges_succeed_iff_both_halves_permit(self, role):
        perms = DEFAULT_ROLE_MATRIX[role]
        for from_status, to_status in ALL_PAIRS:
            if from_status == to_status or not DEFAULT_STATUS_GRAPH.is_legal_edge(from_status, to_status):
                continue
            expected = from_status in perms.allowed_from and to_status in perms.allowed_to
            result = default_validator.check(role, from_status, to_status)
            assert result.valid is expected, (role, from_status, to_status)
            if not expected:
                assert isinstance(result.error, TransitionForbiddenError)

    @pytest.mark.parametrize("role,status", list(itertools.product(Role, S)))
    def test_same_status_is_idempotent(self, role, status):
        default_validator.validate(role, status, status)
        assert default_validator.check(role, status, status).valid


class TestValidatorMessages:

    def test_clerk_resolved_to_billed_cannot_alter(self):
        with pytest.raises(TransitionForbiddenError) as exc:
            default_validator.validate(Role.CLERK, S.RESOLVED, S.BILLED)
        assert exc.value.side == "from"
        assert "cannot alter demands with status RESOLVED" in str(exc.value)

    def test_clerk_cannot_enter_billed(self):
        # role may leave RESOLVED but not enter BILLED
        validator = TransitionValidator(matrix=RolePermissionMatrix({
            **{r: (set(), set()) for r in Role},
            Role.CLERK: ({S.RESOLVED}, {S.IN_PROGRESS}),
        }))
        with pytest.raises(TransitionForbiddenError) as exc:
            validator.validate(Role.CLERK, S.RESOLVED, S.BILLED)
        assert exc.value.side == "to"
        assert "cannot change status to BILLED" in str(exc.value)

    def test_illegal_edge_reported_before_role(self):
        # MANAGER has no permissions at all, yet the illegal edge wins
        with pytest.raises(IllegalTransitionError):
            default_validator.validate(Role.MANAGER, S.BILLED, S.PENDING)

    def test_check_exposes_message(self):
        result = default_validator.check(Role.ADMIN, S.IN_PROGRESS, S.PENDING)
        assert result.valid is False
        assert "IN_PROGRESS" in result.message and "PENDING" in result.message

    def test_accepts_plain_strings(self):
        assert default_validator.check("ANALYST", "CHECK_IN", "RESOLVED").valid


class TestSwappableTables:

    def test_custom_graph_changes_legality(self):
        graph = StatusGraph({
            S.PENDING: {S.REJECTED},
            S.CHECK_IN: set(), S.IN_PROGRESS: set(), S.RESOLVED: set(),
            S.REJECTED: set(), S.BILLED: set(),
        })
        matrix = RolePermissionMatrix({
            **{r: (set(), set()) for r in Role},
            Role.ADMIN: ({S.PENDING}, {S.REJECTED}),
        })
        validator = TransitionValidator(graph, matrix)
        validator.validate(Role.ADMIN, S.PENDING, S.REJECTED)
        with pytest.raises(IllegalTransitionError):
            validator.validate(Role.ADMIN, S.PENDING, S.CHECK_IN)


# ═══════════════════════════════════════════════════════════════════════════
# Available transitions
# ═══════════════════════════════════════════════════════════════════════════


class TestAvailableTransitions:

    def test_analyst_from_check_in(self):
        assert default_validator.available_transitions(Role.ANALYST, S.CHECK_IN) == [
            S.IN_PROGRESS, S.RESOLVED,
        ]

    def test_clerk_from_pending(self):
        assert default_validator.available_transitions(Role.CLERK, S.PENDING) == [
            S.CHECK_IN, S.IN_PROGRESS, S.RESOLVED,
        ]

    def test_billing_from_resolved(self):
        assert default_validator.available_transitions(Role.BILLING, S.RESOLVED) == [S.BILLED]

    def test_terminal_has_none(self):
        assert default_validator.available_transitions(Role.ADMIN, S.BILLED) == []

    def test_analyst_from_pending_has_none(self):
        assert default_validator.available_transitions(Role.ANALYST, S.PENDING) == []
