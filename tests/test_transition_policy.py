"""
Exhaustive tests for the service transition policy.

Every (action, status) pair is checked against the expected edge table,
and every (status, role, is_assignee) triple is checked for consistency
between ``available_actions`` and ``classify``.
"""

import itertools

import pytest

from practiceflow.models.directory import (
    ROLE_ADMIN,
    ROLE_CLIENT,
    ROLE_PROJECT_MANAGER,
    ROLE_SUPER_ADMIN,
    ROLE_SYSTEM,
    ROLE_TEAM_MEMBER,
)
from practiceflow.models.status_registry import (
    ASSIGNEE_REQUIRED_STATUSES,
    SERVICE_STATUSES,
    TERMINAL_STATUSES,
    is_valid_status,
)
from practiceflow.services import transition_policy as policy

ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_PROJECT_MANAGER, ROLE_TEAM_MEMBER, ROLE_CLIENT, ROLE_SYSTEM)

EXPECTED_EDGES = {
    "ASSIGN": ({"PENDING"}, "ASSIGNED"),
    "DELEGATE": ({"ASSIGNED", "IN_PROGRESS"}, "ASSIGNED"),
    "START_WORK": ({"ASSIGNED"}, "IN_PROGRESS"),
    "REQUEST_DOCUMENTS": ({"IN_PROGRESS"}, "WAITING_FOR_CLIENT"),
    "PUT_ON_HOLD": ({"IN_PROGRESS", "WAITING_FOR_CLIENT"}, "ON_HOLD"),
    "RESUME_WORK": ({"ON_HOLD", "WAITING_FOR_CLIENT"}, "IN_PROGRESS"),
    "SUBMIT_FOR_REVIEW": ({"IN_PROGRESS"}, "UNDER_REVIEW"),
    "APPROVE": ({"UNDER_REVIEW"}, "COMPLETED"),
    "REQUEST_CHANGES": ({"UNDER_REVIEW"}, "CHANGES_REQUESTED"),
    "START_FIXING": ({"CHANGES_REQUESTED"}, "IN_PROGRESS"),
    "MARK_COMPLETE": ({"UNDER_REVIEW", "IN_PROGRESS"}, "COMPLETED"),
    "DELIVER": ({"COMPLETED"}, "DELIVERED"),
    "GENERATE_INVOICE": ({"DELIVERED"}, "INVOICED"),
    "CLOSE": ({"DELIVERED", "INVOICED", "COMPLETED"}, "CLOSED"),
    "CANCEL": (set(SERVICE_STATUSES) - {"CLOSED", "CANCELLED"}, "CANCELLED"),
    "REOPEN": ({"CLOSED", "CANCELLED"}, "PENDING"),
}


class TestActionTable:
    def test_sixteen_workflow_actions(self):
        assert set(policy.WORKFLOW_ACTIONS) == set(EXPECTED_EDGES)
        assert not policy.CREATION_ACTIONS & set(policy.WORKFLOW_ACTIONS)

    @pytest.mark.parametrize("action", sorted(EXPECTED_EDGES))
    def test_edges(self, action):
        spec = policy.get_action_spec(action)
        from_statuses, resulting = EXPECTED_EDGES[action]
        assert set(spec.from_statuses) == from_statuses
        assert spec.resulting_status == resulting

    def test_every_status_named_is_registered(self):
        for spec in policy.ACTION_SPECS.values():
            assert is_valid_status(spec.resulting_status)
            for status in spec.from_statuses:
                assert is_valid_status(status)

    def test_required_inputs(self):
        required = {a for a, s in policy.ACTION_SPECS.items() if s.requires_input}
        assert required == {
            "ASSIGN", "DELEGATE", "REQUEST_DOCUMENTS", "PUT_ON_HOLD",
            "REQUEST_CHANGES", "CANCEL", "REOPEN",
        }
        assert policy.ACTION_SPECS["REQUEST_DOCUMENTS"].input_kind == policy.INPUT_DOCUMENT_LIST
        assert policy.ACTION_SPECS["ASSIGN"].input_kind == policy.INPUT_ASSIGNEE
        for action in ("PUT_ON_HOLD", "REQUEST_CHANGES", "CANCEL", "REOPEN"):
            assert policy.ACTION_SPECS[action].input_kind == policy.INPUT_REASON

    def test_terminal_statuses_only_reopen(self):
        for status in TERMINAL_STATUSES:
            assert policy.legal_actions(status) == ["REOPEN"]

    def test_every_non_terminal_status_has_an_exit(self):
        for status in SERVICE_STATUSES:
            if status not in TERMINAL_STATUSES:
                assert "CANCEL" in policy.legal_actions(status)

    def test_to_dict_shape(self):
        d = policy.ACTION_SPECS["PUT_ON_HOLD"].to_dict()
        assert d["action"] == "PUT_ON_HOLD"
        assert d["label"] == "Put On Hold"
        assert d["requires_input"] is True
        assert d["input_kind"] == "reason"
        assert d["resulting_status"] == "ON_HOLD"


class TestClassify:
    def test_unknown_action(self):
        assert policy.classify("FROBNICATE", "PENDING", ROLE_ADMIN, False) == policy.UNKNOWN_ACTION

    def test_creation_action_is_unknown_to_policy(self):
        assert policy.classify("CREATE", "PENDING", ROLE_ADMIN, False) == policy.UNKNOWN_ACTION

    def test_status_checked_before_permission(self):
        # CLIENT may never APPROVE, but from PENDING the answer is the status
        assert policy.classify("APPROVE", "PENDING", ROLE_CLIENT, False) == policy.INVALID_TRANSITION

    def test_team_member_needs_to_be_assignee(self):
        assert policy.classify("START_WORK", "ASSIGNED", ROLE_TEAM_MEMBER, False) == policy.NOT_PERMITTED
        assert policy.classify("START_WORK", "ASSIGNED", ROLE_TEAM_MEMBER, True) == policy.ALLOWED

    def test_manager_tier_works_without_being_assignee(self):
        for role in (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_PROJECT_MANAGER):
            assert policy.classify("START_WORK", "ASSIGNED", role, False) == policy.ALLOWED

    def test_team_member_cannot_review(self):
        assert policy.classify("APPROVE", "UNDER_REVIEW", ROLE_TEAM_MEMBER, True) == policy.NOT_PERMITTED
        assert policy.classify("DELIVER", "COMPLETED", ROLE_TEAM_MEMBER, True) == policy.NOT_PERMITTED

    def test_team_member_cannot_assign_or_cancel(self):
        assert policy.classify("ASSIGN", "PENDING", ROLE_TEAM_MEMBER, False) == policy.NOT_PERMITTED
        assert policy.classify("CANCEL", "IN_PROGRESS", ROLE_TEAM_MEMBER, True) == policy.NOT_PERMITTED

    def test_system_generates_invoice_only(self):
        assert policy.classify("GENERATE_INVOICE", "DELIVERED", ROLE_SYSTEM, False) == policy.ALLOWED
        assert policy.available_actions("DELIVERED", ROLE_SYSTEM, False) == [
            policy.ACTION_SPECS["GENERATE_INVOICE"],
        ]

    @pytest.mark.parametrize("status", SERVICE_STATUSES)
    def test_client_has_no_actions(self, status):
        assert policy.available_actions(status, ROLE_CLIENT, False) == []
        assert policy.available_actions(status, ROLE_CLIENT, True) == []


class TestAvailableActionsConsistency:
    @pytest.mark.parametrize(
        "status,role,is_assignee",
        list(itertools.product(SERVICE_STATUSES, ROLES, (False, True))),
    )
    def test_available_matches_classify(self, status, role, is_assignee):
        available = {s.action for s in policy.available_actions(status, role, is_assignee)}
        for action in policy.WORKFLOW_ACTIONS:
            verdict = policy.classify(action, status, role, is_assignee)
            assert (action in available) == (verdict == policy.ALLOWED), (action, verdict)

    @pytest.mark.parametrize("status,role", list(itertools.product(SERVICE_STATUSES, ROLES)))
    def test_available_actions_are_legal(self, status, role):
        legal = set(policy.legal_actions(status))
        for spec in policy.available_actions(status, role, True):
            assert spec.action in legal

    def test_pending_manager_actions(self):
        actions = [s.action for s in policy.available_actions("PENDING", ROLE_PROJECT_MANAGER, False)]
        assert actions == ["ASSIGN", "CANCEL"]

    def test_in_progress_assignee_team_member(self):
        actions = [s.action for s in policy.available_actions("IN_PROGRESS", ROLE_TEAM_MEMBER, True)]
        assert actions == ["REQUEST_DOCUMENTS", "PUT_ON_HOLD", "SUBMIT_FOR_REVIEW"]

    @pytest.mark.parametrize("status", sorted(ASSIGNEE_REQUIRED_STATUSES))
    def test_non_assignee_team_member_sees_nothing(self, status):
        assert policy.available_actions(status, ROLE_TEAM_MEMBER, False) == []
