"""
Service Transition Policy

Pure, deterministic answer to "which actions may this actor take on a
service in this status?".  One table for every role; the workflow engine
and the action-button API both derive from it.

Gating rules:
  - ASSIGN / DELEGATE / CANCEL / REOPEN: manager tier only
    (SUPER_ADMIN, ADMIN, PROJECT_MANAGER), no assignee requirement.
  - Work actions (START_WORK, REQUEST_DOCUMENTS, PUT_ON_HOLD, RESUME_WORK,
    SUBMIT_FOR_REVIEW, START_FIXING): any staff role, and the actor must
    be the current assignee or manager tier.
  - Review / closing actions (APPROVE, REQUEST_CHANGES, MARK_COMPLETE,
    DELIVER, CLOSE): manager tier.
  - GENERATE_INVOICE: manager tier or the SYSTEM role (billing job).

Usage:
    from practiceflow.services.transition_policy import available_actions, classify

    specs = available_actions("IN_PROGRESS", "TEAM_MEMBER", is_assignee=True)
    verdict = classify("APPROVE", "IN_PROGRESS", "TEAM_MEMBER", True)
"""

from dataclasses import dataclass

from practiceflow.models.directory import MANAGER_ROLES, ROLE_SYSTEM, STAFF_ROLES
from practiceflow.models.status_registry import (
    ASSIGNED,
    CANCELLED,
    CHANGES_REQUESTED,
    CLOSED,
    COMPLETED,
    DELIVERED,
    IN_PROGRESS,
    INVOICED,
    ON_HOLD,
    PENDING,
    SERVICE_STATUSES,
    TERMINAL_STATUSES,
    UNDER_REVIEW,
    WAITING_FOR_CLIENT,
)


# Input kinds an action may ask the UI for
INPUT_NOTES = "notes"
INPUT_REASON = "reason"
INPUT_ASSIGNEE = "assignee"
INPUT_DOCUMENT_LIST = "document_list"

# classify() verdicts
ALLOWED = "allowed"
UNKNOWN_ACTION = "unknown_action"
INVALID_TRANSITION = "invalid_transition"
NOT_PERMITTED = "not_permitted"

# Written by service creation, never executed as a transition
CREATION_ACTIONS = frozenset({"CREATE", "CREATE_FROM_REQUEST"})


@dataclass(frozen=True)
class ActionSpec:
    """One row of the transition table."""
    action: str
    label: str
    from_statuses: tuple
    resulting_status: str
    requires_input: bool
    input_kind: str | None
    allowed_roles: frozenset
    assignee_gated: bool = True
    input_label: str | None = None

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "label": self.label,
            "from_statuses": list(self.from_statuses),
            "resulting_status": self.resulting_status,
            "requires_input": self.requires_input,
            "input_kind": self.input_kind,
            "input_label": self.input_label,
            "allowed_roles": sorted(self.allowed_roles),
        }


_NON_TERMINAL = tuple(s for s in SERVICE_STATUSES if s not in TERMINAL_STATUSES)

_ACTION_SPECS = (
    ActionSpec(
        "ASSIGN", "Assign", (PENDING,), ASSIGNED,
        True, INPUT_ASSIGNEE, MANAGER_ROLES, assignee_gated=False,
        input_label="Assignee",
    ),
    ActionSpec(
        "DELEGATE", "Delegate", (ASSIGNED, IN_PROGRESS), ASSIGNED,
        True, INPUT_ASSIGNEE, MANAGER_ROLES, assignee_gated=False,
        input_label="Delegate to",
    ),
    ActionSpec(
        "START_WORK", "Start Work", (ASSIGNED,), IN_PROGRESS,
        False, INPUT_NOTES, STAFF_ROLES,
    ),
    ActionSpec(
        "REQUEST_DOCUMENTS", "Request Documents", (IN_PROGRESS,), WAITING_FOR_CLIENT,
        True, INPUT_DOCUMENT_LIST, STAFF_ROLES,
        input_label="Documents needed",
    ),
    ActionSpec(
        "PUT_ON_HOLD", "Put On Hold", (IN_PROGRESS, WAITING_FOR_CLIENT), ON_HOLD,
        True, INPUT_REASON, STAFF_ROLES,
        input_label="Reason",
    ),
    ActionSpec(
        "RESUME_WORK", "Resume Work", (ON_HOLD, WAITING_FOR_CLIENT), IN_PROGRESS,
        False, INPUT_NOTES, STAFF_ROLES,
    ),
    ActionSpec(
        "SUBMIT_FOR_REVIEW", "Submit for Review", (IN_PROGRESS,), UNDER_REVIEW,
        False, INPUT_NOTES, STAFF_ROLES,
    ),
    ActionSpec(
        "APPROVE", "Approve", (UNDER_REVIEW,), COMPLETED,
        False, INPUT_NOTES, MANAGER_ROLES,
    ),
    ActionSpec(
        "REQUEST_CHANGES", "Request Changes", (UNDER_REVIEW,), CHANGES_REQUESTED,
        True, INPUT_REASON, MANAGER_ROLES,
        input_label="What needs to change?",
    ),
    ActionSpec(
        "START_FIXING", "Start Fixing", (CHANGES_REQUESTED,), IN_PROGRESS,
        False, INPUT_NOTES, STAFF_ROLES,
    ),
    ActionSpec(
        "MARK_COMPLETE", "Mark Complete", (UNDER_REVIEW, IN_PROGRESS), COMPLETED,
        False, INPUT_NOTES, MANAGER_ROLES,
    ),
    ActionSpec(
        "DELIVER", "Deliver", (COMPLETED,), DELIVERED,
        False, INPUT_NOTES, MANAGER_ROLES,
    ),
    ActionSpec(
        "GENERATE_INVOICE", "Generate Invoice", (DELIVERED,), INVOICED,
        False, None, MANAGER_ROLES | {ROLE_SYSTEM}, assignee_gated=False,
    ),
    ActionSpec(
        "CLOSE", "Close", (DELIVERED, INVOICED, COMPLETED), CLOSED,
        False, INPUT_NOTES, MANAGER_ROLES,
    ),
    ActionSpec(
        "CANCEL", "Cancel", _NON_TERMINAL, CANCELLED,
        True, INPUT_REASON, MANAGER_ROLES, assignee_gated=False,
        input_label="Cancellation reason",
    ),
    ActionSpec(
        "REOPEN", "Reopen", (CLOSED, CANCELLED), PENDING,
        True, INPUT_REASON, MANAGER_ROLES, assignee_gated=False,
        input_label="Reason for reopening",
    ),
)

ACTION_SPECS = {spec.action: spec for spec in _ACTION_SPECS}
WORKFLOW_ACTIONS = tuple(ACTION_SPECS)


def get_action_spec(action: str) -> ActionSpec | None:
    return ACTION_SPECS.get(action)


def is_permitted(spec: ActionSpec, actor_role: str, is_assignee: bool) -> bool:
    """Role and assignee gate for one action, regardless of status."""
    if actor_role not in spec.allowed_roles:
        return False
    if spec.assignee_gated:
        return is_assignee or actor_role in MANAGER_ROLES
    return True


def classify(action: str, current_status: str, actor_role: str, is_assignee: bool) -> str:
    """
    Explain why an action is or is not available.

    Status legality is checked before permission, so an action that could
    never run from this status reports INVALID_TRANSITION for every actor.

    Returns:
        ALLOWED | UNKNOWN_ACTION | INVALID_TRANSITION | NOT_PERMITTED
    """
    spec = ACTION_SPECS.get(action)
    if spec is None:
        return UNKNOWN_ACTION
    if current_status not in spec.from_statuses:
        return INVALID_TRANSITION
    if not is_permitted(spec, actor_role, is_assignee):
        return NOT_PERMITTED
    return ALLOWED


def available_actions(current_status: str, actor_role: str, is_assignee: bool) -> list[ActionSpec]:
    """Actions the actor may take from ``current_status``, in table order."""
    return [
        spec for spec in _ACTION_SPECS
        if current_status in spec.from_statuses
        and is_permitted(spec, actor_role, is_assignee)
    ]


def legal_actions(current_status: str) -> list[str]:
    """Every action legal from ``current_status`` for some actor."""
    return [spec.action for spec in _ACTION_SPECS if current_status in spec.from_statuses]
