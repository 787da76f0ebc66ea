"""
Workflow-wide exception hierarchy.

Services raise these; blueprints register handlers against them once
(see ``practiceflow.utils.errors.register_error_handlers``) and get a
consistent HTTP status for every failure kind:

    NotFoundError             404  service / slot / request missing or soft-deleted
    PermissionDeniedError     403  actor role / assignee mismatch for the action
    ValidationError           400  missing reason, notes, assignee, document list …
    InvalidTransitionError    409  action not legal from the current status
    ConcurrencyConflictError  409  lost the per-service race; re-read and retry
    ConflictError             409  duplicate / already-processed record

Usage:
    from practiceflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Service", resource_id=service_id)
    raise ValidationError("reason is required", details={"reason": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist or is soft-deleted.

    Args:
        resource: Human-readable model name (e.g. "Service", "DocumentSlot").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Recoverable: the UI re-prompts the user (e.g. for a missing reason).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the actor may not perform an action on a record.

    Never retried: the UI should not have offered the action.
    """

    def __init__(self, actor_id: str | None, action: str, reason: str | None = None) -> None:
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        msg = f"User {actor_id or 'anonymous'} is not allowed to {action}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidTransitionError(Exception):
    """Raised when an action is not legal from the record's current status.

    The caller read a stale status or offered a wrong button; it must
    re-fetch state and re-evaluate the available actions.
    """

    def __init__(self, entity: str, entity_id: str, action: str, current: str,
                 reason: str | None = None) -> None:
        msg = f"Cannot '{action}' {entity} {entity_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.current_status = current
        self.reason = reason


class ConcurrencyConflictError(Exception):
    """Raised when another transaction changed the record first.

    The caller retries once with fresh state, then surfaces the error.
    """

    def __init__(self, resource: str, resource_id: str,
                 expected_version: int | None = None,
                 actual_version: int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        msg = f"{resource} {resource_id} was modified concurrently"
        if expected_version is not None:
            msg += f" (expected version {expected_version}, found {actual_version})"
        super().__init__(msg)


class ConflictError(Exception):
    """Raised when an operation would duplicate or re-process a record.

    Args:
        resource: Model name.
        field: The field that conflicts.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
