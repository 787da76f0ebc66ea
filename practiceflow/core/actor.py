"""
The acting user of a request.

Authentication lives outside this package; blueprints build an ``Actor``
from the ``X-User-Id`` / ``X-User-Name`` / ``X-User-Role`` headers and
services receive it as a plain value.
"""

from dataclasses import dataclass

from practiceflow.models.directory import (
    ALL_ROLES,
    MANAGER_ROLES,
    ROLE_CLIENT,
    ROLE_SYSTEM,
    STAFF_ROLES,
)


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation."""
    id: str
    name: str | None
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_client(self) -> bool:
        return self.role == ROLE_CLIENT

    @property
    def is_known_role(self) -> bool:
        return self.role in ALL_ROLES

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "role": self.role}


SYSTEM_ACTOR = Actor(id="system", name="System", role=ROLE_SYSTEM)
