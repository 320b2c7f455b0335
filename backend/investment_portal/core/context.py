from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from investment_portal.shared.enums import Role
from investment_portal.shared.exceptions import NotAuthenticated


@dataclass(frozen=True)
class Actor:
    user_id: int
    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    def has_role(self, *roles: Role) -> bool:
        return self.is_admin or self.role in roles


@dataclass(frozen=True)
class RequestContext:
    """
    Identity and correlation data for one unit of work.

    Built per HTTP request by the security dependencies (or per job by the
    worker) and passed explicitly into every service call.
    """

    actor: Actor | None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    system_name: str | None = None

    @classmethod
    def system(cls, name: str) -> "RequestContext":
        return cls(actor=None, system_name=name)

    @property
    def actor_label(self) -> str:
        if self.actor is not None:
            return str(self.actor.user_id)
        return self.system_name or "system"

    def require_actor(self) -> Actor:
        if self.actor is None:
            raise NotAuthenticated("operation requires an authenticated actor")
        return self.actor
