"""
Actor and capability dependencies.

Authentication happens upstream: the gateway forwards the caller's
identity in the X-Actor-Id / X-Actor-Role headers. These dependencies
turn those headers into an Actor and enforce roles and feature flags.
"""
import enum
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Request
from pydantic import BaseModel

from payroll_app.core.config import settings
from payroll_app.core.exceptions import AccessDeniedError, AuthenticationError, FeatureDisabledError
from payroll_app.core.features import FeatureFlags

logger = logging.getLogger(__name__)


class ActorRole(str, enum.Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Actor(BaseModel):
    id: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def employee_id(self) -> Optional[int]:
        """The employee record this actor acts as, when the id is numeric."""
        try:
            return int(self.id)
        except ValueError:
            return None


def get_current_actor(request: Request) -> Actor:
    actor_id = request.headers.get(settings.actor_id_header)
    role = request.headers.get(settings.actor_role_header)

    if not actor_id or not role:
        logger.warning("Authentication failed: missing actor headers")
        raise AuthenticationError("Missing actor context")

    try:
        actor_role = ActorRole(role.lower())
    except ValueError:
        logger.warning(f"Authentication failed: unknown role {role!r}")
        raise AuthenticationError(f"Unknown actor role '{role}'") from None

    return Actor(id=actor_id, role=actor_role)


def require_role(allowed_roles: List[ActorRole]) -> Callable:
    """
    Dependency factory that checks the actor has one of the allowed roles.

    Usage:
        @router.get("/admin-only")
        def admin_endpoint(actor: Actor = Depends(require_role([ActorRole.ADMIN]))):
            ...
    """
    def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise AccessDeniedError(
                f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return actor
    return role_checker


def require_admin() -> Callable:
    """Shorthand for requiring the admin role."""
    return require_role([ActorRole.ADMIN])


def get_feature_flags(request: Request) -> FeatureFlags:
    flags = getattr(request.app.state, "feature_flags", None)
    if flags is None:
        flags = FeatureFlags.from_settings(settings.features)
    return flags


def require_feature(flag: str) -> Callable:
    """Disabled capabilities answer 404, as if the route did not exist."""
    def feature_checker(flags: FeatureFlags = Depends(get_feature_flags)) -> None:
        if not flags.is_enabled(flag):
            raise FeatureDisabledError(flag)
    return feature_checker
