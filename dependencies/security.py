from dataclasses import dataclass
from typing import Optional, Annotated
from fastapi import Depends, Header, HTTPException
from config.settings import settings
from models.enums import UserRole
from services.errors import AuthorizationError
import hmac

AuthHeader = Annotated[Optional[str], Header(alias="Authorization")]
ActorIdHeader = Annotated[Optional[str], Header(alias="X-Actor-Id")]
ActorRoleHeader = Annotated[Optional[str], Header(alias="X-Actor-Role")]


@dataclass(frozen=True)
class Actor:
    id: str
    role: UserRole


def require_internal_token(authorization: AuthHeader = None):
    # no token configured: the gateway in front of us is trusted
    if not settings.INTERNAL_API_TOKEN:
        return None

    if not authorization:
        raise HTTPException(
            status_code=401,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # "Bearer <token>"
    try:
        scheme, token = authorization.split(" ", 1)
    except ValueError:
        raise HTTPException(
            status_code=401,
            detail="Invalid Authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid auth scheme",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # constant-time compare
    if not hmac.compare_digest(token.strip(), settings.INTERNAL_API_TOKEN):
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token


def get_actor(
    actor_id: ActorIdHeader = None,
    actor_role: ActorRoleHeader = None,
    _token=Depends(require_internal_token),
) -> Actor:
    if not actor_id or not actor_role:
        raise HTTPException(status_code=401, detail="X-Actor-Id and X-Actor-Role headers are required")
    try:
        role = UserRole(actor_role.strip().upper())
    except ValueError:
        raise AuthorizationError(f"Unknown role: {actor_role}", details={"allowed": [r.value for r in UserRole]})
    return Actor(id=actor_id.strip(), role=role)


def require_role(*roles: UserRole):
    """Dependency factory: the caller must hold one of `roles`."""
    allowed = frozenset(roles)

    def _check(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in allowed:
            raise AuthorizationError(
                f"{actor.role.value} may not perform this action",
                details={"allowed": sorted(r.value for r in allowed)},
            )
        return actor

    return _check
