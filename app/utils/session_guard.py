"""Session guard - resolves the caller's identity and enforces role/ownership.

Guards run as FastAPI dependencies, so they short-circuit a request before
its body is validated or the store is touched.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.errors import Forbidden, Unauthenticated
from app.models.user import Role
from app.utils.auth import verify_access_token


security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def resolve_identity(
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[Identity]:
    """
    Resolve an identity from bearer credentials.

    Args:
        credentials: Bearer credentials, or None when the header is absent

    Returns:
        Identity, or None if the token is missing, invalid, expired,
        or carries an unknown role
    """
    if credentials is None:
        return None

    try:
        claims = verify_access_token(credentials.credentials)
        return Identity(user_id=claims["sub"], role=Role(claims["role"]))
    except (JWTError, ValueError):
        return None


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    """
    Dependency to get the authenticated caller.

    Raises:
        Unauthenticated: If no valid session is present
    """
    identity = resolve_identity(credentials)
    if identity is None:
        raise Unauthenticated()
    return identity


def require_roles(*roles: Role):
    """
    Build a dependency that only admits callers holding one of ``roles``.

    Example:
        @router.delete("/{id}", dependencies=[Depends(require_roles(Role.ADMIN))])
    """
    allowed = frozenset(roles)

    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise Forbidden("Insufficient role for this operation")
        return identity

    return dependency


def ensure_owner_or_role(
    identity: Identity,
    owner_id: str,
    roles: Iterable[Role] = (Role.ADMIN,),
) -> None:
    """
    Check that the caller owns a record or holds an overriding role.

    Raises:
        Forbidden: If the caller is neither the owner nor privileged
    """
    if identity.user_id == owner_id:
        return
    if identity.role in set(roles):
        return
    raise Forbidden()
