"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user     → decode JWT, load user from DB, return User
  require_actor        → admin-capable user with a complete identity (id, name, email)
  require_superadmin   → restrict to the superadmin role
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.auth.jwt import decode_token
from goagri.auth.permissions import ADMIN_ROLES, is_superadmin
from goagri.database import get_db
from goagri.middleware.exceptions import AuthenticationError, PermissionDeniedError
from goagri.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the bearer token and load the account it names."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token")

    payload = decode_token(credentials.credentials)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise AuthenticationError("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.active:
        raise AuthenticationError("Account not found or inactive")

    return user


# ── Admin actors ────────────────────────────────────────────

async def require_actor(user: User = Depends(get_current_user)) -> User:
    """An admin-capable caller whose identity can be snapshotted into the log.

    Missing id, name or email is an authentication failure: nothing is
    logged or mutated for such a caller.
    """
    if not (user.id and user.name and user.email):
        raise AuthenticationError("Incomplete admin identity (id, name and email required)")
    if user.role not in ADMIN_ROLES:
        raise PermissionDeniedError("Admin access required")
    return user


async def require_superadmin(user: User = Depends(require_actor)) -> User:
    """Restrict endpoint to superadmins only."""
    if not is_superadmin(user.role):
        raise PermissionDeniedError("Forbidden: Super admin access required")
    return user
