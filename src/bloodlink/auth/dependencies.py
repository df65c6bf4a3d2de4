"""FastAPI authentication and role-gating dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.jwt import verify_token
from bloodlink.auth.service import get_user_by_id
from bloodlink.database import get_session
from bloodlink.db.models import User

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Extract and verify the bearer JWT, return the User model.

    Raises 401 for a missing/invalid token or unknown user, 403 for a
    deactivated account.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return user


def require_role(*roles: str) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits users holding any of `roles`."""

    async def _require(user: User = Depends(get_current_user)) -> User:
        if not any(user.has_role(role) for role in roles):
            raise HTTPException(status_code=403, detail=f"Access denied. Requires role: {' or '.join(roles)}")
        return user

    return _require


require_donor = require_role("donor")
require_recipient = require_role("recipient")
require_admin = require_role("admin")
