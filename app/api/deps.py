"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User
from app.services.directory import DirectoryService

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict | None:
    """Extract and decode the current JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Decoded token payload or None
    """
    if not credentials:
        return None

    payload = decode_access_token(credentials.credentials)
    return payload


async def get_current_actor(
    token: Annotated[dict | None, Depends(get_current_token)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the calling actor from the directory.

    The record is loaded on every request so role and status changes take
    effect immediately. Status rules are left to the access guard, which lets
    pending actors read their own records.

    Raises:
        HTTPException: If the token is missing, invalid or names no actor
    """
    if not token or not token.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor = await DirectoryService(session).get_actor(token["sub"])
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return actor


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[User, Depends(get_current_actor)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
