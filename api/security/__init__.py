import uuid

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_session
from api.models import User, UserRole
from config import Settings, get_settings


async def require_service(
    x_api_key: str | None = Header(None),
    settings: Settings = Depends(get_settings),
):
    api_key = settings.env.SERVICE_API_TOKEN
    if not api_key:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="API key not configured")
    if not x_api_key or x_api_key != api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service key")
    return True


async def get_current_user(
    x_user_id: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> User:
    """The acting user, as identified by the upstream auth layer."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Malformed X-User-Id header")
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def require_roles(*roles: UserRole):
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "permission_denied", "message": f"Requires role: {', '.join(r.value for r in roles)}"},
            )
        return user
    return checker
