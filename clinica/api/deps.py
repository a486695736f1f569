from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import PyJWTError

from clinica.core.config import settings
from clinica.core.notifications import NotificationFeed
from clinica.core.redis import RedisClient, redis_client
from clinica.core.security import decode_access_token
from clinica.schemas.auth import UserInfo

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


def get_redis() -> RedisClient:
    return redis_client


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    cache: RedisClient = Depends(get_redis),
) -> UserInfo:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudo validar la sesión",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except PyJWTError:
        raise credentials_exception

    # Logged-out or expired sessions are gone from the cache
    cached = await cache.get_session(token)
    if cached is None or cached.get("user_id") != user_id:
        raise credentials_exception
    return UserInfo(id=user_id, email=payload.get("email") or cached.get("email"))


def get_notifications(request: Request, user: UserInfo = Depends(get_current_user)) -> NotificationFeed:
    """The signed-in user's notices."""
    return request.app.state.notifications.for_owner(user.id)
