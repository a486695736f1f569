from fastapi import APIRouter, Depends

from clinica.api.deps import get_current_user, get_redis, oauth2_scheme
from clinica.core.redis import RedisClient
from clinica.schemas.auth import LoginRequest, LoginResponse, UserInfo
from clinica.services.auth_provider import SupabaseAuthClient
from clinica.services.auth_service import AuthService

router = APIRouter()


def get_auth_provider() -> SupabaseAuthClient:
    return SupabaseAuthClient()


async def get_auth_service(
    provider: SupabaseAuthClient = Depends(get_auth_provider),
    cache: RedisClient = Depends(get_redis),
) -> AuthService:
    return AuthService(provider, cache)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    return await service.login(login_data)


@router.post("/logout")
async def logout(
    token: str = Depends(oauth2_scheme),
    user: UserInfo = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    await service.logout(token)
    return {"success": True}


@router.get("/me", response_model=UserInfo)
async def me(user: UserInfo = Depends(get_current_user)):
    return user
