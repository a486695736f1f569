from typing import Optional

from fastapi import HTTPException

from clinica.core.errors import AuthError
from clinica.core.logger import logger
from clinica.core.redis import RedisClient, redis_client
from clinica.core.security import mask_email
from clinica.schemas.auth import LoginRequest, LoginResponse, UserInfo
from clinica.services.auth_provider import SupabaseAuthClient, classify_auth_error

UNEXPECTED_LOGIN_ERROR = "Error inesperado al iniciar sesión. Intenta nuevamente."


class AuthService:
    def __init__(self, provider: Optional[SupabaseAuthClient] = None, cache: Optional[RedisClient] = None):
        self.provider = provider or SupabaseAuthClient()
        self.cache = cache or redis_client

    async def login(self, login_data: LoginRequest) -> LoginResponse:
        # 1. Server configuration
        if not self.provider.configured:
            logger.error("Login: faltan SUPABASE_URL o SUPABASE_ANON_KEY")
            raise AuthError(500, "Error de configuración del servidor. Contacta al administrador.")

        # 2. Required fields
        email = (login_data.email or "").strip()
        password = (login_data.password or "").strip()
        if not email or not password:
            raise AuthError(400, "Email y contraseña son requeridos")

        # 3. Sign in with the provider
        try:
            result = await self.provider.sign_in_with_password(email, password)
        except HTTPException:
            raise
        except Exception as e:
            logger.exception(f"Login: error inesperado para {mask_email(email)}")
            raise AuthError(500, UNEXPECTED_LOGIN_ERROR) from e

        if result.error:
            status_code, message = classify_auth_error(result.error)
            logger.warning(f"Login rechazado para {mask_email(email)}: {result.error} ({result.status})")
            raise AuthError(status_code, message)

        if not result.session:
            raise AuthError(401, "No se pudo crear la sesión")

        # 4. Cache the session for the token's lifetime
        user = result.user or {}
        token = result.session["access_token"]
        expires_in = int(result.session["expires_in"])
        await self.cache.set_session(
            token,
            {"user_id": str(user.get("id", "")), "email": user.get("email")},
            expires_in,
        )
        logger.info(f"Login correcto: {mask_email(email)}")

        return LoginResponse(
            access_token=token,
            token_type=result.session.get("token_type", "bearer"),
            expires_in=expires_in,
            user=UserInfo(id=str(user.get("id", "")), email=user.get("email")),
        )

    async def logout(self, token: str):
        await self.cache.delete_session(token)
        logger.info("Sesión cerrada")
