from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

from clinica.core.config import settings
from clinica.core.matching import PatternTable, contains

DEFAULT_AUTH_ERROR = (401, "Error al iniciar sesión")

# (status, message) per provider error text
AUTH_ERROR_STATUS = PatternTable([
    contains("invalid login credentials", (401, "Email o contraseña incorrectos. Verifica tus credenciales.")),
    contains("incorrect", (401, "Email o contraseña incorrectos. Verifica tus credenciales.")),
    contains("email not confirmed", (403, "Tu email no está confirmado. Verifica tu correo o contacta al administrador.")),
    contains("user not found", (401, "Usuario no encontrado. Verifica que el email sea correcto.")),
    contains("too many requests", (429, "Demasiados intentos. Por favor espera unos minutos antes de intentar nuevamente.")),
])


def classify_auth_error(message: Optional[str]) -> Tuple[int, str]:
    """Status code and user-facing message for a provider error; unknown errors keep their text."""
    classified = AUTH_ERROR_STATUS.classify(message)
    if classified:
        return classified
    return DEFAULT_AUTH_ERROR[0], message or DEFAULT_AUTH_ERROR[1]


@dataclass
class AuthResult:
    session: Optional[Dict[str, Any]] = None
    user: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    status: Optional[int] = None


class SupabaseAuthClient:
    """
    Thin client for the hosted auth provider's password grant.

    A custom ``transport`` can be passed in, which is how tests stub the
    provider with ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL or "").rstrip("/")
        self.api_key = api_key or settings.SUPABASE_ANON_KEY
        self.timeout = timeout or settings.PROBE_TIMEOUT_SECONDS
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"apikey": self.api_key, "Content-Type": "application/json"},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        async with self._client() as client:
            response = await client.post(
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )

        body = response.json() if response.content else {}
        if response.status_code >= 400:
            message = (
                body.get("error_description")
                or body.get("msg")
                or body.get("message")
                or body.get("error")
                or response.reason_phrase
            )
            return AuthResult(error=message, status=response.status_code)

        if not body.get("access_token"):
            return AuthResult(user=body.get("user"))

        session = {
            "access_token": body["access_token"],
            "refresh_token": body.get("refresh_token"),
            "expires_in": body.get("expires_in") or settings.SESSION_EXPIRE_SECONDS,
            "token_type": body.get("token_type", "bearer"),
        }
        return AuthResult(session=session, user=body.get("user"))

    async def health(self) -> int:
        """Status code of the provider's health endpoint; raises httpx errors when unreachable."""
        async with self._client() as client:
            response = await client.get("/auth/v1/health")
        return response.status_code
