import time

import httpx
import jwt
import pytest
from fastapi import HTTPException

from clinica.api.deps import get_current_user
from clinica.core.config import settings
from clinica.core.errors import AuthError
from clinica.schemas.auth import LoginRequest
from clinica.services.auth_provider import SupabaseAuthClient, classify_auth_error
from clinica.services.auth_service import UNEXPECTED_LOGIN_ERROR, AuthService

USER = {"id": "0b6f6a3e-0000-4000-8000-000000000001", "email": "admin@clinica.com"}


def make_token(sub=USER["id"], **claims):
    payload = {"sub": sub, "aud": settings.JWT_AUDIENCE, "exp": int(time.time()) + 3600, "email": USER["email"]}
    payload.update(claims)
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def provider_returning(status_code, body, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status_code, json=body)

    return SupabaseAuthClient(
        base_url="https://demo.supabase.co",
        api_key="anon-key",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.parametrize(
    "message,status",
    [
        ("Invalid login credentials", 401),
        ("Password is incorrect", 401),
        ("Email not confirmed", 403),
        ("User not found", 401),
        ("Too many requests", 429),
    ],
)
def test_classify_auth_error(message, status):
    assert classify_auth_error(message)[0] == status


def test_unknown_auth_errors_keep_their_text():
    assert classify_auth_error("Signups not allowed") == (401, "Signups not allowed")
    assert classify_auth_error(None) == (401, "Error al iniciar sesión")


@pytest.mark.asyncio
async def test_login_caches_the_session(cache):
    calls = []
    provider = provider_returning(200, {
        "access_token": "token-123",
        "refresh_token": "refresh",
        "expires_in": 1800,
        "token_type": "bearer",
        "user": USER,
    }, calls)

    response = await AuthService(provider, cache).login(LoginRequest(email="  admin@clinica.com ", password=" secreto "))

    assert response.access_token == "token-123"
    assert response.expires_in == 1800
    assert response.user.email == "admin@clinica.com"
    assert cache.sessions["token-123"] == {"user_id": USER["id"], "email": USER["email"]}
    assert cache.expirations["token-123"] == 1800

    request = calls[0]
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"
    assert request.headers["apikey"] == "anon-key"
    assert b'"email":"admin@clinica.com"' in request.content.replace(b" ", b"")


@pytest.mark.asyncio
async def test_login_maps_provider_errors(cache):
    provider = provider_returning(400, {"error": "invalid_grant", "error_description": "Email not confirmed"})

    with pytest.raises(AuthError) as excinfo:
        await AuthService(provider, cache).login(LoginRequest(email="a@b.com", password="x"))
    assert excinfo.value.status_code == 403
    assert cache.sessions == {}


@pytest.mark.asyncio
async def test_login_without_session_is_rejected(cache):
    provider = provider_returning(200, {"user": USER})

    with pytest.raises(AuthError) as excinfo:
        await AuthService(provider, cache).login(LoginRequest(email="a@b.com", password="x"))
    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "No se pudo crear la sesión"


@pytest.mark.asyncio
async def test_login_requires_both_fields(cache):
    service = AuthService(provider_returning(200, {}), cache)
    with pytest.raises(AuthError) as excinfo:
        await service.login(LoginRequest(email="   ", password="x"))
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_login_without_configuration(cache, monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", None)
    service = AuthService(SupabaseAuthClient(api_key="anon-key"), cache)
    with pytest.raises(AuthError) as excinfo:
        await service.login(LoginRequest(email="a@b.com", password="x"))
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_unreachable_provider_is_a_server_error(cache):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = SupabaseAuthClient(base_url="https://demo.supabase.co", api_key="k", transport=httpx.MockTransport(handler))
    with pytest.raises(AuthError) as excinfo:
        await AuthService(provider, cache).login(LoginRequest(email="a@b.com", password="x"))
    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == UNEXPECTED_LOGIN_ERROR


@pytest.mark.asyncio
async def test_provider_health():
    assert await provider_returning(200, {"status": "ok"}).health() == 200


@pytest.mark.asyncio
async def test_current_user_needs_live_session(cache):
    token = make_token()
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(token, cache)
    assert excinfo.value.status_code == 401

    await cache.set_session(token, {"user_id": USER["id"], "email": USER["email"]}, 60)
    user = await get_current_user(token, cache)
    assert user.id == USER["id"]
    assert user.email == USER["email"]

    await AuthService(provider_returning(200, {}), cache).logout(token)
    with pytest.raises(HTTPException):
        await get_current_user(token, cache)


@pytest.mark.asyncio
async def test_current_user_rejects_bad_tokens(cache):
    expired = make_token(exp=int(time.time()) - 10)
    await cache.set_session(expired, {"user_id": USER["id"]}, 60)
    with pytest.raises(HTTPException):
        await get_current_user(expired, cache)

    with pytest.raises(HTTPException):
        await get_current_user("not-a-jwt", cache)

    other = make_token(sub="someone-else")
    await cache.set_session(other, {"user_id": USER["id"]}, 60)
    with pytest.raises(HTTPException):
        await get_current_user(other, cache)
