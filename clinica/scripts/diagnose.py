"""
Environment and connectivity check for a deployment.

    python -m clinica.scripts.diagnose [--email admin@clinica.com --password ...]

Checks configuration, the auth provider (raw HTTP probe with a short
timeout), the database and Redis; with credentials it also tries a login.
Exits 1 when a required check fails.
"""
import argparse
import asyncio
import sys
from dataclasses import dataclass
from typing import List, Optional

import httpx

from clinica.core.config import settings
from clinica.core.errors import ImportSetupError, friendly_error_message
from clinica.core.logger import logger
from clinica.core.redis import redis_client
from clinica.core.security import mask_email
from clinica.db.session import async_session
from clinica.scripts.common import check_database, run
from clinica.services.auth_provider import SupabaseAuthClient, classify_auth_error

REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_ANON_KEY", "DATABASE_URL")
OPTIONAL_SETTINGS = ("SUPABASE_SERVICE_ROLE_KEY", "REDIS_URL")


@dataclass
class Check:
    name: str
    ok: bool
    detail: str = ""
    required: bool = True


def check_settings() -> List[Check]:
    checks = []
    for key in REQUIRED_SETTINGS + OPTIONAL_SETTINGS:
        present = bool(getattr(settings, key, None))
        checks.append(Check(
            name=key,
            ok=present,
            detail="Configurada" if present else "FALTANTE",
            required=key in REQUIRED_SETTINGS,
        ))
    return checks


async def probe_auth_provider(client: SupabaseAuthClient) -> Check:
    if not client.configured:
        return Check("Proveedor de autenticación", False, "Sin URL o clave")
    try:
        status = await client.health()
    except httpx.HTTPError as e:
        return Check("Proveedor de autenticación", False, friendly_error_message(e))
    return Check("Proveedor de autenticación", status < 500, f"HTTP {status}")


async def probe_database() -> Check:
    try:
        async with async_session() as session:
            await asyncio.wait_for(check_database(session), timeout=settings.PROBE_TIMEOUT_SECONDS)
    except (ImportSetupError, asyncio.TimeoutError) as e:
        return Check("Base de datos", False, str(e) or "Tiempo de espera agotado")
    return Check("Base de datos", True, "SELECT 1 OK")


async def probe_redis() -> Check:
    try:
        await asyncio.wait_for(redis_client.ping(), timeout=settings.PROBE_TIMEOUT_SECONDS)
    except (OSError, asyncio.TimeoutError) as e:
        return Check("Redis", False, str(e) or "Tiempo de espera agotado", required=False)
    except Exception as e:
        # redis-py raises its own ConnectionError hierarchy
        return Check("Redis", False, f"{type(e).__name__}: {e}", required=False)
    return Check("Redis", True, "PING OK", required=False)


async def probe_login(client: SupabaseAuthClient, email: str, password: str) -> Check:
    try:
        result = await client.sign_in_with_password(email.strip(), password.strip())
    except httpx.HTTPError as e:
        return Check("Login", False, friendly_error_message(e))
    if result.error:
        status, message = classify_auth_error(result.error)
        return Check("Login", False, f"{mask_email(email)}: {message} (HTTP {status})")
    if not result.session:
        return Check("Login", False, "No se pudo crear la sesión")
    return Check("Login", True, f"{mask_email(email)}: sesión creada")


def report(checks: List[Check]) -> int:
    failed = [c for c in checks if c.required and not c.ok]
    for check in checks:
        mark = "OK" if check.ok else ("FALLA" if check.required else "AVISO")
        logger.info(f"[{mark}] {check.name}: {check.detail}")
    if failed:
        logger.error(f"{len(failed)} verificaciones fallaron")
        return 1
    logger.info("Todo en orden")
    return 0


async def diagnose(args) -> int:
    client = SupabaseAuthClient(timeout=settings.PROBE_TIMEOUT_SECONDS)
    checks = check_settings()
    checks.append(await probe_auth_provider(client))
    checks.append(await probe_database())
    checks.append(await probe_redis())
    if args.email and args.password:
        checks.append(await probe_login(client, args.email, args.password))
    await redis_client.close()
    return report(checks)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Diagnóstico de configuración y conectividad")
    parser.add_argument("--email", default=None, help="Email para probar el login")
    parser.add_argument("--password", default=None, help="Contraseña para probar el login")
    args = parser.parse_args(argv)
    return run(diagnose(args))


if __name__ == "__main__":
    sys.exit(main())
