from typing import Any, Optional

import httpx
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from clinica.core.matching import PatternTable, contains, equals


class InvalidDateError(ValueError):
    pass


class NothingToExportError(ValueError):
    pass


class ImportSetupError(RuntimeError):
    """Fatal problem before an import run can start (credentials, input file)."""


class FieldValidationError(HTTPException):
    def __init__(self, field: str, message: str):
        super().__init__(status_code=422, detail={"field": field, "message": message})
        self.field = field
        self.message = message


class ConflictError(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=409, detail=message)
        self.message = message


class NotFoundError(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=404, detail=message)
        self.message = message


class AuthError(HTTPException):
    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)
        self.message = message


GENERIC_ERROR_MESSAGE = "Error inesperado. Intenta nuevamente."
NETWORK_ERROR_MESSAGE = "Error de conexión. Verifica tu internet e intenta nuevamente."

NETWORK_MESSAGES = PatternTable([
    contains("fetch", True),
    contains("network", True),
    contains("conexión", True),
    contains("connection", True),
    contains("timeout", True),
], default=False)

NETWORK_CODES = PatternTable([
    equals("network_error", True),
    equals("timeout", True),
], default=False)

STORE_CODE_MESSAGES = PatternTable([
    equals("23505", "Ya existe un registro con estos datos."),
    equals("23503", "No se puede eliminar porque tiene registros relacionados."),
    equals("23502", "Faltan campos requeridos."),
    equals("pgrst116", "No se encontró el registro solicitado."),
    equals("pgrst301", "Tu sesión expiró. Por favor inicia sesión nuevamente."),
])

AUTH_MESSAGES = PatternTable([
    contains("invalid login credentials", "Email o contraseña incorrectos."),
    contains("incorrect", "Email o contraseña incorrectos."),
    contains("email not confirmed", "Tu email no está confirmado. Verifica tu correo."),
    contains("timeout", "La operación tardó demasiado. Intenta nuevamente."),
])


def error_message(error: Any) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, dict):
        return str(error.get("message") or "")
    return ""


def error_code(error: Any) -> Optional[str]:
    """Store error code from plain errors, driver errors or wrapped SQLAlchemy errors."""
    if isinstance(error, dict):
        code = error.get("code")
        return str(code) if code else None
    # SQLAlchemy errors carry their own unrelated `.code`; the driver error wins
    for candidate in (getattr(error, "orig", None), error):
        if candidate is None:
            continue
        for attr in ("code", "sqlstate", "pgcode"):
            value = getattr(candidate, attr, None)
            if isinstance(value, str) and value:
                return value
    return None


def is_network_error(error: Any) -> bool:
    if not error:
        return False
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    return NETWORK_MESSAGES.matches_any(error_message(error)) or NETWORK_CODES.matches_any(error_code(error))


def friendly_error_message(error: Any) -> str:
    if not error:
        return "Error desconocido"

    if is_network_error(error):
        return NETWORK_ERROR_MESSAGE

    code = error_code(error)
    by_code = STORE_CODE_MESSAGES.classify(code)
    if by_code:
        return by_code
    # Unmapped store errors carry SQL and driver text
    if code or isinstance(error, SQLAlchemyError):
        return GENERIC_ERROR_MESSAGE

    message = error_message(error)
    by_message = AUTH_MESSAGES.classify(message)
    if by_message:
        return by_message

    return message or GENERIC_ERROR_MESSAGE
