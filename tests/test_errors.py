import json

import httpx
import pytest
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from clinica.core.errors import (
    GENERIC_ERROR_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    ConflictError,
    FieldValidationError,
    error_code,
    friendly_error_message,
    is_network_error,
)
from clinica.core.matching import PatternTable, contains, equals
from clinica.main import integrity_error_handler


class DriverError(Exception):
    pgcode = "23503"


def test_pattern_table_first_match_wins():
    table = PatternTable([
        equals("no", "exact"),
        contains("no", "substring"),
    ], default="none")
    assert table.classify("  NO ") == "exact"
    assert table.classify("nota") == "substring"
    assert table.classify("si") == "none"
    assert table.classify(None) == "none"
    assert table.matches_any("Nono")
    assert not table.matches_any("")


def test_network_errors_are_detected():
    assert is_network_error(httpx.ConnectError("boom"))
    assert is_network_error({"message": "Failed to fetch"})
    assert is_network_error({"code": "timeout"})
    assert is_network_error(Exception("Error de conexión"))
    assert not is_network_error({"message": "algo salió mal"})
    assert not is_network_error(None)


def test_store_codes_map_to_messages():
    assert friendly_error_message({"code": "23505", "message": "duplicate key"}) == "Ya existe un registro con estos datos."
    assert friendly_error_message({"code": "PGRST116"}) == "No se encontró el registro solicitado."
    assert friendly_error_message({"code": "PGRST301"}).startswith("Tu sesión expiró")


def test_wrapped_driver_code_wins_over_sqlalchemy_code():
    error = IntegrityError("DELETE FROM pacientes", {}, DriverError("fk violation"))
    assert error_code(error) == "23503"
    assert friendly_error_message(error) == "No se puede eliminar porque tiene registros relacionados."


def test_message_fallbacks():
    assert friendly_error_message(Exception("Invalid login credentials")) == "Email o contraseña incorrectos."
    assert friendly_error_message(Exception("Email not confirmed")).startswith("Tu email no está confirmado")
    assert friendly_error_message(httpx.ReadTimeout("slow")) == NETWORK_ERROR_MESSAGE
    assert friendly_error_message(Exception("algo raro")) == "algo raro"
    assert friendly_error_message(Exception("")) == GENERIC_ERROR_MESSAGE
    assert friendly_error_message(None) == "Error desconocido"


def test_domain_errors_carry_status_and_detail():
    error = FieldValidationError("email", "El email no tiene un formato válido")
    assert error.status_code == 422
    assert error.detail == {"field": "email", "message": "El email no tiene un formato válido"}
    assert ConflictError("duplicado").status_code == 409


class CheckViolation(Exception):
    sqlstate = "23514"


def test_unmapped_store_errors_hide_sql_text():
    error = IntegrityError(
        "INSERT INTO pacientes (nombre) VALUES ($1)", {}, CheckViolation('violates check constraint "pacientes_chk"')
    )
    assert friendly_error_message(error) == GENERIC_ERROR_MESSAGE
    assert friendly_error_message({"code": "42P01", "message": 'relation "turnos" does not exist'}) == GENERIC_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_integrity_error_response_does_not_leak_sql():
    request = Request({"type": "http", "method": "POST", "path": "/api/v1/patients/", "headers": []})
    error = IntegrityError("INSERT INTO pacientes (nombre) VALUES ($1)", {}, CheckViolation("check constraint"))

    response = await integrity_error_handler(request, error)

    assert response.status_code == 409
    assert json.loads(response.body) == {"detail": GENERIC_ERROR_MESSAGE}
