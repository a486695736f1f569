import pytest
from sqlalchemy.exc import OperationalError

from clinica.db.models import Patient
from clinica.services.fichas import compute_next_ficha, next_ficha_number


def test_compute_next_ficha():
    assert compute_next_ficha([]) == "1"
    assert compute_next_ficha(["0", "", None]) == "1"
    assert compute_next_ficha(["1", "5", "0", "", None, "abc", "3"]) == "6"
    assert compute_next_ficha(["-4", " 9 "]) == "10"


def test_compute_next_ficha_only_counts_plain_digits():
    assert compute_next_ficha(["1_000", "3"]) == "4"
    assert compute_next_ficha(["+50", "\u0665\u0660", "\uff19\uff19", "2"]) == "3"
    assert compute_next_ficha(["0012"]) == "13"


@pytest.mark.asyncio
async def test_next_ficha_number_reads_stored_fichas(session):
    session.add_all([
        Patient(nombre="Ana", apellido="Gomez", numero_ficha="7"),
        Patient(nombre="Luis", apellido="Diaz"),
        Patient(nombre="Eva", apellido="Paz", numero_ficha="A-12"),
    ])
    await session.commit()

    assert await next_ficha_number(session) == "8"


class BrokenSession:
    async def execute(self, stmt):
        raise OperationalError("SELECT", {}, Exception("database is down"))


@pytest.mark.asyncio
async def test_next_ficha_number_restarts_when_query_fails():
    assert await next_ficha_number(BrokenSession()) == "1"
