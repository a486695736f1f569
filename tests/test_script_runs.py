import argparse
from datetime import datetime, timezone

import pytest
from sqlmodel import select

from clinica.core.config import settings
from clinica.db.models import Patient
from clinica.scripts import migrate_patients
from clinica.scripts import remove_duplicates as dedupe_script

LEGACY_EXPORT = (
    "Reporte de Pacientes\n"
    "Paciente;Documento;Sexo;Edad;Telefono;Email;Fecha Nacimiento;Obra Social;Ficha;\n"
    "DEGLIANTONI, JUAN JOSE;;M;70;336-4535352;;16/03/1955;PAMI;347;\n"
    "PEÑA, MARÍA;20111222;F;;;maria@example.com;;OSDE;12;\n"
    "PEREZ, Juan;;M;²;;;;;;\n"
    ";30111222;F;;;;;;;\n"
)


@pytest.fixture
def scripts_db(monkeypatch, session_factory):
    monkeypatch.setattr(migrate_patients, "async_session", session_factory)
    monkeypatch.setattr(dedupe_script, "async_session", session_factory)
    monkeypatch.setattr(settings, "IMPORT_BATCH_PAUSE_SECONDS", 0)
    return session_factory


async def all_patients(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(Patient).order_by(Patient.apellido))
        return result.scalars().all()


@pytest.mark.asyncio
async def test_migrate_patients_end_to_end(scripts_db, tmp_path):
    async with scripts_db() as session:
        session.add(Patient(nombre="Juan Jose", apellido="Degliantoni"))
        await session.commit()

    csv_path = tmp_path / "ReportePacientes.csv"
    csv_path.write_bytes(LEGACY_EXPORT.encode("latin-1"))
    error_log = tmp_path / "errors.json"
    args = argparse.Namespace(file=csv_path, dry_run=False, batch_size=1, error_log=error_log)

    assert await migrate_patients.migrate(args) == 0

    patients = {p.apellido: p for p in await all_patients(scripts_db)}
    assert sorted(patients) == ["Degliantoni", "PEREZ", "PEÑA"]
    assert patients["Degliantoni"].numero_ficha == "347"
    assert patients["Degliantoni"].telefono == "+543364535352"
    assert patients["PEÑA"].nombre == "MARÍA"
    assert patients["PEÑA"].numero_ficha == "12"
    assert patients["PEÑA"].email == "maria@example.com"
    assert patients["PEREZ"].fecha_nacimiento is None
    assert not error_log.exists()


@pytest.mark.asyncio
async def test_migrate_patients_dry_run_writes_nothing(scripts_db, tmp_path):
    csv_path = tmp_path / "pacientes.csv"
    csv_path.write_bytes(LEGACY_EXPORT.encode("latin-1"))
    args = argparse.Namespace(file=csv_path, dry_run=True, batch_size=None, error_log=tmp_path / "errors.json")

    assert await migrate_patients.migrate(args) == 0
    assert await all_patients(scripts_db) == []


async def seed_duplicates(session_factory):
    async with session_factory() as session:
        session.add_all([
            Patient(nombre="Juan", apellido="Perez", telefono="111-111111",
                    created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
            Patient(nombre="juan", apellido="PEREZ", telefono="111111111", numero_ficha="12",
                    created_at=datetime(2024, 2, 1, tzinfo=timezone.utc)),
        ])
        await session.commit()


@pytest.mark.asyncio
async def test_remove_duplicates_defaults_to_report_only(scripts_db):
    await seed_duplicates(scripts_db)

    args = argparse.Namespace(confirm=False)
    assert await dedupe_script.remove_duplicates(args) == 0

    patients = await all_patients(scripts_db)
    assert len(patients) == 2
    assert sorted(p.numero_ficha or "" for p in patients) == ["", "12"]


@pytest.mark.asyncio
async def test_remove_duplicates_with_confirm_keeps_the_oldest(scripts_db):
    await seed_duplicates(scripts_db)

    assert await dedupe_script.remove_duplicates(argparse.Namespace(confirm=True)) == 0

    [kept] = await all_patients(scripts_db)
    assert kept.nombre == "Juan"
    assert kept.numero_ficha == "12"
