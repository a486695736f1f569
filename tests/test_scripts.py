from datetime import date, datetime, time, timezone
from uuid import uuid4

import httpx
import pytest
from sqlmodel import select

from clinica.core.config import settings
from clinica.core.errors import NETWORK_ERROR_MESSAGE
from clinica.db.models import Appointment, Patient
from clinica.imports.mapping import LegacyPatient
from clinica.imports.reconcile import PatientUpdate
from clinica.scripts import diagnose
from clinica.scripts.common import apply_updates, check_database
from clinica.scripts.remove_duplicates import apply_plan, plan_duplicate_removal
from clinica.scripts.validate_migration import quality_report
from clinica.services.auth_provider import SupabaseAuthClient


def test_plan_duplicate_removal_keeps_oldest_and_protects_scheduled():
    patients = [
        {"id": "a", "nombre": "Juan", "apellido": "Perez", "telefono": "111-111111", "numero_ficha": None},
        {"id": "b", "nombre": "juan", "apellido": "PEREZ", "telefono": "111111111", "numero_ficha": "12"},
        {"id": "c", "nombre": "Juan", "apellido": "Perez", "telefono": "111111111", "numero_ficha": None},
        {"id": "d", "nombre": "Juan", "apellido": "Perez", "telefono": "999999999", "numero_ficha": None},
        {"id": "e", "nombre": "Ana", "apellido": "Gomez", "telefono": None, "numero_ficha": "3"},
    ]
    appointments = [
        {"paciente_id": "c", "estado": "programado"},
        {"paciente_id": "b", "estado": "completado"},
    ]

    [plan] = plan_duplicate_removal(patients, appointments)

    assert plan.keeper["id"] == "a"
    assert [p["id"] for p in plan.remove] == ["b"]
    assert [p["id"] for p in plan.blocked] == ["c"]
    assert plan.ficha_from["id"] == "b"


def test_quality_report():
    patients = [
        {"nombre": "Juan", "apellido": "Perez", "telefono": "1144445555", "email": "j@x.com", "numero_ficha": "1",
         "fecha_nacimiento": date(1980, 1, 1), "notas": "  "},
        {"nombre": "juan", "apellido": "perez", "telefono": "11 4444-5555", "email": None, "numero_ficha": "1"},
        {"nombre": "Ana", "apellido": "", "telefono": None, "email": None, "numero_ficha": "0"},
    ]
    appointments = [
        {"estado": "programado", "hora": time(10, 0)},
        {"estado": "cancelado", "hora": "21:00"},
        {"estado": "completado", "hora": "09:07"},
    ]

    report = quality_report(patients, appointments)

    assert report["Total de pacientes"] == 3
    assert report["Sin nombre o apellido"] == 1
    assert report["Con teléfono"] == 2
    assert report["Con email"] == 1
    assert report["Con fecha de nacimiento"] == 1
    assert report["Con notas"] == 0
    assert report["Con número de ficha"] == 2
    assert report["Nombres repetidos"] == 1
    assert report["Teléfonos repetidos"] == 1
    assert report["Fichas repetidas"] == 1
    assert report["Turnos programado"] == 1
    assert report["Turnos cancelado"] == 1
    assert report["Turnos fuera de horario"] == 2


@pytest.mark.asyncio
async def test_apply_updates_commits_each_patient(session):
    patient = Patient(nombre="Ana", apellido="Gomez")
    session.add(patient)
    await session.commit()

    source = LegacyPatient("Ana", "Gomez", numero_ficha="9")
    counts = await apply_updates(session, [
        PatientUpdate(patient.id, {"numero_ficha": "9"}, source),
        PatientUpdate(uuid4(), {"numero_ficha": "10"}, source),
    ])

    assert counts == {"ok": 1, "errors": 1}
    await session.refresh(patient)
    assert patient.numero_ficha == "9"


@pytest.mark.asyncio
async def test_apply_plan_merges_into_keeper(session, session_factory):
    keeper = Patient(nombre="Juan", apellido="Perez", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    duplicate = Patient(nombre="Juan", apellido="Perez", numero_ficha="12", created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
    session.add_all([keeper, duplicate])
    await session.commit()
    session.add(Appointment(paciente_id=duplicate.id, fecha=date(2024, 3, 1), hora=time(10, 0), estado="completado"))
    await session.commit()
    await check_database(session)

    await apply_plan(session, keeper.id, [duplicate.id], "12")

    async with session_factory() as fresh:
        patients = (await fresh.execute(select(Patient))).scalars().all()
        appointments = (await fresh.execute(select(Appointment))).scalars().all()
    assert [(p.id, p.numero_ficha) for p in patients] == [(keeper.id, "12")]
    assert [a.paciente_id for a in appointments] == [keeper.id]


def test_report_fails_only_on_required_checks():
    optional_failure = [diagnose.Check("DB", True), diagnose.Check("Redis", False, required=False)]
    assert diagnose.report(optional_failure) == 0
    assert diagnose.report(optional_failure + [diagnose.Check("SUPABASE_URL", False)]) == 1


def test_check_settings_flags_missing_values(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", None)
    monkeypatch.setattr(settings, "SUPABASE_ANON_KEY", "anon")
    checks = {c.name: c for c in diagnose.check_settings()}
    assert not checks["SUPABASE_URL"].ok
    assert checks["SUPABASE_URL"].required
    assert checks["SUPABASE_ANON_KEY"].ok


@pytest.mark.asyncio
async def test_probe_auth_provider():
    healthy = SupabaseAuthClient(
        base_url="https://demo.supabase.co",
        api_key="anon",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
    )
    assert (await diagnose.probe_auth_provider(healthy)).ok

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    down = SupabaseAuthClient(base_url="https://demo.supabase.co", api_key="anon", transport=httpx.MockTransport(refuse))
    check = await diagnose.probe_auth_provider(down)
    assert not check.ok
    assert check.detail == NETWORK_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_probe_login_reports_provider_error():
    client = SupabaseAuthClient(
        base_url="https://demo.supabase.co",
        api_key="anon",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error_description": "Invalid login credentials"})
        ),
    )
    check = await diagnose.probe_login(client, "admin@clinica.com", "mala")
    assert not check.ok
    assert check.detail.startswith("adm***")
    assert "HTTP 401" in check.detail
