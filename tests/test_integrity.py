from datetime import date, time
from uuid import uuid4

import pytest

from clinica.core.errors import ConflictError, NotFoundError
from clinica.db.models import Appointment, Patient
from clinica.services import integrity


def test_duplicate_patients_ignore_case_and_whitespace():
    patients = [
        {"nombre": "Juan", "apellido": "Perez"},
        {"nombre": " juan ", "apellido": "PEREZ"},
        {"nombre": "Ana", "apellido": "Perez"},
    ]
    assert integrity.has_duplicate_patients(patients)
    assert not integrity.has_duplicate_patients(patients[1:])

    groups = integrity.find_duplicate_patient_groups(patients)
    assert len(groups) == 1
    assert len(groups[0]) == 2


def test_name_phone_key_separates_namesakes():
    first = {"nombre": "Juan", "apellido": "Perez", "telefono": "11 4444-5555"}
    second = {"nombre": "juan", "apellido": "perez", "telefono": "1144445555"}
    third = {"nombre": "Juan", "apellido": "Perez", "telefono": None}
    assert integrity.name_phone_key(first) == integrity.name_phone_key(second)
    assert integrity.name_phone_key(third)[2] == "sin-telefono"
    assert integrity.find_duplicate_patient_groups([first, second, third], key=integrity.name_phone_key) == [[first, second]]


def test_duplicate_fichas_skip_blanks():
    assert integrity.has_duplicate_fichas(["12", " 12 "])
    assert not integrity.has_duplicate_fichas(["", "  ", None, "1", "2"])


def test_duplicate_appointments_compare_date_and_time():
    appointments = [
        {"fecha": "2026-01-12", "hora": "10:00:00"},
        {"fecha": date(2026, 1, 12), "hora": time(10, 0)},
    ]
    assert integrity.has_duplicate_appointments(appointments)
    assert not integrity.has_duplicate_appointments([appointments[0], {"fecha": "2026-01-12", "hora": "10:05"}])


def test_patient_existence_and_deletability():
    patients = [{"id": "p1"}, {"id": "p2"}]
    appointments = [
        {"paciente_id": "p1", "estado": "programado"},
        {"paciente_id": "p2", "estado": "completado"},
    ]
    assert integrity.patient_exists("p1", patients)
    assert not integrity.patient_exists("p3", patients)
    assert integrity.has_scheduled_appointments("p1", appointments)
    assert not integrity.can_delete_patient("p1", appointments)
    assert integrity.can_delete_patient("p2", appointments)


@pytest.mark.asyncio
async def test_store_guards(session):
    ana = Patient(nombre="Ana", apellido="Gomez", numero_ficha="5")
    luis = Patient(nombre="Luis", apellido="Diaz")
    session.add_all([ana, luis])
    await session.commit()
    session.add(Appointment(paciente_id=ana.id, fecha=date(2030, 3, 4), hora=time(10, 0)))
    await session.commit()

    with pytest.raises(ConflictError):
        await integrity.ensure_ficha_available(session, "5")
    await integrity.ensure_ficha_available(session, "5", exclude_id=ana.id)
    await integrity.ensure_ficha_available(session, "0")

    with pytest.raises(ConflictError) as excinfo:
        await integrity.ensure_slot_available(session, date(2030, 3, 4), time(10, 0))
    assert "04/03/2030" in excinfo.value.detail
    await integrity.ensure_slot_available(session, date(2030, 3, 4), time(10, 5))

    with pytest.raises(ConflictError):
        await integrity.ensure_patient_deletable(session, ana.id)
    await integrity.ensure_patient_deletable(session, luis.id)

    assert (await integrity.ensure_patient_exists(session, luis.id)).nombre == "Luis"
    with pytest.raises(NotFoundError):
        await integrity.ensure_patient_exists(session, uuid4())

    found = await integrity.find_patients_by_name(session, " ana ", "GOMEZ")
    assert [p.id for p in found] == [ana.id]
