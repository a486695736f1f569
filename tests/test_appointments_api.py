from datetime import timedelta

import pytest

from clinica.core.dates import today

APPOINTMENTS_URL = "/api/v1/appointments/"


@pytest.fixture
def fecha():
    return (today() + timedelta(days=14)).isoformat()


async def create_patient(client, nombre="Juan", apellido="Perez", **extra):
    response = await client.post("/api/v1/patients/", json={"nombre": nombre, "apellido": apellido, **extra})
    assert response.status_code == 201, response.text
    return response.json()


async def book(client, paciente_id, fecha, hora="10:00", **extra):
    return await client.post(
        APPOINTMENTS_URL,
        json={"paciente_id": paciente_id, "fecha": fecha, "hora": hora, **extra},
    )


@pytest.mark.asyncio
async def test_create_appointment(client, fecha):
    patient = await create_patient(client, telefono="1144445555")

    response = await book(client, patient["id"], fecha, "10:30", pago="impago", notas="Primera consulta")
    assert response.status_code == 201, response.text
    appointment = response.json()
    assert appointment["hora"] == "10:30"
    assert appointment["estado"] == "programado"
    assert appointment["pago"] == "impago"
    assert appointment["paciente"]["apellido"] == "Perez"
    assert appointment["paciente"]["numero_ficha"] == "1"
    assert appointment["atrasado"] is False

    response = await client.get(f"{APPOINTMENTS_URL}{appointment['id']}")
    assert response.json()["notas"] == "Primera consulta"


@pytest.mark.asyncio
async def test_slot_is_exclusive_across_patients(client, fecha):
    juan = await create_patient(client)
    ana = await create_patient(client, nombre="Ana")

    assert (await book(client, juan["id"], fecha)).status_code == 201
    response = await book(client, ana["id"], fecha)
    assert response.status_code == 409
    assert response.json()["detail"].startswith("Ya existe un turno")


@pytest.mark.asyncio
@pytest.mark.parametrize("hora", ["08:55", "20:05", "10:32"])
async def test_time_outside_grid_is_rejected(client, fecha, hora):
    patient = await create_patient(client)
    response = await book(client, patient["id"], fecha, hora)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_past_dates_and_unknown_patients_are_rejected(client, fecha):
    patient = await create_patient(client)

    yesterday = (today() - timedelta(days=1)).isoformat()
    response = await book(client, patient["id"], yesterday)
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "fecha"

    response = await book(client, "00000000-0000-0000-0000-000000000000", fecha)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_moves_forward_only(client, fecha):
    patient = await create_patient(client)
    appointment = (await book(client, patient["id"], fecha)).json()
    status_url = f"{APPOINTMENTS_URL}{appointment['id']}/status"

    response = await client.post(status_url, json={"estado": "programado"})
    assert response.status_code == 422

    response = await client.post(status_url, json={"estado": "completado"})
    assert response.status_code == 200
    assert response.json()["estado"] == "completado"

    response = await client.post(status_url, json={"estado": "cancelado"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_reschedule_rechecks_the_slot(client, fecha):
    patient = await create_patient(client)
    first = (await book(client, patient["id"], fecha, "10:00")).json()
    await book(client, patient["id"], fecha, "11:00")

    response = await client.patch(f"{APPOINTMENTS_URL}{first['id']}", json={"hora": "11:00"})
    assert response.status_code == 409

    response = await client.patch(f"{APPOINTMENTS_URL}{first['id']}", json={"hora": "12:15", "pago": "pagado"})
    assert response.status_code == 200
    assert response.json()["hora"] == "12:15"
    assert response.json()["pago"] == "pagado"

    response = await client.patch(f"{APPOINTMENTS_URL}{first['id']}", json={"pago": "fiado"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_day_listing_is_ordered_by_time(client, fecha):
    patient = await create_patient(client)
    await book(client, patient["id"], fecha, "15:00")
    early = (await book(client, patient["id"], fecha, "09:00")).json()
    await client.post(f"{APPOINTMENTS_URL}{early['id']}/status", json={"estado": "cancelado"})

    response = await client.get(f"{APPOINTMENTS_URL}day/{fecha}")
    day = response.json()
    assert day["total"] == 2
    assert [t["hora"] for t in day["turnos"]] == ["09:00", "15:00"]

    response = await client.get(f"{APPOINTMENTS_URL}day/{fecha}", params={"include_cancelled": False})
    assert [t["hora"] for t in response.json()["turnos"]] == ["15:00"]

    response = await client.get(f"/api/v1/patients/{patient['id']}/appointments")
    assert len(response.json()) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"fecha": None}, {"hora": None}])
async def test_reschedule_cannot_clear_date_or_time(client, fecha, payload):
    patient = await create_patient(client)
    appointment = (await book(client, patient["id"], fecha, "10:00")).json()

    response = await client.patch(f"{APPOINTMENTS_URL}{appointment['id']}", json=payload)
    assert response.status_code == 422

    response = await client.get(f"{APPOINTMENTS_URL}{appointment['id']}")
    assert response.json()["fecha"] == fecha
    assert response.json()["hora"] == "10:00"
