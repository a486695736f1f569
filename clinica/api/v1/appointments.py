from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinica.api.deps import get_notifications
from clinica.core.notifications import NotificationFeed
from clinica.db.session import get_session
from clinica.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    DailyAppointments,
)
from clinica.services.appointment_service import AppointmentService, construct_response

router = APIRouter()

async def get_appointment_service(
    session: AsyncSession = Depends(get_session),
    notifications: NotificationFeed = Depends(get_notifications),
) -> AppointmentService:
    return AppointmentService(session, notifications)

@router.post("/", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    request: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.create_appointment(request)
    return construct_response(appointment)

@router.get("/day/{fecha}", response_model=DailyAppointments)
async def day_appointments(
    fecha: date,
    include_cancelled: bool = True,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointments = await service.get_day_appointments(fecha, include_cancelled)
    return DailyAppointments(
        fecha=fecha,
        total=len(appointments),
        turnos=[construct_response(a) for a in appointments],
    )

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def read_appointment(
    appointment_id: UUID,
    service: AppointmentService = Depends(get_appointment_service)
):
    return construct_response(await service.get_appointment(appointment_id))

@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: UUID,
    request: AppointmentUpdate,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.update_appointment(appointment_id, request)
    return construct_response(appointment)

@router.post("/{appointment_id}/status", response_model=AppointmentResponse)
async def change_status(
    appointment_id: UUID,
    request: AppointmentStatusUpdate,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.change_status(appointment_id, request.estado)
    return construct_response(appointment)
