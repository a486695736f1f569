from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinica.api.deps import get_notifications
from clinica.core.notifications import NotificationFeed
from clinica.db.session import get_session
from clinica.schemas.appointment import AppointmentResponse
from clinica.schemas.patient import (
    DuplicateGroup,
    NextFichaResponse,
    PatientCreate,
    PatientResponse,
    PatientUpdate,
)
from clinica.services.appointment_service import AppointmentService, construct_response
from clinica.services.fichas import next_ficha_number
from clinica.services.patient_service import PatientService

router = APIRouter()

async def get_patient_service(
    session: AsyncSession = Depends(get_session),
    notifications: NotificationFeed = Depends(get_notifications),
) -> PatientService:
    return PatientService(session, notifications)

@router.get("/", response_model=List[PatientResponse])
async def list_patients(
    q: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    service: PatientService = Depends(get_patient_service)
):
    patients = await service.list_patients(q, skip, limit)
    return [PatientResponse.from_model(p) for p in patients]

@router.post("/", response_model=PatientResponse, status_code=201)
async def create_patient(
    request: PatientCreate,
    service: PatientService = Depends(get_patient_service)
):
    patient = await service.create_patient(request)
    return PatientResponse.from_model(patient)

@router.get("/next-ficha", response_model=NextFichaResponse)
async def next_ficha(session: AsyncSession = Depends(get_session)):
    return NextFichaResponse(numero_ficha=await next_ficha_number(session))

@router.get("/duplicates", response_model=List[DuplicateGroup])
async def duplicates(service: PatientService = Depends(get_patient_service)):
    return await service.duplicate_groups()

@router.get("/{patient_id}", response_model=PatientResponse)
async def read_patient(
    patient_id: UUID,
    service: PatientService = Depends(get_patient_service)
):
    return PatientResponse.from_model(await service.get_patient(patient_id))

@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: UUID,
    request: PatientUpdate,
    service: PatientService = Depends(get_patient_service)
):
    patient = await service.update_patient(patient_id, request)
    return PatientResponse.from_model(patient)

@router.delete("/{patient_id}", status_code=204)
async def delete_patient(
    patient_id: UUID,
    service: PatientService = Depends(get_patient_service)
):
    await service.delete_patient(patient_id)

@router.get("/{patient_id}/appointments", response_model=List[AppointmentResponse])
async def patient_appointments(
    patient_id: UUID,
    session: AsyncSession = Depends(get_session)
):
    appointments = await AppointmentService(session).get_patient_appointments(patient_id)
    return [construct_response(a) for a in appointments]
