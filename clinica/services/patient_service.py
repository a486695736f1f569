from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from clinica.core.dates import utc_now
from clinica.core.logger import logger
from clinica.core.notifications import NotificationFeed
from clinica.db.models import Appointment, Patient
from clinica.schemas.patient import DuplicateGroup, PatientCreate, PatientSummary, PatientUpdate
from clinica.services.fichas import next_ficha_number
from clinica.services.integrity import (
    ensure_ficha_available,
    ensure_patient_deletable,
    ensure_patient_exists,
    find_duplicate_patient_groups,
)

class PatientService:
    def __init__(self, session: AsyncSession, notifications: Optional[NotificationFeed] = None):
        self.session = session
        self.notifications = notifications

    def _notify(self, message: str):
        if self.notifications is not None:
            self.notifications.success(message)

    async def create_patient(self, data: PatientCreate) -> Patient:
        # 1. Record number: keep the supplied one if free, otherwise allocate
        if data.numero_ficha:
            await ensure_ficha_available(self.session, data.numero_ficha)
            ficha = data.numero_ficha
        else:
            ficha = await next_ficha_number(self.session)

        # 2. Create Patient
        fields = data.model_dump(exclude={"ficha_medica", "numero_ficha"})
        patient = Patient(**fields, **data.ficha_medica.model_dump(), numero_ficha=ficha)
        self.session.add(patient)
        await self.session.commit()
        await self.session.refresh(patient)

        logger.info(f"Paciente creado: {patient.id} (ficha {ficha})")
        self._notify(f"Paciente {patient.apellido}, {patient.nombre} creado")
        return patient

    async def get_patient(self, patient_id: UUID) -> Patient:
        return await ensure_patient_exists(self.session, patient_id)

    async def update_patient(self, patient_id: UUID, data: PatientUpdate) -> Patient:
        patient = await ensure_patient_exists(self.session, patient_id)

        changes = data.model_dump(exclude_unset=True, exclude={"ficha_medica"})
        if "numero_ficha" in changes:
            await ensure_ficha_available(self.session, changes["numero_ficha"], exclude_id=patient.id)
        if data.ficha_medica is not None:
            changes.update(data.ficha_medica.model_dump(exclude_unset=True))

        for field, value in changes.items():
            setattr(patient, field, value)
        patient.updated_at = utc_now()

        self.session.add(patient)
        await self.session.commit()
        await self.session.refresh(patient)
        self._notify("Paciente actualizado")
        return patient

    async def delete_patient(self, patient_id: UUID):
        patient = await ensure_patient_exists(self.session, patient_id)
        await ensure_patient_deletable(self.session, patient.id)

        # Past appointments go with the patient
        stmt = select(Appointment).where(Appointment.paciente_id == patient.id)
        result = await self.session.execute(stmt)
        for appointment in result.scalars().all():
            await self.session.delete(appointment)
        await self.session.delete(patient)
        await self.session.commit()

        logger.info(f"Paciente eliminado: {patient_id}")
        self._notify("Paciente eliminado")

    async def list_patients(self, search: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Patient]:
        query = select(Patient)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            query = query.where(or_(
                func.lower(Patient.nombre).like(term),
                func.lower(Patient.apellido).like(term),
                Patient.telefono.like(term),
                Patient.numero_ficha == search.strip(),
            ))
        query = query.order_by(Patient.apellido, Patient.nombre).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def all_patients(self) -> List[Patient]:
        result = await self.session.execute(select(Patient).order_by(Patient.apellido, Patient.nombre))
        return result.scalars().all()

    async def duplicate_groups(self) -> List[DuplicateGroup]:
        result = await self.session.execute(select(Patient).order_by(Patient.created_at))
        groups = find_duplicate_patient_groups(result.scalars().all())
        return [
            DuplicateGroup(
                nombre=group[0].nombre,
                apellido=group[0].apellido,
                patients=[PatientSummary.model_validate(p) for p in group],
            )
            for group in groups
        ]
