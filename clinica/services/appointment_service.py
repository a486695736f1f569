from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from clinica.core.dates import current_date, format_time, is_overdue, is_upcoming, today, utc_now
from clinica.core.errors import ConflictError, FieldValidationError, NotFoundError
from clinica.core.logger import logger
from clinica.core.notifications import NotificationFeed
from clinica.db.models import Appointment
from clinica.db.models.appointment import SCHEDULED
from clinica.schemas.appointment import (
    AppointmentCreate,
    AppointmentPatient,
    AppointmentResponse,
    AppointmentUpdate,
)
from clinica.services.integrity import ensure_patient_exists, ensure_slot_available

class AppointmentService:
    def __init__(self, session: AsyncSession, notifications: Optional[NotificationFeed] = None):
        self.session = session
        self.notifications = notifications

    def _notify(self, message: str):
        if self.notifications is not None:
            self.notifications.success(message)

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        stmt = (
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .options(selectinload(Appointment.patient))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        appointment = result.scalars().first()
        if not appointment:
            raise NotFoundError("Turno no encontrado")
        return appointment

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        # 1. Validate Patient
        await ensure_patient_exists(self.session, data.paciente_id)

        # 2. Only checked at creation; the current day is always accepted
        if data.fecha < today():
            raise FieldValidationError("fecha", "No se pueden crear turnos en fechas pasadas")

        # 3. Slot must be free
        await ensure_slot_available(self.session, data.fecha, data.hora)

        appointment = Appointment(
            paciente_id=data.paciente_id,
            fecha=data.fecha,
            hora=data.hora,
            estado=SCHEDULED,
            pago=data.pago,
            notas=data.notas,
        )
        self.session.add(appointment)
        await self.session.commit()

        logger.info(f"Turno creado: {appointment.id} {data.fecha} {format_time(data.hora)}")
        self._notify(f"Turno agendado para las {format_time(data.hora)}")
        return await self.get_appointment(appointment.id)

    async def update_appointment(self, appointment_id: UUID, data: AppointmentUpdate) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        changes = data.model_dump(exclude_unset=True)

        fecha = changes.get("fecha", appointment.fecha)
        hora = changes.get("hora", appointment.hora)
        if "fecha" in changes or "hora" in changes:
            if appointment.estado != SCHEDULED:
                raise ConflictError("Solo se pueden reprogramar turnos programados.")
            if fecha < today():
                raise FieldValidationError("fecha", "No se pueden mover turnos a fechas pasadas")
            await ensure_slot_available(self.session, fecha, hora, exclude_id=appointment.id)

        for field, value in changes.items():
            setattr(appointment, field, value)
        appointment.updated_at = utc_now()

        self.session.add(appointment)
        await self.session.commit()
        self._notify("Turno actualizado")
        return await self.get_appointment(appointment.id)

    async def change_status(self, appointment_id: UUID, estado: str) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        # programado -> completado | cancelado, never back
        if appointment.estado != SCHEDULED:
            raise ConflictError(f"El turno ya está {appointment.estado} y no puede cambiar de estado.")

        appointment.estado = estado
        appointment.updated_at = utc_now()
        self.session.add(appointment)
        await self.session.commit()

        logger.info(f"Turno {appointment.id}: {SCHEDULED} -> {estado}")
        self._notify(f"Turno {estado}")
        return await self.get_appointment(appointment.id)

    async def get_day_appointments(self, fecha: date, include_cancelled: bool = True) -> List[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.fecha == fecha)
            .options(selectinload(Appointment.patient))
            .order_by(Appointment.hora)
        )
        result = await self.session.execute(stmt)
        appointments = result.scalars().all()
        if not include_cancelled:
            appointments = [a for a in appointments if a.estado != "cancelado"]
        return appointments

    async def get_patient_appointments(self, patient_id: UUID) -> List[Appointment]:
        await ensure_patient_exists(self.session, patient_id)
        stmt = (
            select(Appointment)
            .where(Appointment.paciente_id == patient_id)
            .options(selectinload(Appointment.patient))
            .order_by(Appointment.fecha.desc(), Appointment.hora.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


def construct_response(appointment: Appointment, now: Optional[datetime] = None) -> AppointmentResponse:
    now = now or current_date()
    patient = appointment.patient
    return AppointmentResponse(
        id=appointment.id,
        paciente_id=appointment.paciente_id,
        fecha=appointment.fecha,
        hora=format_time(appointment.hora),
        estado=appointment.estado,
        pago=appointment.pago,
        notas=appointment.notas,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
        paciente=AppointmentPatient.model_validate(patient) if patient else None,
        atrasado=is_overdue(appointment.fecha, appointment.hora, appointment.estado, now),
        proximo=is_upcoming(appointment.fecha, appointment.hora, now) and appointment.estado == SCHEDULED,
    )
