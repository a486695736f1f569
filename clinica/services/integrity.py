"""
Duplicate detection and referential checks run before writes.

The pairwise checks are O(n^2), which is fine at clinic scale. Ficha and
appointment-slot uniqueness are also enforced by unique indexes in the store;
both sides must agree on what counts as a duplicate.
"""
from collections import OrderedDict
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from clinica.core.dates import format_time
from clinica.core.errors import ConflictError, NotFoundError
from clinica.core.validation import normalize_ficha, phone_digits
from clinica.db.models import Appointment, Patient
from clinica.db.models.appointment import SCHEDULED


def record_value(record: Any, key: str) -> Any:
    if isinstance(record, dict):
        return record.get(key)
    return getattr(record, key, None)


def name_key(record: Any) -> Tuple[str, str]:
    nombre = (record_value(record, "nombre") or "").strip().lower()
    apellido = (record_value(record, "apellido") or "").strip().lower()
    return nombre, apellido


def name_phone_key(record: Any) -> Tuple[str, str, str]:
    """Secondary key used by the import tools: name plus phone digits."""
    nombre, apellido = name_key(record)
    return nombre, apellido, phone_digits(record_value(record, "telefono")) or "sin-telefono"


def _slot_key(record: Any) -> Tuple[str, str]:
    fecha = record_value(record, "fecha")
    if isinstance(fecha, date):
        fecha = fecha.isoformat()
    return str(fecha), format_time(record_value(record, "hora"))


def has_duplicate_patients(patients: Sequence[Any]) -> bool:
    return any(
        name_key(patient) == name_key(other)
        for index, patient in enumerate(patients)
        for other in patients[index + 1:]
    )


def find_duplicate_patient_groups(patients: Iterable[Any], key=name_key) -> List[List[Any]]:
    groups: Dict[Any, List[Any]] = OrderedDict()
    for patient in patients:
        groups.setdefault(key(patient), []).append(patient)
    return [group for group in groups.values() if len(group) > 1]


def has_duplicate_fichas(fichas: Sequence[Optional[str]]) -> bool:
    present = [f.strip() for f in fichas if f and f.strip()]
    return any(ficha in present[index + 1:] for index, ficha in enumerate(present))


def has_duplicate_appointments(appointments: Sequence[Any]) -> bool:
    return any(
        _slot_key(appointment) == _slot_key(other)
        for index, appointment in enumerate(appointments)
        for other in appointments[index + 1:]
    )


def patient_exists(patient_id: Any, patients: Iterable[Any]) -> bool:
    return any(str(record_value(p, "id")) == str(patient_id) for p in patients)


def has_scheduled_appointments(patient_id: Any, appointments: Iterable[Any]) -> bool:
    return any(
        str(record_value(a, "paciente_id")) == str(patient_id) and record_value(a, "estado") == SCHEDULED
        for a in appointments
    )


def can_delete_patient(patient_id: Any, appointments: Iterable[Any]) -> bool:
    return not has_scheduled_appointments(patient_id, appointments)


async def find_patients_by_name(session: AsyncSession, nombre: str, apellido: str) -> List[Patient]:
    stmt = select(Patient).where(
        func.lower(func.trim(Patient.nombre)) == nombre.strip().lower(),
        func.lower(func.trim(Patient.apellido)) == apellido.strip().lower(),
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def ensure_ficha_available(session: AsyncSession, ficha: Optional[str], exclude_id: Optional[UUID] = None):
    ficha = normalize_ficha(ficha)
    if ficha is None:
        return
    stmt = select(Patient.id).where(Patient.numero_ficha == ficha)
    if exclude_id is not None:
        stmt = stmt.where(Patient.id != exclude_id)
    result = await session.execute(stmt)
    if result.scalars().first() is not None:
        raise ConflictError(f"El número de ficha {ficha} ya está asignado a otro paciente.")


async def ensure_slot_available(session: AsyncSession, fecha: date, hora: time, exclude_id: Optional[UUID] = None):
    stmt = select(Appointment.id).where(Appointment.fecha == fecha, Appointment.hora == hora)
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    result = await session.execute(stmt)
    if result.scalars().first() is not None:
        raise ConflictError(f"Ya existe un turno el {fecha.strftime('%d/%m/%Y')} a las {format_time(hora)}.")


async def ensure_patient_exists(session: AsyncSession, patient_id: UUID) -> Patient:
    patient = await session.get(Patient, patient_id)
    if not patient:
        raise NotFoundError("Paciente no encontrado")
    return patient


async def ensure_patient_deletable(session: AsyncSession, patient_id: UUID):
    stmt = select(func.count(Appointment.id)).where(
        Appointment.paciente_id == patient_id,
        Appointment.estado == SCHEDULED,
    )
    result = await session.execute(stmt)
    if (result.scalar() or 0) > 0:
        raise ConflictError("No se puede eliminar un paciente con turnos programados.")
