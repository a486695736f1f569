from pydantic import AfterValidator, BaseModel, field_validator
from uuid import UUID
from datetime import date, datetime, time
from typing import Annotated, Optional, List

from clinica.core.validation import is_valid_appointment_time, is_within_length
from clinica.db.models.appointment import CANCELLED, COMPLETED, PAYMENT_STATUSES

NOTES_MAX_LENGTH = 1000


def _check_time(value: Optional[time]) -> Optional[time]:
    if value is None:
        return value
    if not is_valid_appointment_time(value):
        raise ValueError("El horario debe estar entre 09:00 y 20:00, en intervalos de 5 minutos")
    return value.replace(second=0, microsecond=0)


def _check_payment(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in PAYMENT_STATUSES:
        raise ValueError("El pago debe ser 'pagado' o 'impago'")
    return value


def _check_notes(value: Optional[str]) -> Optional[str]:
    if not is_within_length(value, NOTES_MAX_LENGTH):
        raise ValueError(f"Máximo {NOTES_MAX_LENGTH} caracteres")
    return value


AppointmentTime = Annotated[time, AfterValidator(_check_time)]
PaymentStatus = Annotated[str, AfterValidator(_check_payment)]
Notes = Annotated[str, AfterValidator(_check_notes)]


class AppointmentCreate(BaseModel):
    paciente_id: UUID
    fecha: date
    hora: AppointmentTime
    pago: Optional[PaymentStatus] = None
    notas: Optional[Notes] = None


class AppointmentUpdate(BaseModel):
    fecha: Optional[date] = None
    hora: Optional[AppointmentTime] = None
    pago: Optional[PaymentStatus] = None
    notas: Optional[Notes] = None

    @field_validator("fecha", "hora")
    @classmethod
    def check_not_null(cls, value):
        # May be omitted, never cleared
        if value is None:
            raise ValueError("La fecha y la hora del turno son obligatorias")
        return value


class AppointmentStatusUpdate(BaseModel):
    estado: str

    @field_validator("estado")
    @classmethod
    def check_status(cls, value):
        if value not in (COMPLETED, CANCELLED):
            raise ValueError("Un turno programado solo puede completarse o cancelarse")
        return value


class AppointmentPatient(BaseModel):
    id: UUID
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    numero_ficha: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: UUID
    paciente_id: UUID
    fecha: date
    hora: str
    estado: str
    pago: Optional[str] = None
    notas: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paciente: Optional[AppointmentPatient] = None
    atrasado: bool = False
    proximo: bool = False


class DailyAppointments(BaseModel):
    fecha: date
    total: int
    turnos: List[AppointmentResponse]
