from pydantic import BaseModel, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from clinica.core.dates import is_valid_calendar_date
from clinica.core.validation import (
    is_date_not_future,
    is_valid_email,
    is_valid_phone,
    is_within_length,
    normalize_email,
    normalize_ficha,
)
from clinica.db.models.patient import MEDICAL_FIELDS

NAME_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 2000


class MedicalRecord(BaseModel):
    motivo_consulta: Optional[str] = None
    antecedentes_medicos: Optional[str] = None
    medicamentos_actuales: Optional[str] = None
    alergias: Optional[str] = None
    diagnostico: Optional[str] = None
    plan_tratamiento: Optional[str] = None
    observaciones_medicas: Optional[str] = None

    class Config:
        extra = "forbid"


class PatientFields(BaseModel):
    """Shared validation for create and update payloads."""

    @field_validator("nombre", "apellido", check_fields=False)
    @classmethod
    def check_name(cls, value):
        # Update payloads may omit the name, never null it
        if value is None:
            raise ValueError("El nombre y el apellido son obligatorios")
        value = value.strip()
        if not value:
            raise ValueError("El nombre y el apellido son obligatorios")
        if not is_within_length(value, NAME_MAX_LENGTH):
            raise ValueError(f"Máximo {NAME_MAX_LENGTH} caracteres")
        return value

    @field_validator("telefono", check_fields=False)
    @classmethod
    def check_phone(cls, value):
        if not is_valid_phone(value):
            raise ValueError("El teléfono debe tener entre 8 y 15 dígitos")
        return value.strip() if value and value.strip() else None

    @field_validator("email", check_fields=False)
    @classmethod
    def check_email(cls, value):
        if not is_valid_email(value):
            raise ValueError("El email no tiene un formato válido")
        return normalize_email(value)

    @field_validator("fecha_nacimiento", check_fields=False)
    @classmethod
    def check_birth_date(cls, value):
        if value is None:
            return value
        if not is_valid_calendar_date(value):
            raise ValueError("La fecha de nacimiento debe estar entre 1900 y 2100")
        if not is_date_not_future(value.isoformat()):
            raise ValueError("La fecha de nacimiento no puede ser futura")
        return value

    @field_validator("numero_ficha", check_fields=False)
    @classmethod
    def check_ficha(cls, value):
        return normalize_ficha(value)

    @field_validator("notas", "observaciones", check_fields=False)
    @classmethod
    def check_notes(cls, value):
        if not is_within_length(value, NOTES_MAX_LENGTH):
            raise ValueError(f"Máximo {NOTES_MAX_LENGTH} caracteres")
        return value


class PatientBase(BaseModel):
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    email: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    numero_ficha: Optional[str] = None
    dni: Optional[str] = None
    direccion: Optional[str] = None
    genero: Optional[str] = None
    notas: Optional[str] = None
    observaciones: Optional[str] = None
    estado_civil: Optional[str] = None
    recomendado_por: Optional[str] = None
    barrio: Optional[str] = None
    ciudad: Optional[str] = None
    provincia: Optional[str] = None
    obra_social: Optional[str] = None
    telefono_laboral: Optional[str] = None
    ocupacion_actual: Optional[str] = None
    ocupaciones_previas: Optional[str] = None
    hobbies_deportes: Optional[str] = None


class PatientCreate(PatientFields, PatientBase):
    ficha_medica: MedicalRecord = MedicalRecord()


class PatientUpdate(PatientFields):
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    telefono: Optional[str] = None
    email: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    numero_ficha: Optional[str] = None
    dni: Optional[str] = None
    direccion: Optional[str] = None
    genero: Optional[str] = None
    notas: Optional[str] = None
    observaciones: Optional[str] = None
    ultima_visita: Optional[date] = None
    llamado_telefono: Optional[bool] = None
    fecha_ultimo_llamado: Optional[date] = None
    estado_civil: Optional[str] = None
    recomendado_por: Optional[str] = None
    barrio: Optional[str] = None
    ciudad: Optional[str] = None
    provincia: Optional[str] = None
    obra_social: Optional[str] = None
    telefono_laboral: Optional[str] = None
    ocupacion_actual: Optional[str] = None
    ocupaciones_previas: Optional[str] = None
    hobbies_deportes: Optional[str] = None
    ficha_medica: Optional[MedicalRecord] = None

    @field_validator("llamado_telefono")
    @classmethod
    def check_called_flag(cls, value):
        if value is None:
            raise ValueError("Debe ser verdadero o falso")
        return value


class PatientResponse(PatientBase):
    id: UUID
    ultima_visita: Optional[date] = None
    llamado_telefono: bool = False
    fecha_ultimo_llamado: Optional[date] = None
    ficha_medica: MedicalRecord
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_model(cls, patient) -> "PatientResponse":
        data = {name: getattr(patient, name) for name in cls.model_fields if name != "ficha_medica"}
        data["ficha_medica"] = MedicalRecord(**{name: getattr(patient, name) for name in MEDICAL_FIELDS})
        return cls.model_construct(**data)


class PatientSummary(BaseModel):
    id: UUID
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    numero_ficha: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DuplicateGroup(BaseModel):
    nombre: str
    apellido: str
    patients: List[PatientSummary]


class NextFichaResponse(BaseModel):
    numero_ficha: str
