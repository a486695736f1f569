from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime
from typing import Optional, List, TYPE_CHECKING
from datetime import date, datetime
from uuid import UUID, uuid4

from clinica.core.dates import utc_now

if TYPE_CHECKING:
    from .appointment import Appointment

MEDICAL_FIELDS = (
    "motivo_consulta",
    "antecedentes_medicos",
    "medicamentos_actuales",
    "alergias",
    "diagnostico",
    "plan_tratamiento",
    "observaciones_medicas",
)

class Patient(SQLModel, table=True):
    __tablename__ = "pacientes"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    email: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    # Paper-chart record number; NULL when the patient has none
    numero_ficha: Optional[str] = Field(default=None, unique=True, index=True)
    dni: Optional[str] = None
    direccion: Optional[str] = None
    genero: Optional[str] = None  # masculino, femenino, otro
    notas: Optional[str] = None
    observaciones: Optional[str] = None
    ultima_visita: Optional[date] = None
    llamado_telefono: bool = Field(default=False)
    fecha_ultimo_llamado: Optional[date] = None

    # General information
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

    # Medical record
    motivo_consulta: Optional[str] = None
    antecedentes_medicos: Optional[str] = None
    medicamentos_actuales: Optional[str] = None
    alergias: Optional[str] = None
    diagnostico: Optional[str] = None
    plan_tratamiento: Optional[str] = None
    observaciones_medicas: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    appointments: List["Appointment"] = Relationship(
        back_populates="patient",
        sa_relationship_kwargs={"passive_deletes": True},
    )
