from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime, UniqueConstraint
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime, time
from uuid import UUID, uuid4

from clinica.core.dates import utc_now

if TYPE_CHECKING:
    from .patient import Patient

SCHEDULED = "programado"
COMPLETED = "completado"
CANCELLED = "cancelado"
STATUSES = (SCHEDULED, COMPLETED, CANCELLED)

PAID = "pagado"
UNPAID = "impago"
PAYMENT_STATUSES = (PAID, UNPAID)

class Appointment(SQLModel, table=True):
    __tablename__ = "turnos"
    # One appointment per slot, whatever the patient
    __table_args__ = (UniqueConstraint("fecha", "hora", name="turnos_fecha_hora_key"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    paciente_id: UUID = Field(foreign_key="pacientes.id", index=True)
    fecha: date = Field(index=True)
    hora: time
    estado: str = Field(default=SCHEDULED)  # programado, completado, cancelado
    pago: Optional[str] = None  # pagado, impago
    notas: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    patient: Optional["Patient"] = Relationship(back_populates="appointments")
