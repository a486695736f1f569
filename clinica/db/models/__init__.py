from sqlmodel import SQLModel
from .patient import Patient
from .appointment import Appointment

__all__ = [
    "SQLModel",
    "Patient",
    "Appointment",
]
