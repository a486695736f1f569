"""
Map legacy CSV rows onto patient and appointment fields.

Header names vary between exports and locales, so every logical field has an
ordered list of aliases and the first non-empty column wins.
"""
import re
from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from clinica.core.config import settings
from clinica.core.dates import parse_iso_date_safe, parse_time
from clinica.core.dates import today as local_today
from clinica.core.logger import logger
from clinica.core.matching import PatternTable, contains, equals
from clinica.core.validation import is_valid_email, normalize_email, normalize_ficha
from clinica.db.models.appointment import CANCELLED, COMPLETED, SCHEDULED

MISSING_NOMBRE = "Sin nombre"
MISSING_APELLIDO = "Sin apellido"
MAX_AGE = 120

FULL_NAME = ("Paciente", "paciente", "Reporte de Pacientes", "Nombre Completo", "nombre_completo")
NOMBRE = ("nombre", "Nombre", "name", "Name", "nombre_paciente", "Nombre Paciente")
APELLIDO = ("apellido", "Apellido", "lastname", "Lastname", "surname", "Surname", "apellido_paciente", "Apellido Paciente")
TELEFONO = ("Telefono", "telefono", "Teléfono", "teléfono", "celular", "Celular", "phone", "Phone")
EMAIL = ("email", "Email", "correo", "Correo", "e-mail", "E-mail")
FECHA_NACIMIENTO = (
    "Fecha Nacimiento", "Fecha de Nacimiento", "fecha_nacimiento", "fecha_nac",
    "birthdate", "Birthdate", "fecha de nacimiento",
)
EDAD = ("Edad", "edad", "age", "Age")
NOTAS = ("notas", "Notas", "observaciones", "Observaciones", "comentarios", "Comentarios", "notes", "Notes")
FICHA = ("Ficha", "ficha", "numero_ficha", "Numero Ficha", "Número Ficha", "numero", "Numero")
DNI = ("Documento", "documento", "DNI", "dni")
GENERO = ("Sexo", "sexo", "Genero", "genero", "Género", "género")

FECHA_TURNO = ("fecha", "Fecha", "Fecha de Turno", "fecha_turno", "date", "Date")
HORA_TURNO = ("hora", "Hora", "Hora de Turno", "hora_turno", "time", "Time")
ESTADO_TURNO = ("estado", "Estado", "Estado del Turno", "estado_turno", "status", "Status")

# Specific words first; "si"/"no" only as whole values
STATUS_RULES = PatternTable([
    contains("atendido", COMPLETED),
    contains("realizado", COMPLETED),
    contains("completado", COMPLETED),
    contains("completo", COMPLETED),
    equals("si", COMPLETED),
    equals("sí", COMPLETED),
    equals("s", COMPLETED),
    contains("cancelado", CANCELLED),
    contains("anulado", CANCELLED),
    contains("cancel", CANCELLED),
    equals("no", CANCELLED),
], default=SCHEDULED)

DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
YEAR_FIRST_RE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")


@dataclass
class LegacyPatient:
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    email: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    notas: Optional[str] = None
    numero_ficha: Optional[str] = None
    dni: Optional[str] = None
    genero: Optional[str] = None

    def as_fields(self) -> Dict[str, object]:
        return {
            "nombre": self.nombre,
            "apellido": self.apellido,
            "telefono": self.telefono,
            "email": self.email,
            "fecha_nacimiento": self.fecha_nacimiento,
            "notas": self.notas,
            "numero_ficha": self.numero_ficha,
            "dni": self.dni,
            "genero": self.genero,
        }


@dataclass
class LegacyAppointment:
    nombre: str
    apellido: str
    fecha: date
    hora: time
    estado: str = SCHEDULED
    notas: Optional[str] = None
    telefono: Optional[str] = None


def pick(row: Dict[str, str], *aliases: str) -> Optional[str]:
    for key in aliases:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def split_full_name(full_name: Optional[str]) -> Tuple[str, str]:
    """
    Split a surname-first combined name into (nombre, apellido).

    "PEREZ, Juan Carlos" splits on the first comma; "PEREZ Juan Carlos" takes
    the first token as the surname.
    """
    if not full_name or not full_name.strip():
        return "", ""
    if "," in full_name:
        apellido, _, rest = full_name.partition(",")
        nombre = " ".join(part.strip() for part in rest.split(",") if part.strip())
        return " ".join(nombre.split()), " ".join(apellido.split())
    tokens = full_name.split()
    return " ".join(tokens[1:]), tokens[0]


def clean_phone(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    cleaned = re.sub(r"[^\d+\s-]", "", raw).strip()
    if not cleaned:
        return None
    cleaned = re.sub(r"[\s-]", "", cleaned)

    country = settings.COUNTRY_CODE.lstrip("+")
    if not cleaned.startswith("+"):
        if cleaned.startswith(country):
            cleaned = "+" + cleaned
        elif len(cleaned) >= 10 and not cleaned.startswith("0"):
            # Ten national digits without the trunk 0: a local mobile/landline
            cleaned = settings.COUNTRY_CODE + cleaned

    if len(re.sub(r"\D", "", cleaned)) < 8:
        return None
    return cleaned


def parse_legacy_date(raw: Optional[str]) -> Optional[date]:
    """dd/MM/yyyy, dd-MM-yyyy, yyyy-MM-dd or yyyy/MM/dd; None when unparseable."""
    if not raw:
        return None
    text = raw.strip()
    match = DAY_FIRST_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
    else:
        match = YEAR_FIRST_RE.match(text)
        if not match:
            parsed = parse_iso_date_safe(text)
            return parsed.date() if parsed else None
        year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_legacy_time(raw: Optional[str]) -> Optional[time]:
    if not raw:
        return None
    return parse_time(raw.strip())


def parse_birth_date(raw: Optional[str], age: Optional[str] = None, today: Optional[date] = None) -> Optional[date]:
    """
    Birth date bounded to the last 120 years; otherwise January 1st of the
    year derived from the age column.
    """
    today = today or local_today()
    parsed = parse_legacy_date(raw)
    if parsed and today.year - MAX_AGE <= parsed.year and parsed <= today:
        return parsed

    age = (age or "").strip()
    # isdigit() also accepts superscripts that int() rejects
    if age.isascii() and age.isdecimal():
        years = int(age)
        if years <= MAX_AGE:
            return date(today.year - years, 1, 1)
    return None


def map_status(raw: Optional[str]) -> str:
    return STATUS_RULES.classify(raw)


def _legacy_name(row: Dict[str, str]) -> Tuple[str, str]:
    full_name = pick(row, *FULL_NAME)
    if full_name:
        return split_full_name(full_name)
    nombre = pick(row, *NOMBRE) or ""
    apellido = pick(row, *APELLIDO) or ""
    if nombre and not apellido:
        return split_full_name(nombre)
    return nombre, apellido


def map_patient_row(row: Dict[str, str], today: Optional[date] = None) -> Optional[LegacyPatient]:
    nombre, apellido = _legacy_name(row)
    if not nombre and not apellido:
        return None

    email = pick(row, *EMAIL)
    return LegacyPatient(
        nombre=nombre or MISSING_NOMBRE,
        apellido=apellido or MISSING_APELLIDO,
        telefono=clean_phone(pick(row, *TELEFONO)),
        email=normalize_email(email) if is_valid_email(email) else None,
        fecha_nacimiento=parse_birth_date(pick(row, *FECHA_NACIMIENTO), pick(row, *EDAD), today),
        notas=pick(row, *NOTAS),
        numero_ficha=normalize_ficha(pick(row, *FICHA)),
        dni=pick(row, *DNI),
        genero=pick(row, *GENERO),
    )


def map_appointment_row(row: Dict[str, str]) -> Optional[LegacyAppointment]:
    nombre, apellido = _legacy_name(row)
    if not nombre and not apellido:
        return None

    fecha = parse_legacy_date(pick(row, *FECHA_TURNO))
    hora = parse_legacy_time(pick(row, *HORA_TURNO))
    if fecha is None or hora is None:
        return None

    return LegacyAppointment(
        nombre=nombre or MISSING_NOMBRE,
        apellido=apellido or MISSING_APELLIDO,
        fecha=fecha,
        hora=hora,
        estado=map_status(pick(row, *ESTADO_TURNO)),
        notas=pick(row, *NOTAS),
        telefono=clean_phone(pick(row, *TELEFONO)),
    )


@dataclass
class MappedRows:
    items: List[Any] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0


def map_rows(rows: Iterable[Dict[str, str]], mapper: Callable[[Dict[str, str]], Any]) -> MappedRows:
    """Map every row; an unmappable row is skipped and a crashing one counted as failed."""
    result = MappedRows()
    for number, row in enumerate(rows, start=1):
        try:
            item = mapper(row)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Fila {number} no procesada: {e}")
            result.failed += 1
            continue
        if item is None:
            result.skipped += 1
        else:
            result.items.append(item)
    return result
