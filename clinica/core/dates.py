"""
Date helpers for the clinic's local civil calendar (Argentina, UTC-3, no DST).

Every value handled here is a naive wall-clock date or datetime in the clinic
timezone. ISO dates are built field by field and never routed through a UTC
timestamp: "2026-01-12" read as midnight UTC is 21:00 of the 11th in
Argentina, which is the off-by-one-day bug these helpers exist to avoid.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from clinica.core.config import settings
from clinica.core.errors import InvalidDateError

DateLike = Union[date, datetime]

CLINIC_TZ = ZoneInfo(settings.TIMEZONE)
INVALID_DATE = "Fecha inválida"
MIN_YEAR = 1900
MAX_YEAR = 2100

MONTH_NAMES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]
WEEKDAY_NAMES = ["Domingo", "Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado"]
DAYS_PER_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


@dataclass(frozen=True)
class WeekdayInfo:
    fecha: str
    anio: int
    mes: int
    dia: int
    dia_semana: int  # 0 = Sunday
    nombre_dia: str


def _is_date(value) -> bool:
    return isinstance(value, (date, datetime))


def current_date() -> datetime:
    """Wall-clock now in the clinic timezone."""
    return datetime.now(CLINIC_TZ).replace(tzinfo=None)


def today() -> date:
    return current_date().date()


def utc_now() -> datetime:
    """Aware UTC instant for the created_at/updated_at columns."""
    return datetime.now(timezone.utc)


def start_of_day(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(value, time.min)


def end_of_day(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value.replace(hour=23, minute=59, second=59, microsecond=999999)
    return datetime.combine(value, time.max)


def to_iso_date(value: DateLike) -> str:
    if not _is_date(value):
        raise InvalidDateError(INVALID_DATE)
    return value.strftime("%Y-%m-%d")


def to_local_display(value: Optional[DateLike]) -> str:
    if not _is_date(value):
        return INVALID_DATE
    return value.strftime("%d/%m/%Y")


def to_month_year_display(value: Optional[DateLike]) -> str:
    if not _is_date(value):
        return INVALID_DATE
    return f"{MONTH_NAMES[value.month - 1]} {value.year}"


def to_long_display(value: Optional[DateLike]) -> str:
    """e.g. "lunes, 19 de octubre de 2026"."""
    if not _is_date(value):
        return INVALID_DATE
    weekday = WEEKDAY_NAMES[_sunday_based_weekday(value)].lower()
    return f"{weekday}, {value.day} de {MONTH_NAMES[value.month - 1]} de {value.year}"


def from_iso_string(text: str) -> datetime:
    """datetime.fromisoformat that also takes a trailing "Z" on Python 3.10."""
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_iso_date(text: str) -> datetime:
    """Parse yyyy-MM-dd (or a full ISO date-time) into local wall-clock time."""
    if not text:
        raise InvalidDateError("Fecha vacía")
    text = text.strip()

    if ISO_DATE_RE.match(text):
        year, month, day = (int(part) for part in text.split("-"))
        try:
            return datetime(year, month, day)
        except ValueError:
            raise InvalidDateError(f"Fecha ISO inválida: {text}")

    try:
        parsed = from_iso_string(text)
    except ValueError:
        raise InvalidDateError(f"Fecha ISO inválida: {text}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(CLINIC_TZ).replace(tzinfo=None)
    return parsed


def parse_iso_date_safe(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    try:
        return parse_iso_date(text)
    except InvalidDateError:
        return None


def is_valid_calendar_date(value) -> bool:
    if not _is_date(value):
        return False
    return MIN_YEAR <= value.year <= MAX_YEAR


def year_of(value: DateLike) -> int:
    if not _is_date(value):
        raise InvalidDateError(INVALID_DATE)
    return value.year


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or (year % 400 == 0)


def days_in_month(year: int, month0: int) -> int:
    """Days in a month; month0 is 0-based (0 = January)."""
    if month0 == 1 and is_leap_year(year):
        return 29
    return DAYS_PER_MONTH[month0]


def _sunday_based_weekday(value: DateLike) -> int:
    # date.weekday() is 0=Monday..6=Sunday
    python_day = value.weekday()
    return 0 if python_day == 6 else python_day + 1


def weekday_info(value: DateLike) -> WeekdayInfo:
    if not _is_date(value):
        raise InvalidDateError(INVALID_DATE)
    weekday = _sunday_based_weekday(value)
    return WeekdayInfo(
        fecha=to_local_display(value),
        anio=value.year,
        mes=value.month,
        dia=value.day,
        dia_semana=weekday,
        nombre_dia=WEEKDAY_NAMES[weekday],
    )


def parse_time(value: Union[str, time, None]) -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = TIME_RE.match(str(value).strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def format_time(value: Union[str, time, None]) -> str:
    """HH:MM without seconds, "-" when missing."""
    if value is None or value == "":
        return "-"
    if isinstance(value, time):
        return value.strftime("%H:%M")
    text = str(value)
    return text[:5] if len(text) >= 5 else text


def _appointment_start(fecha: Union[str, date], hora: Union[str, time]) -> Optional[datetime]:
    day = parse_iso_date_safe(fecha) if isinstance(fecha, str) else fecha
    slot = parse_time(hora)
    if day is None or slot is None:
        return None
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, slot)


def is_upcoming(fecha, hora, now: Optional[datetime] = None) -> bool:
    """True when the appointment starts within the next two hours."""
    start = _appointment_start(fecha, hora)
    if start is None:
        return False
    now = now or current_date()
    return timedelta(0) <= start - now <= timedelta(hours=2)


def is_overdue(fecha, hora, estado: str, now: Optional[datetime] = None) -> bool:
    """A still-scheduled appointment whose start time has passed."""
    if estado != "programado":
        return False
    start = _appointment_start(fecha, hora)
    if start is None:
        return False
    return start < (now or current_date())


def utc_to_local(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are UTC (naive values read as UTC); shown as clinic wall-clock time."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(CLINIC_TZ).replace(tzinfo=None)


def age_on(birth_date: Optional[date], on: Optional[date] = None) -> Optional[int]:
    if birth_date is None:
        return None
    on = on or today()
    years = on.year - birth_date.year
    if (on.month, on.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years
