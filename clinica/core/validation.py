"""
Form field predicates.

Optional fields are validated only when a value is present: every predicate
returns True for empty or missing input.
"""
import re
from datetime import time
from typing import Optional, Union

from clinica.core.config import settings
from clinica.core.dates import current_date, end_of_day, parse_iso_date_safe, parse_time

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_SEPARATORS_RE = re.compile(r"[\s\-()]")
# Stored numbers may carry the international prefix, e.g. +543364535352
PHONE_DIGITS_RE = re.compile(r"^\+?\d{8,15}$")


def is_required(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def is_valid_email(email: Optional[str]) -> bool:
    if not email or not email.strip():
        return True
    return bool(EMAIL_RE.match(email.strip()))


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email or not email.strip():
        return None
    return email.strip().lower()


def is_valid_phone(phone: Optional[str]) -> bool:
    if not phone or not phone.strip():
        return True
    return bool(PHONE_DIGITS_RE.match(normalize_phone(phone)))


def normalize_phone(phone: str) -> str:
    """Comparison key: drops spaces, dashes and parentheses only."""
    return PHONE_SEPARATORS_RE.sub("", phone)


def phone_digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def format_phone_display(phone: Optional[str]) -> str:
    if not phone:
        return ""
    cleaned = re.sub(r"[^\d+]", "", phone)
    if cleaned.startswith(settings.COUNTRY_CODE):
        national = cleaned[len(settings.COUNTRY_CODE):]
        if len(national) == 10:
            return f"{settings.COUNTRY_CODE} {national[:2]} {national[2:6]}-{national[6:]}"
    return cleaned


def normalize_name(name: Optional[str]) -> str:
    if not name:
        return ""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())


def normalize_ficha(ficha: Optional[str]) -> Optional[str]:
    """Empty string and "0" mean the patient has no record number."""
    if ficha is None:
        return None
    ficha = str(ficha).strip()
    if not ficha or ficha == "0":
        return None
    return ficha


def is_date_not_future(fecha: Optional[str]) -> bool:
    if not fecha:
        return True
    parsed = parse_iso_date_safe(fecha)
    if parsed is None:
        return False
    # Anything on today's date passes regardless of the time of day
    return parsed <= end_of_day(current_date())


def is_within_length(text: Optional[str], max_length: int) -> bool:
    if not text:
        return True
    return len(text) <= max_length


def is_valid_appointment_time(hora: Union[str, time, None]) -> bool:
    slot = parse_time(hora)
    if slot is None:
        return False
    opening = parse_time(settings.OPENING_TIME)
    closing = parse_time(settings.CLOSING_TIME)
    if not (opening <= slot <= closing):
        return False
    return slot.minute % settings.SLOT_MINUTES == 0
