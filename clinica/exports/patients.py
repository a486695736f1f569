"""
Patient list exports (CSV for spreadsheets, JSON for backups).

Both serializers accept ORM rows or plain dicts and return the file in
memory; the API layer decides how to deliver it.
"""
import csv
import io
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Sequence

from clinica.core.dates import age_on, from_iso_string, to_iso_date, to_local_display, today as local_today, utc_to_local
from clinica.core.errors import NothingToExportError
from clinica.db.models.patient import MEDICAL_FIELDS
from clinica.services.integrity import record_value

NOTHING_TO_EXPORT = "No hay pacientes para exportar"
UTF8_BOM = "\ufeff"

CSV_HEADERS = [
    "Nombre",
    "Apellido",
    "Teléfono",
    "Email",
    "Fecha de Nacimiento",
    "Edad",
    "Género",
    "Motivo de Consulta",
    "Antecedentes Médicos",
    "Medicamentos Actuales",
    "Alergias",
    "Diagnóstico",
    "Plan de Tratamiento",
    "Observaciones Médicas",
    "Notas",
    "Fecha de Registro",
    "Última Actualización",
]


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content: bytes
    media_type: str


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _timestamp_display(value: Any) -> str:
    if isinstance(value, str) and value:
        try:
            value = from_iso_string(value)
        except ValueError:
            return ""
    if not isinstance(value, datetime):
        return ""
    return to_local_display(utc_to_local(value))


def _csv_row(patient: Any, on: date) -> list:
    birth_date = _as_date(record_value(patient, "fecha_nacimiento"))
    age = age_on(birth_date, on)
    row = [
        record_value(patient, "nombre") or "",
        record_value(patient, "apellido") or "",
        record_value(patient, "telefono") or "",
        record_value(patient, "email") or "",
        to_local_display(birth_date) if birth_date else "",
        str(age) if age is not None else "",
        record_value(patient, "genero") or "",
    ]
    row.extend(record_value(patient, field) or "" for field in MEDICAL_FIELDS)
    row.extend([
        record_value(patient, "notas") or "",
        _timestamp_display(record_value(patient, "created_at")),
        _timestamp_display(record_value(patient, "updated_at")),
    ])
    return row


def export_patients_csv(patients: Sequence[Any], basename: str = "pacientes", today: Optional[date] = None) -> ExportFile:
    if not patients:
        raise NothingToExportError(NOTHING_TO_EXPORT)
    today = today or local_today()

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for patient in patients:
        writer.writerow(_csv_row(patient, today))

    # The BOM makes Excel open the file as UTF-8
    content = (UTF8_BOM + buffer.getvalue()).encode("utf-8")
    return ExportFile(
        filename=f"{basename}_{to_iso_date(today)}.csv",
        content=content,
        media_type="text/csv; charset=utf-8",
    )


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value or None


def build_patients_json(patients: Sequence[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    if not patients:
        raise NothingToExportError(NOTHING_TO_EXPORT)
    now = now or datetime.now(timezone.utc)

    records = []
    for patient in patients:
        record = {
            "nombre": record_value(patient, "nombre"),
            "apellido": record_value(patient, "apellido"),
            "telefono": record_value(patient, "telefono"),
            "email": record_value(patient, "email"),
            "fecha_nacimiento": _iso(record_value(patient, "fecha_nacimiento")),
            "numero_ficha": record_value(patient, "numero_ficha"),
        }
        for field in MEDICAL_FIELDS:
            record[field] = record_value(patient, field) or None
        record["notas"] = record_value(patient, "notas")
        record["fecha_registro"] = _iso(record_value(patient, "created_at"))
        record["ultima_actualizacion"] = _iso(record_value(patient, "updated_at"))
        records.append(record)

    return {
        "fecha_exportacion": now.isoformat(),
        "total_pacientes": len(records),
        "pacientes": records,
    }


def export_patients_json(patients: Sequence[Any], basename: str = "pacientes", now: Optional[datetime] = None) -> ExportFile:
    data = build_patients_json(patients, now)
    content = json.dumps(data, indent=2, ensure_ascii=False)
    day = utc_to_local(now).date() if now else local_today()
    return ExportFile(
        filename=f"{basename}_{to_iso_date(day)}.json",
        content=content.encode("utf-8"),
        media_type="application/json; charset=utf-8",
    )
