"""
Data quality report after an import.

    python -m clinica.scripts.validate_migration

Read-only: counts filled fields, duplicate names, phones and fichas, and
appointments outside the bookable hours.
"""
import argparse
import sys
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from clinica.core.logger import logger
from clinica.core.validation import is_valid_appointment_time, normalize_ficha, phone_digits
from clinica.db.models.appointment import STATUSES
from clinica.db.session import async_session
from clinica.imports.writer import ImportSummary
from clinica.scripts.common import check_database, load_appointments, load_patients, run
from clinica.services.integrity import name_key, record_value

SAMPLE_SIZE = 5


def _filled(patients: List[Any], name: str) -> int:
    return sum(1 for p in patients if str(record_value(p, name) or "").strip())


def _repeated(values: Iterable[Any]) -> int:
    """How many distinct values occur more than once."""
    return sum(1 for count in Counter(v for v in values if v).values() if count > 1)


def quality_report(patients: Iterable[Any], appointments: Iterable[Any]) -> Dict[str, int]:
    patients = list(patients)
    appointments = list(appointments)

    report = {
        "Total de pacientes": len(patients),
        "Sin nombre o apellido": sum(
            1 for p in patients
            if not (record_value(p, "nombre") or "").strip() or not (record_value(p, "apellido") or "").strip()
        ),
        "Con teléfono": _filled(patients, "telefono"),
        "Con email": _filled(patients, "email"),
        "Con fecha de nacimiento": sum(1 for p in patients if record_value(p, "fecha_nacimiento")),
        "Con notas": _filled(patients, "notas"),
        "Con número de ficha": sum(1 for p in patients if normalize_ficha(record_value(p, "numero_ficha"))),
        "Nombres repetidos": _repeated(name_key(p) for p in patients),
        "Teléfonos repetidos": _repeated(phone_digits(record_value(p, "telefono")) for p in patients),
        "Fichas repetidas": _repeated(normalize_ficha(record_value(p, "numero_ficha")) for p in patients),
        "Total de turnos": len(appointments),
    }
    statuses = Counter(record_value(a, "estado") for a in appointments)
    for status in STATUSES:
        report[f"Turnos {status}"] = statuses.get(status, 0)
    report["Turnos fuera de horario"] = sum(
        1 for a in appointments if not is_valid_appointment_time(record_value(a, "hora"))
    )
    return report


async def validate(args) -> int:
    summary = ImportSummary("VALIDACIÓN DE MIGRACIÓN")
    async with async_session() as session:
        await check_database(session)
        patients = await load_patients(session)
        appointments = await load_appointments(session)

    for label, amount in quality_report(patients, appointments).items():
        summary.set(label, amount)
    summary.log()

    for patient in patients[:args.samples]:
        telefono = patient.telefono or "-"
        logger.info(f"Ejemplo: {patient.apellido}, {patient.nombre} | Tel: {telefono} | Email: {patient.email or '-'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Informe de calidad de los datos migrados")
    parser.add_argument("--samples", type=int, default=SAMPLE_SIZE, help="Cantidad de registros de ejemplo a mostrar")
    args = parser.parse_args(argv)
    return run(validate(args))


if __name__ == "__main__":
    sys.exit(main())
