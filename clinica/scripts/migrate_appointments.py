"""
Import appointments from a legacy CSV export.

    python -m clinica.scripts.migrate_appointments [--file Turnos.csv] [--dry-run]

Patients must already be imported; rows whose patient cannot be resolved
unambiguously are skipped and listed.
"""
import argparse
import sys
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from clinica.core.logger import logger
from clinica.db.models import Appointment
from clinica.db.session import async_session
from clinica.imports.csv_source import load_csv, locate_csv
from clinica.imports.mapping import map_appointment_row, map_rows
from clinica.imports.reconcile import PatientIndex, plan_appointment_import
from clinica.imports.writer import ImportSummary, write_in_batches
from clinica.scripts.common import (
    DEFAULT_SEARCH_DIRS,
    add_batch_arguments,
    add_csv_arguments,
    check_database,
    load_appointments,
    load_patients,
    run,
)

KEYWORDS = ("turno", "cita", "appointment")
PREFERRED_NAMES = ("ReporteTurnos.csv", "turnos.csv")


async def migrate(args) -> int:
    summary = ImportSummary("RESUMEN DE MIGRACIÓN DE TURNOS")

    async with async_session() as session:
        await check_database(session)
        path = locate_csv(args.file, DEFAULT_SEARCH_DIRS, KEYWORDS, PREFERRED_NAMES)
        logger.info(f"Usando archivo: {path}")

        rows = load_csv(path)
        summary.set("Filas en CSV", len(rows))
        mapped = map_rows(rows, map_appointment_row)
        summary.set("Sin paciente, fecha u hora válidos", mapped.skipped)
        summary.set("Filas con errores", mapped.failed)

        index = PatientIndex(await load_patients(session))
        existing_slots = [(a.fecha, a.hora) for a in await load_appointments(session)]
        plan = plan_appointment_import(mapped.items, index, existing_slots)
        for appointment in plan.not_found:
            logger.warning(f"Paciente no encontrado: {appointment.apellido}, {appointment.nombre}")
        for appointment in plan.ambiguous:
            logger.warning(f"Paciente ambiguo: {appointment.apellido}, {appointment.nombre}")

        summary.set("Turnos a insertar", len(plan.rows))
        summary.set("Pacientes no encontrados", len(plan.not_found))
        summary.set("Pacientes ambiguos", len(plan.ambiguous))
        summary.set("Duplicados en CSV", plan.duplicates)
        summary.set("Horario ya ocupado", len(plan.slot_taken))

        if args.dry_run:
            logger.info("Modo simulación: no se escribió nada")
            summary.log()
            return 0

        async def insert_batch(batch: List[Dict[str, Any]]) -> int:
            session.add_all([Appointment(**row) for row in batch])
            try:
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise
            return len(batch)

        report = await write_in_batches(plan.rows, insert_batch, batch_size=args.batch_size, label="turnos")
        report.save_errors(args.error_log)
        summary.set("Insertados", report.success)
        summary.set("Errores", report.errors + mapped.failed)

    summary.log()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Importa turnos desde un CSV exportado del sistema anterior")
    add_csv_arguments(parser)
    add_batch_arguments(parser)
    args = parser.parse_args(argv)
    return run(migrate(args))


if __name__ == "__main__":
    sys.exit(main())
