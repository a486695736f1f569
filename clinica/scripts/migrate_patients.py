"""
Import patients from a legacy CSV export.

    python -m clinica.scripts.migrate_patients [--file ReportePacientes.csv] [--dry-run]

New patients are inserted in batches; patients already stored get their ficha
from the CSV and any blank contact fields filled in.
"""
import argparse
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from clinica.core.logger import logger
from clinica.db.models import Patient
from clinica.db.session import async_session
from clinica.imports.csv_source import load_csv, locate_csv
from clinica.imports.mapping import LegacyPatient, map_patient_row, map_rows
from clinica.imports.reconcile import plan_patient_import
from clinica.imports.writer import ImportSummary, write_in_batches
from clinica.scripts.common import (
    DEFAULT_SEARCH_DIRS,
    add_batch_arguments,
    add_csv_arguments,
    apply_updates,
    check_database,
    load_patients,
    run,
)

KEYWORDS = ("paciente",)
PREFERRED_NAMES = ("ReportePacientes.csv", "pacientes.csv")


async def migrate(args) -> int:
    summary = ImportSummary("RESUMEN DE MIGRACIÓN DE PACIENTES")

    async with async_session() as session:
        await check_database(session)
        path = locate_csv(args.file, DEFAULT_SEARCH_DIRS, KEYWORDS, PREFERRED_NAMES)
        logger.info(f"Usando archivo: {path}")

        rows = load_csv(path)
        summary.set("Filas en CSV", len(rows))
        mapped = map_rows(rows, map_patient_row)
        summary.set("Filas sin nombre (omitidas)", mapped.skipped)
        summary.set("Filas con errores", mapped.failed)

        existing = await load_patients(session)
        plan = plan_patient_import(mapped.items, existing)
        summary.set("Duplicados en CSV", plan.duplicates)
        summary.set("Nuevos", len(plan.inserts))
        summary.set("A actualizar", len(plan.updates))
        summary.set("Sin cambios", plan.unchanged)
        summary.set("Ambiguos (omitidos)", len(plan.ambiguous))
        summary.set("Conflictos de ficha", len(plan.ficha_conflicts))
        for conflict in plan.ficha_conflicts:
            logger.warning(
                f"Ficha {conflict.ficha} ya asignada; se importa sin ficha: "
                f"{conflict.patient.apellido}, {conflict.patient.nombre}"
            )

        if args.dry_run:
            logger.info("Modo simulación: no se escribió nada")
            summary.log()
            return 0

        updated = await apply_updates(session, plan.updates)
        summary.set("Actualizados", updated["ok"])

        async def insert_batch(batch: List[LegacyPatient]) -> int:
            session.add_all([Patient(**patient.as_fields()) for patient in batch])
            try:
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise
            return len(batch)

        report = await write_in_batches(plan.inserts, insert_batch, batch_size=args.batch_size, label="pacientes")
        report.save_errors(args.error_log)
        summary.set("Insertados", report.success)
        summary.set("Errores", report.errors + updated["errors"] + mapped.failed)
        if plan.inserts:
            summary.set("Tasa de éxito (%)", round(report.success * 100 / len(plan.inserts)))

    summary.log()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Importa pacientes desde un CSV exportado del sistema anterior")
    add_csv_arguments(parser)
    add_batch_arguments(parser)
    args = parser.parse_args(argv)
    return run(migrate(args))


if __name__ == "__main__":
    sys.exit(main())
