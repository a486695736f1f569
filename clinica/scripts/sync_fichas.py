"""
Re-apply record numbers from the patients CSV to patients already stored.

    python -m clinica.scripts.sync_fichas [--file ReportePacientes.csv] [--dry-run]
"""
import argparse
import sys
from typing import List, Optional

from clinica.core.logger import logger
from clinica.db.session import async_session
from clinica.imports.csv_source import load_csv, locate_csv
from clinica.imports.mapping import map_patient_row, map_rows
from clinica.imports.reconcile import plan_ficha_sync
from clinica.imports.writer import ImportSummary
from clinica.scripts.common import DEFAULT_SEARCH_DIRS, add_csv_arguments, apply_updates, check_database, load_patients, run
from clinica.scripts.migrate_patients import KEYWORDS, PREFERRED_NAMES


async def sync(args) -> int:
    summary = ImportSummary("RESUMEN DE ACTUALIZACIÓN DE FICHAS")

    async with async_session() as session:
        await check_database(session)
        path = locate_csv(args.file, DEFAULT_SEARCH_DIRS, KEYWORDS, PREFERRED_NAMES)
        mapped = map_rows(load_csv(path), map_patient_row)
        existing = await load_patients(session)
        plan = plan_ficha_sync(mapped.items, existing)

        with_ficha = sum(1 for p in mapped.items if p.numero_ficha)
        summary.set("Pacientes con ficha en CSV", with_ficha)
        summary.set("Fichas a actualizar", len(plan.updates))
        summary.set("Sin cambios", plan.unchanged)
        summary.set("No encontrados en la base", len(plan.inserts))
        summary.set("Ambiguos", len(plan.ambiguous))
        summary.set("Conflictos de ficha", len(plan.ficha_conflicts))
        summary.set("Filas con errores", mapped.failed)
        for update in plan.updates:
            logger.info(
                f"{update.source.apellido}, {update.source.nombre} -> ficha {update.changes['numero_ficha']}"
            )

        if not args.dry_run:
            counts = await apply_updates(session, plan.updates)
            summary.set("Actualizados", counts["ok"])
            summary.set("Errores", counts["errors"])

    summary.log()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Actualiza los números de ficha desde el CSV de pacientes")
    add_csv_arguments(parser)
    args = parser.parse_args(argv)
    return run(sync(args))


if __name__ == "__main__":
    sys.exit(main())
