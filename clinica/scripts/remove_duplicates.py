"""
Remove duplicated patients (same name and phone), keeping the oldest record.

    python -m clinica.scripts.remove_duplicates            # report only
    python -m clinica.scripts.remove_duplicates --confirm  # delete

Without ``--confirm`` nothing is written. Patients with scheduled
appointments are never deleted; past appointments of a removed duplicate are
moved to the record that is kept, and so is its ficha when the kept record
has none.
"""
import argparse
import sys
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError

from clinica.core.dates import utc_now
from clinica.core.logger import logger
from clinica.db.models import Appointment, Patient
from clinica.db.session import async_session
from clinica.imports.writer import ImportSummary
from clinica.scripts.common import check_database, load_appointments, load_patients, run
from clinica.services.integrity import (
    find_duplicate_patient_groups,
    has_scheduled_appointments,
    name_phone_key,
    record_value,
)


@dataclass
class DuplicateGroupPlan:
    keeper: Any
    remove: List[Any] = field(default_factory=list)
    blocked: List[Any] = field(default_factory=list)
    ficha_from: Optional[Any] = None


def plan_duplicate_removal(patients: Iterable[Any], appointments: Iterable[Any]) -> List[DuplicateGroupPlan]:
    """Patients must be ordered oldest first; the first of each group is kept."""
    appointments = list(appointments)
    plans = []
    for group in find_duplicate_patient_groups(patients, key=name_phone_key):
        plan = DuplicateGroupPlan(keeper=group[0])
        for duplicate in group[1:]:
            if has_scheduled_appointments(record_value(duplicate, "id"), appointments):
                plan.blocked.append(duplicate)
            else:
                plan.remove.append(duplicate)
        if not record_value(plan.keeper, "numero_ficha"):
            plan.ficha_from = next((d for d in plan.remove if record_value(d, "numero_ficha")), None)
        plans.append(plan)
    return plans


def _describe(patient: Any) -> str:
    ficha = record_value(patient, "numero_ficha") or "-"
    return f"{record_value(patient, 'apellido')}, {record_value(patient, 'nombre')} (ficha {ficha}, id {record_value(patient, 'id')})"


def log_plan(plans: List[DuplicateGroupPlan]):
    for plan in plans:
        logger.info(f"Mantener: {_describe(plan.keeper)}")
        for duplicate in plan.remove:
            logger.info(f"  Eliminar: {_describe(duplicate)}")
        for duplicate in plan.blocked:
            logger.warning(f"  Omitido (tiene turnos programados): {_describe(duplicate)}")
        if plan.ficha_from is not None:
            logger.info(f"  Copiar ficha {record_value(plan.ficha_from, 'numero_ficha')} al registro que se mantiene")


async def apply_plan(session, keeper_id: Any, remove_ids: List[Any], ficha: Optional[str]):
    await session.execute(
        update(Appointment).where(Appointment.paciente_id.in_(remove_ids)).values(paciente_id=keeper_id)
    )
    await session.execute(delete(Patient).where(Patient.id.in_(remove_ids)))
    # The duplicate's row is gone before its ficha moves to the keeper
    if ficha:
        await session.execute(
            update(Patient)
            .where(Patient.id == keeper_id)
            .values(numero_ficha=ficha, updated_at=utc_now())
        )
    await session.commit()


async def remove_duplicates(args) -> int:
    summary = ImportSummary("RESUMEN DE ELIMINACIÓN DE DUPLICADOS")

    async with async_session() as session:
        await check_database(session)
        patients = await load_patients(session)
        plans = plan_duplicate_removal(patients, await load_appointments(session))

        summary.set("Pacientes", len(patients))
        summary.set("Grupos duplicados", len(plans))
        summary.set("A eliminar", sum(len(p.remove) for p in plans))
        summary.set("Omitidos por turnos programados", sum(len(p.blocked) for p in plans))
        log_plan(plans)

        if not args.confirm:
            logger.info("Modo simulación: ejecutar con --confirm para eliminar")
            summary.log()
            return 0

        # Plain values only: a rollback expires the loaded rows
        jobs = [
            (
                _describe(plan.keeper),
                plan.keeper.id,
                [d.id for d in plan.remove],
                plan.ficha_from.numero_ficha if plan.ficha_from is not None else None,
            )
            for plan in plans
            if plan.remove
        ]
        deleted = errors = 0
        for label, keeper_id, remove_ids, ficha in jobs:
            try:
                await apply_plan(session, keeper_id, remove_ids, ficha)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Error al eliminar duplicados de {label}: {e}")
                errors += len(remove_ids)
            else:
                deleted += len(remove_ids)
        summary.set("Eliminados", deleted)
        summary.set("Errores", errors)

    summary.log()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Elimina pacientes duplicados (mismo nombre y teléfono)")
    parser.add_argument("--confirm", action="store_true", help="Eliminar de verdad; sin esta opción solo se muestra el informe")
    args = parser.parse_args(argv)
    return run(remove_duplicates(args))


if __name__ == "__main__":
    sys.exit(main())
