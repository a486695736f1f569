"""Shared plumbing for the batch tools under ``clinica.scripts``."""
import argparse
import asyncio
from pathlib import Path
from typing import Any, Awaitable, Dict, List

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from clinica.core.dates import utc_now
from clinica.core.errors import ImportSetupError
from clinica.core.logger import logger
from clinica.db.models import Appointment, Patient
from clinica.db.session import engine

DEFAULT_SEARCH_DIRS = (Path("data"), Path("."))
DEFAULT_ERROR_LOG = Path("migration-errors.log")


def add_csv_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--file", type=Path, default=None, help="Archivo CSV a importar (por defecto se busca en data/ y en el directorio actual)")
    parser.add_argument("--dry-run", action="store_true", help="Mostrar el plan sin escribir en la base de datos")


def add_batch_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--batch-size", type=int, default=None, help="Registros por lote")
    parser.add_argument("--error-log", type=Path, default=DEFAULT_ERROR_LOG, help="Archivo JSON para los lotes fallidos")


async def check_database(session: AsyncSession):
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        raise ImportSetupError(f"No se pudo conectar a la base de datos: {e}") from e


async def load_patients(session: AsyncSession) -> List[Patient]:
    result = await session.execute(select(Patient).order_by(Patient.created_at))
    return result.scalars().all()


async def load_appointments(session: AsyncSession) -> List[Appointment]:
    result = await session.execute(select(Appointment))
    return result.scalars().all()


async def apply_updates(session: AsyncSession, updates: List[Any]) -> Dict[str, int]:
    """One committed update per patient; a failed one is rolled back and counted."""
    counts = {"ok": 0, "errors": 0}
    for update in updates:
        patient = await session.get(Patient, update.patient_id)
        if patient is None:
            counts["errors"] += 1
            continue
        for name, value in update.changes.items():
            setattr(patient, name, value)
        patient.updated_at = utc_now()
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.warning(f"Error al actualizar paciente {update.patient_id}: {e}")
            counts["errors"] += 1
        else:
            counts["ok"] += 1
    return counts


async def _run_and_dispose(main: Awaitable[int]) -> int:
    try:
        return await main
    finally:
        await engine.dispose()


def run(main: Awaitable[int]) -> int:
    """Run a tool's coroutine; setup failures end the run with exit code 1."""
    try:
        return asyncio.run(_run_and_dispose(main))
    except ImportSetupError as e:
        logger.error(str(e))
        return 1
