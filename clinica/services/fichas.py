from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from clinica.core.logger import logger
from clinica.db.models import Patient


def _as_positive_int(ficha: Optional[str]) -> Optional[int]:
    if ficha is None:
        return None
    ficha = str(ficha).strip()
    # int() would also take "1_000", "+5" and non-ASCII digits
    if not (ficha.isascii() and ficha.isdecimal()):
        return None
    number = int(ficha)
    return number if number > 0 else None


def compute_next_ficha(fichas: Iterable[Optional[str]]) -> str:
    """Next sequential record number; non-numeric, blank and "0" values are ignored."""
    numbers = [n for n in (_as_positive_int(f) for f in fichas) if n is not None]
    if not numbers:
        return "1"
    return str(max(numbers) + 1)


async def next_ficha_number(session: AsyncSession) -> str:
    """
    Suggest the next free ficha from the ones already stored.

    The value is advisory: a failed query restarts the sequence at "1"
    instead of failing the caller.
    """
    try:
        stmt = select(Patient.numero_ficha).where(Patient.numero_ficha.is_not(None))
        result = await session.execute(stmt)
        fichas = result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Error al obtener números de ficha: {e}")
        return "1"
    return compute_next_ficha(fichas)
