import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from clinica.core.config import settings
from clinica.core.errors import friendly_error_message
from clinica.core.logger import logger

BatchWriter = Callable[[List[Any]], Awaitable[Optional[int]]]


@dataclass
class BatchFailure:
    batch: int
    error: str
    rows: List[Any]


@dataclass
class BatchReport:
    success: int = 0
    errors: int = 0
    failures: List[BatchFailure] = field(default_factory=list)

    def save_errors(self, path: Path) -> Optional[Path]:
        """Write failed batches as JSON for a manual retry; nothing is written when all succeeded."""
        if not self.failures:
            return None
        payload = [
            {"batch": f.batch, "error": f.error, "data": [_serializable(row) for row in f.rows]}
            for f in self.failures
        ]
        path = Path(path)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
        logger.warning(f"Errores guardados en: {path}")
        return path


def _serializable(row: Any) -> Any:
    if hasattr(row, "as_fields"):
        return row.as_fields()
    if hasattr(row, "__dict__") and not isinstance(row, dict):
        return {k: v for k, v in vars(row).items() if not k.startswith("_")}
    return row


async def write_in_batches(
    items: Sequence[Any],
    write_batch: BatchWriter,
    batch_size: Optional[int] = None,
    pause: Optional[float] = None,
    label: str = "registros",
) -> BatchReport:
    """
    Write items in fixed-size batches, one batch at a time.

    A failed batch is logged and recorded, and the run moves on to the next
    one; batches already written stay written.
    """
    batch_size = batch_size or settings.IMPORT_BATCH_SIZE
    pause = settings.IMPORT_BATCH_PAUSE_SECONDS if pause is None else pause
    report = BatchReport()
    total = (len(items) + batch_size - 1) // batch_size

    for start in range(0, len(items), batch_size):
        batch = list(items[start:start + batch_size])
        number = start // batch_size + 1
        logger.info(f"Procesando lote {number}/{total} ({len(batch)} {label})...")
        try:
            written = await write_batch(batch)
        except Exception as e:
            message = friendly_error_message(e)
            logger.error(f"Error en lote {number}: {message} ({e})")
            report.errors += len(batch)
            report.failures.append(BatchFailure(batch=number, error=str(e), rows=batch))
        else:
            written = len(batch) if written is None else written
            report.success += written
            logger.info(f"Lote {number} completado: {written} {label}")

        if start + batch_size < len(items) and pause > 0:
            await asyncio.sleep(pause)

    return report


@dataclass
class ImportSummary:
    """Counters printed at the end of every run."""

    title: str
    counts: Dict[str, int] = field(default_factory=dict)

    def add(self, label: str, amount: int = 1):
        self.counts[label] = self.counts.get(label, 0) + amount

    def set(self, label: str, amount: int):
        self.counts[label] = amount

    def lines(self) -> List[str]:
        width = max((len(label) for label in self.counts), default=0)
        rule = "=" * 60
        body = [f"{label.ljust(width)} : {amount}" for label, amount in self.counts.items()]
        return [rule, self.title, rule, *body, rule]

    def log(self):
        for line in self.lines():
            logger.info(line)
