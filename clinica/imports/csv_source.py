"""
Reading legacy CSV exports.

Exports come out of the old practice software with either ``;`` or ``,`` as
delimiter, usually Latin-1 encoded, and sometimes with a decorative title
line (e.g. "Reporte de Pacientes") above the header row.
"""
import csv
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from clinica.core.errors import ImportSetupError
from clinica.core.logger import logger

UTF8_BOM = b"\xef\xbb\xbf"


@dataclass(frozen=True)
class CsvLayout:
    delimiter: str
    skip_title: bool


def locate_csv(
    explicit: Optional[Path],
    search_dirs: Sequence[Path],
    keywords: Iterable[str] = (),
    preferred_names: Iterable[str] = (),
) -> Path:
    """
    Find the input file for an import run.

    An explicit path must exist. Otherwise preferred file names are tried in
    each directory, then any ``*.csv`` whose name contains one of the
    keywords. Several candidates: the first in sorted order is used.
    """
    if explicit is not None:
        path = Path(explicit)
        if not path.is_file():
            raise ImportSetupError(f"No se encontró el archivo CSV: {path}")
        return path

    dirs = [Path(d) for d in search_dirs if Path(d).is_dir()]
    for directory in dirs:
        for name in preferred_names:
            candidate = directory / name
            if candidate.is_file():
                return candidate

    keywords = [k.lower() for k in keywords]
    candidates = sorted(
        path
        for directory in dirs
        for path in directory.glob("*.csv")
        if not keywords or any(k in path.name.lower() for k in keywords)
    )
    if not candidates:
        searched = ", ".join(str(d) for d in search_dirs)
        raise ImportSetupError(f"No se encontró ningún archivo CSV en: {searched}")
    if len(candidates) > 1:
        names = ", ".join(p.name for p in candidates)
        logger.warning(f"Se encontraron múltiples archivos CSV ({names}); usando el primero: {candidates[0].name}")
    return candidates[0]


def _is_multibyte_utf8(raw: bytes) -> bool:
    if raw.isascii():
        return False
    try:
        raw.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def decode_legacy(raw: bytes) -> str:
    """Latin-1 unless the bytes are well-formed multibyte UTF-8.

    Latin-1 maps every byte, so it never fails on its own; accented Latin-1
    text is practically never valid UTF-8, which makes a clean UTF-8 decode
    the signal that the Latin-1 reading would be mojibake.
    """
    # A BOM is an explicit UTF-8 marker
    if raw.startswith(UTF8_BOM):
        return raw[len(UTF8_BOM):].decode("utf-8")
    if _is_multibyte_utf8(raw):
        return raw.decode("utf-8")
    return raw.decode("latin-1")


def read_text(path: Path) -> str:
    return decode_legacy(Path(path).read_bytes())


def _data_lines(text: str) -> List[str]:
    return [line for line in text.splitlines() if line.strip()]


def detect_layout(text: str) -> CsvLayout:
    lines = _data_lines(text)
    if not lines:
        return CsvLayout(delimiter=",", skip_title=False)
    first = lines[0]
    skip_title = ";" not in first and "," not in first
    sample = lines[:2]
    delimiter = ";" if any(";" in line for line in sample) else ","
    return CsvLayout(delimiter=delimiter, skip_title=skip_title)


def parse_rows(text: str, layout: Optional[CsvLayout] = None) -> List[Dict[str, str]]:
    """Header-keyed rows; header names are stripped and blank rows dropped."""
    layout = layout or detect_layout(text)
    lines = text.splitlines(keepends=True)
    if layout.skip_title:
        while lines and not lines[0].strip():
            lines.pop(0)
        if lines:
            logger.info(f"Saltando primera línea (título): {lines.pop(0).strip()!r}")

    reader = csv.reader(io.StringIO("".join(lines)), delimiter=layout.delimiter)
    header = None
    rows = []
    for values in reader:
        if not any(value.strip() for value in values):
            continue
        if header is None:
            header = [name.strip() for name in values]
            continue
        rows.append({name: value for name, value in zip(header, values) if name})
    return rows


def load_csv(path: Path) -> List[Dict[str, str]]:
    text = read_text(path)
    layout = detect_layout(text)
    logger.info(f"Archivo: {Path(path).name} | delimitador {layout.delimiter!r}")
    return parse_rows(text, layout)
