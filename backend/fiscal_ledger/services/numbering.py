"""
Numeración correlativa de documentos por tipo y ejercicio.

Formato: "{prefijo}-{aa}-{n}" (A-25-1, R-25-14). El contador no se guarda en
ningún sitio: el siguiente número es siempre una proyección del conjunto de
registros actual, así que la numeración de un ejercicio nuevo empieza en 1 sin
necesidad de cerrar el anterior.
"""
import re
from typing import Iterable, NamedTuple, Optional

from .records import FiscalRecord, RecordKind, NUMBER_PREFIXES


DOCUMENT_NUMBER_PATTERN = re.compile(r"^([AR])-(\d{2})-(\d+)$")


class DocumentNumber(NamedTuple):
    prefix: str
    year_suffix: str
    sequence: int


def year_suffix(year: int) -> str:
    """Dos últimas cifras del ejercicio: 2025 -> '25'."""
    return f"{year % 100:02d}"


def number_pattern(kind: RecordKind, year: int) -> "re.Pattern":
    """Patrón anclado para un tipo y ejercicio concretos."""
    prefix = NUMBER_PREFIXES[kind]
    return re.compile(rf"^{prefix}-{year_suffix(year)}-(\d+)$")


def parse(number: Optional[str]) -> Optional[DocumentNumber]:
    """
    Descompone un número con el formato del sistema.
    Devuelve None si no encaja exactamente (p. ej. 'A-25-1-B' o 'FA-25-1').
    """
    match = DOCUMENT_NUMBER_PATTERN.match(number or "")
    if not match:
        return None
    return DocumentNumber(match.group(1), match.group(2), int(match.group(3)))


def format_number(kind: RecordKind, year: int, sequence: int) -> str:
    return f"{NUMBER_PREFIXES[kind]}-{year_suffix(year)}-{sequence}"


def max_sequence(existing: Iterable[FiscalRecord], kind: RecordKind, year: int) -> int:
    """Mayor secuencia usada para el tipo y ejercicio (0 si no hay ninguna)."""
    pattern = number_pattern(kind, year)
    highest = 0
    for record in existing:
        if record.kind != kind:
            continue
        match = pattern.match(record.document_number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def next_number(existing: Iterable[FiscalRecord], kind: RecordKind, year: int) -> str:
    """
    Siguiente número libre para el tipo y ejercicio.
    Función pura: no reserva nada; dos llamadas seguidas devuelven lo mismo.
    """
    return format_number(kind, year, max_sequence(existing, kind, year) + 1)


def document_sort_key(number: Optional[str]) -> tuple:
    """
    Clave de ordenación natural: A-25-2 antes que A-25-10.
    Los números con otro formato van al final, en orden alfabético.
    """
    parsed = parse(number)
    if parsed is None:
        return (1, "", 0, 0, number or "")
    return (0, parsed.prefix, int(parsed.year_suffix), parsed.sequence, "")
