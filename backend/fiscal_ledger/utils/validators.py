"""
Utilidades de validación de entradas.
"""
import re
from decimal import Decimal

from ..core.config import get_spain_time


def validate_tax_year(year: int) -> bool:
    """
    Valida que el ejercicio sea razonable (no muy antiguo ni futuro).
    """
    current_year = get_spain_time().year
    return 2000 <= year <= current_year + 1


def validate_vat_rate(rate: Decimal) -> bool:
    """
    Tipo de IVA en porcentaje.
    Los tipos vigentes son 0, 4, 5, 10 y 21, pero se admite cualquiera en rango.
    """
    return Decimal("0") <= rate <= Decimal("100")


def validate_withholding_rate(rate: Decimal) -> bool:
    """Tipo de retención IRPF en porcentaje (7, 15, 19...)."""
    return Decimal("0") <= rate <= Decimal("100")


def sanitize_filename(filename: str) -> str:
    """
    Sanitiza un nombre de archivo para prevenir path traversal.
    """
    if not filename:
        return filename

    # Eliminar caracteres peligrosos
    filename = re.sub(r'[/\\:*?"<>|]', '', filename)

    # Eliminar intentos de path traversal
    filename = filename.replace('..', '')

    return filename
