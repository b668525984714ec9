"""
Validación de identificadores fiscales españoles (DNI/NIF, NIE y CIF).

DNI y NIE se validan con la letra de control módulo 23.
Del CIF solo se comprueba la forma: el dígito de control no se calcula.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# Letra de control: TABLE[número % 23]
CONTROL_LETTERS = "TRWAGMYFPDXBNJZSQVHLCKE"

# Sustitución de la letra inicial del NIE
NIE_PREFIXES = {"X": "0", "Y": "1", "Z": "2"}

DNI_PATTERN = re.compile(r"^[0-9]{8}[A-Z]$")
NIE_PATTERN = re.compile(r"^[XYZ][0-9]{7}[A-Z]$")
CIF_PATTERN = re.compile(r"^[ABCDEFGHJKLMNPQRSUVW][0-9]{7}[0-9A-J]$")


class TaxIdType(str, Enum):
    DNI = "DNI"
    NIE = "NIE"
    CIF = "CIF"


class TaxIdStatus(str, Enum):
    VALID = "VALID"
    INVALID_CHECKSUM = "INVALID_CHECKSUM"
    UNRECOGNIZED_FORMAT = "UNRECOGNIZED_FORMAT"


@dataclass(frozen=True)
class ValidationResult:
    """Resultado de validar un identificador."""
    status: TaxIdStatus
    normalized: str
    id_type: Optional[TaxIdType] = None
    expected_letter: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status == TaxIdStatus.VALID

    @property
    def message(self) -> Optional[str]:
        """Mensaje para el usuario, o None si es válido."""
        if self.status == TaxIdStatus.INVALID_CHECKSUM:
            label = "NIE" if self.id_type == TaxIdType.NIE else "NIF"
            return f"{label} incorrecto: La letra debería ser {self.expected_letter}"
        if self.status == TaxIdStatus.UNRECOGNIZED_FORMAT:
            return "Formato español inválido. Esperado: DNI, CIF o NIE"
        return None


def normalize_tax_id(identifier: Optional[str]) -> str:
    """Mayúsculas y sin espacios exteriores."""
    return (identifier or "").strip().upper()


def control_letter(number: int) -> str:
    """Letra de control de un DNI (o NIE ya sustituido)."""
    return CONTROL_LETTERS[number % 23]


def _check_letter(normalized: str, digits: str, id_type: TaxIdType) -> ValidationResult:
    expected = control_letter(int(digits))
    if normalized[-1] != expected:
        return ValidationResult(
            status=TaxIdStatus.INVALID_CHECKSUM,
            normalized=normalized,
            id_type=id_type,
            expected_letter=expected
        )
    return ValidationResult(
        status=TaxIdStatus.VALID,
        normalized=normalized,
        id_type=id_type
    )


def validate(identifier: Optional[str]) -> ValidationResult:
    """
    Clasifica y valida un identificador fiscal español.

    - DNI/NIF: 8 dígitos + letra de control.
    - NIE: X/Y/Z + 7 dígitos + letra; X→0, Y→1, Z→2 y misma tabla.
    - CIF: letra inicial permitida + 7 dígitos + carácter de control (solo forma).
    - Cualquier otra cosa: formato no reconocido.
    """
    normalized = normalize_tax_id(identifier)

    if DNI_PATTERN.match(normalized):
        return _check_letter(normalized, normalized[:8], TaxIdType.DNI)

    if NIE_PATTERN.match(normalized):
        digits = NIE_PREFIXES[normalized[0]] + normalized[1:8]
        return _check_letter(normalized, digits, TaxIdType.NIE)

    if CIF_PATTERN.match(normalized):
        return ValidationResult(
            status=TaxIdStatus.VALID,
            normalized=normalized,
            id_type=TaxIdType.CIF
        )

    return ValidationResult(
        status=TaxIdStatus.UNRECOGNIZED_FORMAT,
        normalized=normalized
    )
