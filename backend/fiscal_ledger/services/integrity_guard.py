"""
Comprobaciones previas al guardado de un registro.

Las incidencias se devuelven como datos: bloqueantes (impiden guardar) o
advertencias (se puede guardar con confirmación expresa del usuario).
Los borradores extraídos por IA o importados pasan por aquí igual que los
introducidos a mano.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .records import FiscalRecord, RecordKind
from . import tax_id_validator
from .tax_id_validator import TaxIdStatus


class IssueCode(str, Enum):
    DUPLICATE_DOCUMENT_NUMBER = "DUPLICATE_DOCUMENT_NUMBER"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_CHECKSUM = "INVALID_CHECKSUM"
    UNRECOGNIZED_FORMAT = "UNRECOGNIZED_FORMAT"
    DUPLICATE_TAX_ID = "DUPLICATE_TAX_ID"  # Agenda de contactos


# Campo -> etiqueta para los mensajes
REQUIRED_FIELDS = {
    'counterparty_name': 'Nombre del cliente/proveedor',
    'counterparty_tax_id': 'NIF/CIF',
    'document_number': 'Número de documento',
    'issue_date': 'Fecha de expedición',
}

KIND_LABELS = {
    RecordKind.INCOME: 'Ingreso',
    RecordKind.EXPENSE: 'Gasto',
}


@dataclass(frozen=True)
class Issue:
    code: IssueCode
    field: str
    message: str


@dataclass
class GuardResult:
    blocking: List[Issue] = field(default_factory=list)
    advisory: List[Issue] = field(default_factory=list)

    @property
    def is_blocked(self) -> bool:
        return bool(self.blocking)

    @property
    def needs_confirmation(self) -> bool:
        return not self.blocking and bool(self.advisory)


def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def check_required_fields(draft: FiscalRecord) -> List[Issue]:
    """Una incidencia por cada campo obligatorio vacío."""
    return [
        Issue(
            code=IssueCode.MISSING_REQUIRED_FIELD,
            field=name,
            message=f"Campo obligatorio: {label}"
        )
        for name, label in REQUIRED_FIELDS.items()
        if _is_missing(getattr(draft, name))
    ]


def find_duplicate(
    draft: FiscalRecord,
    existing: Iterable[FiscalRecord],
    is_edit: bool
) -> Optional[FiscalRecord]:
    """
    Registro existente con el mismo (tipo, número).
    En edición se ignora el propio registro que se está editando.
    """
    number = (draft.document_number or "").strip()
    if not number:
        return None
    for record in existing:
        if record.kind != draft.kind or (record.document_number or "").strip() != number:
            continue
        if is_edit and record.id == draft.id:
            continue
        return record
    return None


def tax_id_issue(value: str, field_name: str) -> Optional[Issue]:
    """Incidencia del validador para un NIF informado (None si es válido o está vacío)."""
    if _is_missing(value):
        return None
    result = tax_id_validator.validate(value)
    if result.is_valid:
        return None
    code = (
        IssueCode.INVALID_CHECKSUM
        if result.status == TaxIdStatus.INVALID_CHECKSUM
        else IssueCode.UNRECOGNIZED_FORMAT
    )
    return Issue(code=code, field=field_name, message=result.message)


def check_tax_id(draft: FiscalRecord) -> Optional[Issue]:
    return tax_id_issue(draft.counterparty_tax_id, 'counterparty_tax_id')


def check_before_save(
    draft: FiscalRecord,
    existing: Iterable[FiscalRecord],
    is_edit: bool
) -> GuardResult:
    """
    Clasifica las incidencias de un borrador frente al conjunto existente.

    1. Número duplicado dentro del mismo tipo: bloqueante, aunque cambie el cliente.
    2. NIF: bloqueante en ingresos; advertencia en gastos (NIF-IVA extranjeros).
    3. Campos obligatorios vacíos: bloqueante.
    """
    result = GuardResult()

    duplicate = find_duplicate(draft, existing, is_edit)
    if duplicate is not None:
        label = KIND_LABELS.get(RecordKind(draft.kind), draft.kind)
        result.blocking.append(Issue(
            code=IssueCode.DUPLICATE_DOCUMENT_NUMBER,
            field='document_number',
            message=(
                f"Ya existe una factura de tipo {label} con el número "
                f"{draft.document_number}. Por favor, usa un número único."
            )
        ))

    tax_id_issue = check_tax_id(draft)
    if tax_id_issue is not None:
        if draft.kind == RecordKind.INCOME:
            result.blocking.append(tax_id_issue)
        else:
            result.advisory.append(tax_id_issue)

    result.blocking.extend(check_required_fields(draft))

    return result
