"""
Agenda de clientes y proveedores.

Cada contacto tiene un identificador interno correlativo por tipo: C-1, C-2...
para clientes y P-1, P-2... para proveedores. Como en la numeración de
facturas, el siguiente identificador se proyecta desde la agenda actual
(mayor número usado + 1); no hay contador guardado.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional
import re

from .integrity_guard import GuardResult, Issue, IssueCode, tax_id_issue


class ContactType(str, Enum):
    CLIENT = "CLIENT"
    PROVIDER = "PROVIDER"


CONTACT_PREFIXES = {
    ContactType.CLIENT: "C",
    ContactType.PROVIDER: "P",
}

CONTACT_ID_PATTERN = re.compile(r"^([CP])-(\d+)$")

REQUIRED_CONTACT_FIELDS = {
    'name': 'Nombre o razón social',
    'tax_id': 'NIF/CIF',
}


@dataclass(frozen=True)
class Contact:
    id: str
    contact_type: ContactType
    name: str = ""
    tax_id: str = ""
    internal_id: str = ""
    fiscal_address: str = ""
    email: str = ""
    phone: str = ""
    contact_person: str = ""
    notes: str = ""


class ContactId(NamedTuple):
    prefix: str
    sequence: int


def parse_contact_id(value: Optional[str]) -> Optional[ContactId]:
    """'C-12' -> ContactId('C', 12); None si no encaja exactamente."""
    match = CONTACT_ID_PATTERN.match(value or "")
    if not match:
        return None
    return ContactId(match.group(1), int(match.group(2)))


def next_contact_id(existing: Iterable[Contact], contact_type: ContactType) -> str:
    """Siguiente identificador interno libre para el tipo (C-1 si no hay ninguno)."""
    prefix = CONTACT_PREFIXES[contact_type]
    highest = 0
    for contact in existing:
        if contact.contact_type != contact_type:
            continue
        parsed = parse_contact_id(contact.internal_id)
        if parsed is not None and parsed.prefix == prefix:
            highest = max(highest, parsed.sequence)
    return f"{prefix}-{highest + 1}"


def contact_sort_key(contact: Contact) -> tuple:
    """Orden natural por identificador (C-2 antes que C-10); sin identificador, al final."""
    parsed = parse_contact_id(contact.internal_id)
    if parsed is None:
        return (1, "", 0, contact.name.lower())
    return (0, parsed.prefix, parsed.sequence, "")


def search_contacts(
    contacts: Iterable[Contact],
    term: str = "",
    contact_type: Optional[ContactType] = None
) -> List[Contact]:
    """Busca por nombre, NIF, identificador, email o persona de contacto."""
    term = (term or "").strip().lower()
    result = []
    for contact in contacts:
        if contact_type is not None and contact.contact_type != contact_type:
            continue
        haystack = (
            contact.name, contact.tax_id, contact.internal_id,
            contact.email, contact.contact_person
        )
        if term and not any(term in (value or "").lower() for value in haystack):
            continue
        result.append(contact)
    return sorted(result, key=contact_sort_key)


def find_by_tax_id(existing: Iterable[Contact], tax_id: str, exclude_id: Optional[str] = None) -> Optional[Contact]:
    normalized = (tax_id or "").strip().upper()
    if not normalized:
        return None
    for contact in existing:
        if contact.id == exclude_id:
            continue
        if (contact.tax_id or "").strip().upper() == normalized:
            return contact
    return None


def check_contact(draft: Contact, existing: Iterable[Contact]) -> GuardResult:
    """
    Comprobaciones antes de guardar un contacto.

    1. Nombre y NIF vacíos: bloqueante.
    2. NIF no válido: advertencia (la agenda admite NIF-IVA extranjeros).
    3. Otro contacto con el mismo NIF: advertencia.
    """
    result = GuardResult()

    for name, label in REQUIRED_CONTACT_FIELDS.items():
        if not (getattr(draft, name) or "").strip():
            result.blocking.append(Issue(
                code=IssueCode.MISSING_REQUIRED_FIELD,
                field=name,
                message=f"Campo obligatorio: {label}"
            ))

    issue = tax_id_issue(draft.tax_id, 'tax_id')
    if issue is not None:
        result.advisory.append(issue)

    duplicate = find_by_tax_id(existing, draft.tax_id, exclude_id=draft.id)
    if duplicate is not None:
        result.advisory.append(Issue(
            code=IssueCode.DUPLICATE_TAX_ID,
            field='tax_id',
            message=(
                f"Ya existe un contacto con este NIF "
                f"({duplicate.internal_id or duplicate.name})"
            )
        ))

    return result
