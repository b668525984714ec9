"""
Endpoints de la agenda de clientes y proveedores.
"""
from dataclasses import asdict, replace
from typing import List, Optional
from zipfile import BadZipFile
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.orm import Session

from ...db.database import get_db
from ...schemas.schemas import (
    ContactBase, ContactCreate, ContactImportResultResponse, ContactImportRowResult,
    ContactResponse, ContactUpdate, ImportRowStatusEnum, NextContactIdResponse,
    SavedContactResponse
)
from ...services import contacts, import_service, tax_id_validator
from ...services.contact_store import ContactNotFoundError, SQLAlchemyContactStore
from ...services.contacts import Contact, ContactType
from ...services.integrity_guard import IssueCode
from ...services.records import new_record_id
from .records import enforce_guard, issue_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contacts", tags=["Agenda de Contactos"])


def get_contact_store(db: Session = Depends(get_db)) -> SQLAlchemyContactStore:
    return SQLAlchemyContactStore(db)


def build_contact(data: ContactBase, contact_id: str, internal_id: str) -> Contact:
    return Contact(id=contact_id, internal_id=internal_id, **data.model_dump())


def to_response(contact: Contact) -> ContactResponse:
    warning = None
    if contact.tax_id:
        result = tax_id_validator.validate(contact.tax_id)
        if not result.is_valid:
            warning = result.message
    return ContactResponse(**asdict(contact), tax_id_warning=warning)


def not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Contacto no encontrado"
    )


@router.get("/", response_model=List[ContactResponse])
async def list_contacts(
    q: str = Query("", max_length=100),
    contact_type: Optional[ContactType] = Query(None),
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    """Agenda ordenada por identificador (C-2 antes que C-10), con búsqueda libre."""
    found = contacts.search_contacts(store.list_all(), q, contact_type)
    return [to_response(c) for c in found]


@router.get("/next-id", response_model=NextContactIdResponse)
async def get_next_contact_id(
    contact_type: ContactType,
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    """Siguiente identificador interno. No se reserva: se calcula de nuevo al guardar."""
    return NextContactIdResponse(
        contact_type=contact_type,
        internal_id=contacts.next_contact_id(store.list_all(), contact_type)
    )


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: str,
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    try:
        return to_response(store.get(contact_id))
    except ContactNotFoundError:
        raise not_found()


@router.post("/", response_model=SavedContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    data: ContactCreate,
    confirm: bool = Query(False),
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    """
    Alta de contacto.
    Un NIF no válido o repetido es solo una advertencia: se guarda con confirm=true.
    """
    existing = store.list_all()
    draft = build_contact(data, new_record_id(), contacts.next_contact_id(existing, data.contact_type))
    result = contacts.check_contact(draft, existing)
    enforce_guard(result, confirm, subject="el contacto")

    saved = store.insert(draft)
    return SavedContactResponse(
        contact=to_response(saved),
        advisory=[issue_to_schema(i) for i in result.advisory]
    )


@router.put("/{contact_id}", response_model=SavedContactResponse)
async def replace_contact(
    contact_id: str,
    data: ContactUpdate,
    confirm: bool = Query(False),
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    """Sustituye un contacto. Al pasar de cliente a proveedor (o al revés) recibe un identificador nuevo."""
    try:
        current = store.get(contact_id)
    except ContactNotFoundError:
        raise not_found()

    existing = store.list_all()
    internal_id = current.internal_id
    if data.contact_type != current.contact_type or not internal_id:
        internal_id = contacts.next_contact_id(existing, data.contact_type)

    draft = build_contact(data, contact_id, internal_id)
    result = contacts.check_contact(draft, existing)
    enforce_guard(result, confirm, subject="el contacto")

    saved = store.replace(contact_id, draft)
    return SavedContactResponse(
        contact=to_response(saved),
        advisory=[issue_to_schema(i) for i in result.advisory]
    )


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: str,
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    try:
        store.delete(contact_id)
    except ContactNotFoundError:
        raise not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/import", response_model=ContactImportResultResponse)
async def import_contacts(
    confirm: bool = Query(False),
    file: UploadFile = File(...),
    store: SQLAlchemyContactStore = Depends(get_contact_store)
):
    """
    Importa contactos desde CSV o Excel.
    Columnas: Tipo (Cliente/Proveedor), Nombre, NIF, Domicilio, Email,
    Teléfono, Contacto y Notas. El identificador C-n / P-n se asigna al guardar.
    """
    content = await file.read()
    try:
        rows = import_service.read_rows(file.filename, content)
    except import_service.UnsupportedFileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (BadZipFile, InvalidFileException):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No se pudo leer el fichero Excel"
        )

    existing = store.list_all()
    unmapped = []
    results = []
    for row in import_service.build_contacts(rows):
        for column in row.unmapped_columns:
            if column not in unmapped:
                unmapped.append(column)

        draft = replace(
            row.contact,
            internal_id=contacts.next_contact_id(existing, row.contact.contact_type)
        )
        guard = contacts.check_contact(draft, existing)
        # En la importación un NIF ya presente en la agenda descarta la fila
        blocking = guard.blocking + [i for i in guard.advisory if i.code == IssueCode.DUPLICATE_TAX_ID]
        advisory = [i for i in guard.advisory if i.code != IssueCode.DUPLICATE_TAX_ID]
        issues = [issue_to_schema(i) for i in blocking + advisory]

        internal_id = None
        contact_id = None
        if blocking:
            row_status = ImportRowStatusEnum.REJECTED
        elif advisory and not confirm:
            row_status = ImportRowStatusEnum.NEEDS_CONFIRMATION
        else:
            saved = store.insert(draft)
            existing.append(saved)
            row_status = ImportRowStatusEnum.IMPORTED
            internal_id = saved.internal_id
            contact_id = saved.id

        results.append(ContactImportRowResult(
            row_number=row.row_number,
            name=draft.name,
            tax_id=draft.tax_id,
            status=row_status,
            internal_id=internal_id,
            contact_id=contact_id,
            issues=issues
        ))

    summary = ContactImportResultResponse(
        total_rows=len(results),
        imported=sum(1 for r in results if r.status == ImportRowStatusEnum.IMPORTED),
        rejected=sum(1 for r in results if r.status == ImportRowStatusEnum.REJECTED),
        needs_confirmation=sum(1 for r in results if r.status == ImportRowStatusEnum.NEEDS_CONFIRMATION),
        unmapped_columns=unmapped,
        rows=results
    )
    logger.info(
        f"Importación de contactos {file.filename}: {summary.imported} importados, "
        f"{summary.rejected} rechazados, {summary.needs_confirmation} pendientes"
    )
    return summary
