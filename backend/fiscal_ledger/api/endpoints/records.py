"""
Endpoints de registros fiscales (facturas emitidas y recibidas).
Alta, edición, borrado, numeración, validación de NIF, factura en PDF,
importación y exportación.
"""
from dataclasses import asdict, replace
from datetime import date
from typing import List, Optional
from zipfile import BadZipFile
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.orm import Session

from ...core.config import get_professional_profile, get_spain_time
from ...db.database import get_db
from ...schemas.schemas import (
    BulkDeleteRequest, BulkDeleteResponse, ExportFormatEnum, FiscalRecordBase,
    FiscalRecordCreate, FiscalRecordResponse, FiscalRecordUpdate, GuardResultResponse,
    ImportResultResponse, ImportRowResult, ImportRowStatusEnum, IssueSchema,
    NextNumberResponse, SavedRecordResponse, TaxIdValidationResponse
)
from ...services import export_service, import_service, integrity_guard, numbering, tax_id_validator
from ...services.integrity_guard import GuardResult, Issue
from ...services.invoice_amounts import compute_amounts, income_base
from ...services.pdf_generator import TaxReportPDFGenerator
from ...services.record_store import RecordNotFoundError, SQLAlchemyRecordStore
from ...services.records import FiscalRecord, RecordKind, ZERO, new_record_id
from ...utils.validators import sanitize_filename, validate_tax_year

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["Registros Fiscales"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_store(db: Session = Depends(get_db)) -> SQLAlchemyRecordStore:
    """Dependency: almacén de registros sobre la sesión de la petición."""
    return SQLAlchemyRecordStore(db)


# ===================== AUXILIARES =====================

def build_draft(data: FiscalRecordBase, kind: RecordKind, record_id: str) -> FiscalRecord:
    """
    Convierte el formulario en un borrador de registro.
    Los importes que falten se calculan; los informados se respetan.
    """
    is_income = kind == RecordKind.INCOME

    tax_base = data.tax_base
    if tax_base is None:
        tax_base = income_base(data.fees, data.taxable_expenses) if is_income else ZERO

    supplies = data.supplies if is_income else ZERO
    amounts = compute_amounts(
        kind,
        tax_base=tax_base,
        vat_rate=data.vat_rate,
        withholding_rate=data.withholding_rate,
        vat_amount=data.vat_amount,
        withholding_amount=data.withholding_amount,
        total_amount=data.total_amount,
        supplies=supplies,
        retainer=data.retainer if is_income else ZERO
    )

    return FiscalRecord(
        id=record_id,
        kind=kind,
        document_number=data.document_number,
        issue_date=data.issue_date,
        counterparty_tax_id=data.counterparty_tax_id,
        counterparty_name=data.counterparty_name,
        counterparty_address=data.counterparty_address,
        concept=data.concept,
        category=data.category,
        tax_base=amounts.tax_base,
        vat_rate=data.vat_rate,
        vat_amount=amounts.vat_amount,
        withholding_rate=data.withholding_rate,
        withholding_amount=amounts.withholding_amount,
        total_amount=amounts.total_amount,
        deductible=False if is_income else data.deductible,
        registration_date=None if is_income else (data.registration_date or data.issue_date),
        supplier_number="" if is_income else data.supplier_number,
        expense_irpf_category="" if is_income else data.expense_irpf_category,
        expense_vat_category="" if is_income else data.expense_vat_category,
        income_tax_category=data.income_tax_category if is_income else "",
        fees=data.fees if is_income else ZERO,
        taxable_expenses=data.taxable_expenses if is_income else ZERO,
        supplies=supplies,
        retainer=data.retainer if is_income else ZERO
    )


def issue_to_schema(issue: Issue) -> IssueSchema:
    return IssueSchema(code=issue.code.value, field=issue.field, message=issue.message)


def to_response(record: FiscalRecord) -> FiscalRecordResponse:
    """Respuesta con el aviso de NIF recalculado en cada lectura."""
    warning = None
    if record.counterparty_tax_id:
        result = tax_id_validator.validate(record.counterparty_tax_id)
        if not result.is_valid:
            warning = result.message
    return FiscalRecordResponse(**asdict(record), tax_id_warning=warning)


def enforce_guard(result: GuardResult, confirm: bool, subject: str = "el registro"):
    """
    422 si hay incidencias bloqueantes.
    409 si solo hay advertencias y el usuario no ha confirmado.
    """
    if result.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=GuardResultResponse(
                message=f"No se puede guardar {subject}",
                blocking=[issue_to_schema(i) for i in result.blocking],
                advisory=[issue_to_schema(i) for i in result.advisory]
            ).model_dump(mode="json")
        )
    if result.advisory and not confirm:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=GuardResultResponse(
                message="Revise las advertencias y confirme para guardar",
                advisory=[issue_to_schema(i) for i in result.advisory]
            ).model_dump(mode="json")
        )


def sorted_records(records: List[FiscalRecord]) -> List[FiscalRecord]:
    """Por fecha de expedición y, dentro del día, por número natural."""
    return sorted(
        records,
        key=lambda r: (
            r.issue_date or date.min,
            numbering.document_sort_key(r.document_number)
        )
    )


def filter_records(
    records: List[FiscalRecord],
    year: Optional[int],
    kind: Optional[RecordKind]
) -> List[FiscalRecord]:
    if kind is not None:
        records = [r for r in records if r.kind == kind]
    if year is not None:
        records = [r for r in records if r.issue_date is not None and r.issue_date.year == year]
    return records


def check_year(year: int):
    if not validate_tax_year(year):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ejercicio fuera de rango: {year}"
        )


# ===================== CONSULTAS Y AUXILIARES DEL FORMULARIO =====================

@router.get("/", response_model=List[FiscalRecordResponse])
async def list_records(
    year: Optional[int] = Query(None),
    kind: Optional[RecordKind] = Query(None),
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """Lista los registros, opcionalmente filtrados por ejercicio y tipo."""
    records = filter_records(store.list_all(), year, kind)
    return [to_response(r) for r in sorted_records(records)]


@router.get("/next-number", response_model=NextNumberResponse)
async def get_next_number(
    kind: RecordKind,
    year: Optional[int] = Query(None),
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """
    Siguiente número correlativo para el tipo y ejercicio.
    No reserva el número: se vuelve a comprobar al guardar.
    """
    year = year or get_spain_time().year
    check_year(year)
    return NextNumberResponse(
        kind=kind,
        year=year,
        document_number=numbering.next_number(store.list_all(), kind, year)
    )


@router.get("/validate-tax-id", response_model=TaxIdValidationResponse)
async def validate_tax_id(value: str = Query(..., max_length=30)):
    """Valida un DNI, NIE o CIF mientras el usuario escribe."""
    result = tax_id_validator.validate(value)
    return TaxIdValidationResponse(
        value=value,
        normalized=result.normalized,
        is_valid=result.is_valid,
        status=result.status.value,
        id_type=result.id_type.value if result.id_type else None,
        expected_letter=result.expected_letter,
        message=result.message
    )


@router.get("/export")
async def export_records(
    export_format: ExportFormatEnum = Query(ExportFormatEnum.CSV, alias="format"),
    year: Optional[int] = Query(None),
    kind: Optional[RecordKind] = Query(None),
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """Descarga los registros en CSV (separado por ';') o Excel."""
    records = sorted_records(filter_records(store.list_all(), year, kind))

    suffix = f"_{year}" if year else ""
    if export_format == ExportFormatEnum.XLSX:
        content = export_service.records_to_xlsx(records)
        media_type = XLSX_MEDIA_TYPE
    else:
        content = export_service.records_to_csv(records)
        media_type = "text/csv; charset=utf-8"

    filename = sanitize_filename(f"registros{suffix}.{export_format.value}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/{record_id}", response_model=FiscalRecordResponse)
async def get_record(
    record_id: str,
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    try:
        return to_response(store.get(record_id))
    except RecordNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registro no encontrado"
        )


@router.get("/{record_id}/pdf")
async def download_invoice_pdf(
    record_id: str,
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """Factura en PDF de un ingreso, con los datos del profesional de la configuración."""
    try:
        record = store.get(record_id)
    except RecordNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registro no encontrado"
        )
    if record.kind != RecordKind.INCOME:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Solo las facturas emitidas se pueden descargar como factura"
        )

    generator = TaxReportPDFGenerator(profile=get_professional_profile())
    content = generator.generate_invoice_pdf(record)

    logger.info(f"Factura {record.document_number} generada en PDF")
    filename = sanitize_filename(f"Factura_{record.document_number}.pdf")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ===================== ESCRITURA =====================

@router.post("/", response_model=SavedRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    data: FiscalRecordCreate,
    confirm: bool = Query(False),
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """
    Crea un registro tras pasar las comprobaciones de integridad.
    Con confirm=true se aceptan las advertencias (p. ej. NIF extranjero en un gasto).
    """
    draft = build_draft(data, data.kind, new_record_id())
    result = integrity_guard.check_before_save(draft, store.list_all(), is_edit=False)
    enforce_guard(result, confirm)

    saved = store.insert(draft)
    return SavedRecordResponse(
        record=to_response(saved),
        advisory=[issue_to_schema(i) for i in result.advisory]
    )


@router.put("/{record_id}", response_model=SavedRecordResponse)
async def replace_record(
    record_id: str,
    data: FiscalRecordUpdate,
    confirm: bool = Query(False),
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """Sustituye un registro. El tipo del registro original se conserva."""
    try:
        current = store.get(record_id)
    except RecordNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registro no encontrado"
        )

    draft = build_draft(data, current.kind, record_id)
    result = integrity_guard.check_before_save(draft, store.list_all(), is_edit=True)
    enforce_guard(result, confirm)

    saved = store.replace(record_id, draft)
    return SavedRecordResponse(
        record=to_response(saved),
        advisory=[issue_to_schema(i) for i in result.advisory]
    )


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_records(
    data: BulkDeleteRequest,
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """Borrado masivo; los identificadores inexistentes se ignoran."""
    return BulkDeleteResponse(deleted=store.delete_many(data.ids))


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    record_id: str,
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    try:
        store.delete(record_id)
    except RecordNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registro no encontrado"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===================== IMPORTACIÓN =====================

@router.post("/import", response_model=ImportResultResponse)
async def import_records(
    kind: RecordKind = Query(...),
    confirm: bool = Query(False),
    file: UploadFile = File(...),
    store: SQLAlchemyRecordStore = Depends(get_store)
):
    """
    Importa facturas desde CSV o Excel.
    Cada fila pasa por las mismas comprobaciones que un alta manual; las
    filas rechazadas no impiden importar las demás.
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
    imported_rows = import_service.build_records(
        rows, kind, existing, today=get_spain_time().date()
    )
    # Las filas sin número se numeran de nuevo aquí: el número solo se gasta
    # si la fila llega a guardarse
    allocator = import_service.NumberAllocator(
        kind, existing, import_service.explicit_numbers(imported_rows)
    )

    unmapped = []
    results = []
    for row in imported_rows:
        for column in row.unmapped_columns:
            if column not in unmapped:
                unmapped.append(column)

        record = row.record
        if row.auto_numbered:
            record = replace(record, document_number=allocator.peek(record.issue_date.year))

        guard = integrity_guard.check_before_save(record, existing, is_edit=False)
        issues = [issue_to_schema(i) for i in guard.blocking + guard.advisory]

        if guard.is_blocked:
            row_status = ImportRowStatusEnum.REJECTED
            record_id = None
        elif guard.advisory and not confirm:
            row_status = ImportRowStatusEnum.NEEDS_CONFIRMATION
            record_id = None
        else:
            saved = store.insert(record)
            existing.append(saved)
            if row.auto_numbered:
                allocator.consume(record.issue_date.year)
            row_status = ImportRowStatusEnum.IMPORTED
            record_id = saved.id

        results.append(ImportRowResult(
            row_number=row.row_number,
            document_number=record.document_number,
            status=row_status,
            record_id=record_id,
            issues=issues
        ))

    summary = ImportResultResponse(
        total_rows=len(results),
        imported=sum(1 for r in results if r.status == ImportRowStatusEnum.IMPORTED),
        rejected=sum(1 for r in results if r.status == ImportRowStatusEnum.REJECTED),
        needs_confirmation=sum(1 for r in results if r.status == ImportRowStatusEnum.NEEDS_CONFIRMATION),
        unmapped_columns=unmapped,
        rows=results
    )
    logger.info(
        f"Importación de {file.filename}: {summary.imported} importadas, "
        f"{summary.rejected} rechazadas, {summary.needs_confirmation} pendientes"
    )
    return summary
