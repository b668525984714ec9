"""
Esquemas Pydantic para validación de datos.
Entradas del formulario de facturas y de la agenda, y respuestas de la API.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date
from decimal import Decimal
from enum import Enum

from ..services.contacts import ContactType
from ..services.records import RecordKind
from ..services.fiscal_aggregator import (
    Model190, Model347, Model390, PeriodSummary
)
from ..utils.validators import validate_vat_rate, validate_withholding_rate


# ===================== ENUMS =====================

class ImportRowStatusEnum(str, Enum):
    IMPORTED = "IMPORTED"
    REJECTED = "REJECTED"
    NEEDS_CONFIRMATION = "NEEDS_CONFIRMATION"


class ExportFormatEnum(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"


# ===================== REGISTROS FISCALES =====================

class FiscalRecordBase(BaseModel):
    """
    Campos comunes del formulario de factura.
    Los importes derivados (cuota IVA, retención, total) son opcionales:
    si no llegan se calculan a partir de la base y los tipos.
    """
    document_number: str = Field(default="", max_length=50)
    issue_date: Optional[date] = None
    counterparty_tax_id: str = Field(default="", max_length=20)
    counterparty_name: str = Field(default="", max_length=255)
    counterparty_address: str = Field(default="", max_length=500)
    concept: str = Field(default="", max_length=500)
    category: str = Field(default="", max_length=100)

    # Base imponible; en ingresos, si falta, honorarios + gastos con base
    tax_base: Optional[Decimal] = None
    vat_rate: Decimal = Decimal("21")
    vat_amount: Optional[Decimal] = None
    withholding_rate: Decimal = Decimal("0")
    withholding_amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None

    # Gastos
    deductible: bool = False
    registration_date: Optional[date] = None
    supplier_number: str = Field(default="", max_length=50)
    expense_irpf_category: str = Field(default="", max_length=100)
    expense_vat_category: str = Field(default="", max_length=100)

    # Ingresos
    income_tax_category: str = Field(default="", max_length=100)
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    taxable_expenses: Decimal = Field(default=Decimal("0"), ge=0)
    supplies: Decimal = Field(default=Decimal("0"), ge=0)
    retainer: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator('vat_rate')
    @classmethod
    def check_vat_rate(cls, v):
        if not validate_vat_rate(v):
            raise ValueError('El tipo de IVA debe estar entre 0 y 100')
        return v

    @field_validator('withholding_rate')
    @classmethod
    def check_withholding_rate(cls, v):
        if not validate_withholding_rate(v):
            raise ValueError('El tipo de retención debe estar entre 0 y 100')
        return v

    @field_validator('document_number', 'counterparty_tax_id', 'counterparty_name')
    @classmethod
    def strip_text(cls, v):
        return v.strip()


class FiscalRecordCreate(FiscalRecordBase):
    """Alta de factura. El tipo no podrá cambiarse después."""
    kind: RecordKind


class FiscalRecordUpdate(FiscalRecordBase):
    """Sustitución completa de un registro existente (el tipo se conserva)."""
    pass


class FiscalRecordResponse(BaseModel):
    id: str
    kind: RecordKind
    document_number: str
    issue_date: Optional[date] = None
    counterparty_tax_id: str = ""
    counterparty_name: str = ""
    counterparty_address: str = ""
    concept: str = ""
    category: str = ""

    tax_base: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    withholding_rate: Decimal
    withholding_amount: Decimal
    total_amount: Decimal

    deductible: bool = False
    registration_date: Optional[date] = None
    supplier_number: str = ""
    expense_irpf_category: str = ""
    expense_vat_category: str = ""

    income_tax_category: str = ""
    fees: Decimal = Decimal("0")
    taxable_expenses: Decimal = Decimal("0")
    supplies: Decimal = Decimal("0")
    retainer: Decimal = Decimal("0")

    # Aviso vivo mientras el NIF guardado no sea válido
    tax_id_warning: Optional[str] = None

    class Config:
        from_attributes = True


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: int


# ===================== VALIDACIONES =====================

class IssueSchema(BaseModel):
    code: str
    field: str
    message: str

    class Config:
        from_attributes = True


class GuardResultResponse(BaseModel):
    """Detalle de error 409/422 al guardar."""
    message: str
    blocking: List[IssueSchema] = []
    advisory: List[IssueSchema] = []


class SavedRecordResponse(BaseModel):
    """Registro guardado y advertencias aceptadas por el usuario."""
    record: FiscalRecordResponse
    advisory: List[IssueSchema] = []


class TaxIdValidationResponse(BaseModel):
    value: str
    normalized: str
    is_valid: bool
    status: str
    id_type: Optional[str] = None
    expected_letter: Optional[str] = None
    message: Optional[str] = None


class NextNumberResponse(BaseModel):
    kind: RecordKind
    year: int
    document_number: str


# ===================== IMPORTACIÓN =====================

class ImportRowResult(BaseModel):
    row_number: int
    document_number: str
    status: ImportRowStatusEnum
    record_id: Optional[str] = None
    issues: List[IssueSchema] = []


class ImportResultResponse(BaseModel):
    total_rows: int
    imported: int
    rejected: int
    needs_confirmation: int
    unmapped_columns: List[str] = []
    rows: List[ImportRowResult] = []


# ===================== MODELOS TRIBUTARIOS =====================

class FiscalSummaryResponse(BaseModel):
    """
    Resumen fiscal del ejercicio o trimestre.
    Importes sin redondear; la presentación decide los decimales.
    """
    year: int
    quarter: Optional[int] = None
    period: PeriodSummary
    quarters: List[PeriodSummary] = []
    model_390: Optional[Model390] = None
    model_347: Optional[Model347] = None
    model_190: Optional[Model190] = None

    class Config:
        from_attributes = True
        protected_namespaces = ()


class YearCloseResponse(BaseModel):
    year: int
    record_count: int
    income_total: Decimal
    expense_total: Decimal
    net_yield: Decimal
    vat_result: Decimal
    withholding_suffered: Decimal
    next_income_number: str
    next_expense_number: str

    class Config:
        from_attributes = True


class AvailableYearsResponse(BaseModel):
    years: List[int]


# ===================== AGENDA DE CONTACTOS =====================

class ContactBase(BaseModel):
    contact_type: ContactType = ContactType.CLIENT
    name: str = Field(default="", max_length=255)
    tax_id: str = Field(default="", max_length=20)
    fiscal_address: str = Field(default="", max_length=500)
    email: str = Field(default="", max_length=255)
    phone: str = Field(default="", max_length=50)
    contact_person: str = Field(default="", max_length=255)
    notes: str = Field(default="", max_length=2000)

    @field_validator('name', 'email', 'phone')
    @classmethod
    def strip_text(cls, v):
        return v.strip()

    @field_validator('tax_id')
    @classmethod
    def normalize_tax_id(cls, v):
        return v.strip().upper()


class ContactCreate(ContactBase):
    pass


class ContactUpdate(ContactBase):
    """Sustitución completa. Si cambia el tipo se asigna un identificador nuevo (C-n / P-n)."""
    pass


class ContactResponse(ContactBase):
    id: str
    internal_id: str
    tax_id_warning: Optional[str] = None

    class Config:
        from_attributes = True


class SavedContactResponse(BaseModel):
    contact: ContactResponse
    advisory: List[IssueSchema] = []


class NextContactIdResponse(BaseModel):
    contact_type: ContactType
    internal_id: str


class ContactImportRowResult(BaseModel):
    row_number: int
    name: str
    tax_id: str
    status: ImportRowStatusEnum
    internal_id: Optional[str] = None
    contact_id: Optional[str] = None
    issues: List[IssueSchema] = []


class ContactImportResultResponse(BaseModel):
    total_rows: int
    imported: int
    rejected: int
    needs_confirmation: int
    unmapped_columns: List[str] = []
    rows: List[ContactImportRowResult] = []
