"""
Importación masiva de facturas y contactos desde CSV o Excel.

Las columnas se resuelven con una tabla explícita de alias (cabecera
normalizada -> campo). Cada campo tiene un valor por defecto documentado en
FIELD_DEFAULTS. El resultado son borradores de FiscalRecord que, como
cualquier otra entrada, deben pasar por IntegrityGuard antes de guardarse.
Los contactos usan su propia tabla de alias (CONTACT_COLUMN_ALIASES).
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from io import BytesIO, StringIO
from typing import Any, Dict, Iterable, List, Optional
import csv
import logging
import re
import unicodedata

from openpyxl import load_workbook

from .contacts import Contact, ContactType
from .invoice_amounts import compute_amounts
from .numbering import format_number, max_sequence, number_pattern
from .records import FiscalRecord, RecordKind, ZERO, new_record_id

logger = logging.getLogger(__name__)


class UnsupportedFileError(ValueError):
    """Formato de fichero no admitido."""


def normalize_header(header: Any) -> str:
    """'Nº Factura ' -> 'no factura'; sin tildes, minúsculas, espacios simples."""
    text = unicodedata.normalize('NFKD', str(header or ''))
    text = ''.join(c for c in text if not unicodedata.combining(c))
    text = text.lower().replace('º', 'o').replace('ª', 'a')
    text = re.sub(r'[^a-z0-9%]+', ' ', text)
    return text.strip()


# Campo -> alias admitidos (se comparan ya normalizados)
COLUMN_ALIASES: Dict[str, List[str]] = {
    'document_number': ['numero', 'numero factura', 'no factura', 'n factura', 'ref', 'numero interno'],
    'issue_date': ['fecha', 'date', 'emision', 'fecha factura', 'fecha emision'],
    'counterparty_tax_id': ['nif', 'cif', 'dni', 'nif cif', 'identificacion', 'tax id'],
    'counterparty_name': ['nombre', 'razon social', 'cliente', 'proveedor', 'entidad'],
    'counterparty_address': ['domicilio', 'direccion', 'domicilio fiscal'],
    'concept': ['concepto', 'descripcion'],
    'category': ['categoria'],
    'tax_base': ['base', 'base imponible', 'imponible', 'subtotal'],
    'vat_rate': ['iva %', '% iva', 'tipo iva'],
    'vat_amount': ['cuota iva', 'importe iva'],
    'withholding_rate': ['irpf %', '% irpf', 'tipo irpf', 'retencion %', '% retencion'],
    'withholding_amount': ['cuota irpf', 'importe irpf', 'retencion'],
    'total_amount': ['total', 'importe total', 'total factura'],
    'supplies': ['suplidos'],
    'income_tax_category': ['tipo de ingreso', 'tipo ingreso'],
    'supplier_number': ['no factura proveedor', 'ref proveedor', 'supplier num'],
    'registration_date': ['fecha registro', 'registro'],
    'expense_irpf_category': ['tipo gasto irpf', 'tipo irpf gasto'],
    'expense_vat_category': ['tipo gasto iva', 'tipo iva gasto'],
    'deductible': ['deducible', 'gasto deducible'],
}

CONTACT_COLUMN_ALIASES: Dict[str, List[str]] = {
    'contact_type': ['tipo', 'type', 'rol'],
    'name': ['nombre', 'razon social', 'name', 'empresa'],
    'tax_id': ['nif', 'cif', 'dni', 'nif cif', 'tax id'],
    'fiscal_address': ['domicilio', 'direccion', 'domicilio fiscal', 'address'],
    'email': ['email', 'correo', 'mail', 'e mail'],
    'phone': ['telefono', 'phone', 'movil'],
    'contact_person': ['contacto', 'persona de contacto'],
    'notes': ['notas', 'observaciones', 'notes', 'comentarios'],
}


def build_alias_lookup(aliases: Dict[str, List[str]]) -> Dict[str, str]:
    return {
        normalize_header(alias): field_name
        for field_name, names in aliases.items()
        for alias in names
    }


ALIAS_LOOKUP = build_alias_lookup(COLUMN_ALIASES)
CONTACT_ALIAS_LOOKUP = build_alias_lookup(CONTACT_COLUMN_ALIASES)

# Valores por defecto cuando la columna falta o está vacía.
# None en importes derivados = se calcula a partir de base y tipo.
FIELD_DEFAULTS: Dict[str, Any] = {
    'document_number': None,  # siguiente número correlativo del ejercicio
    'issue_date': None,  # fecha de hoy
    'counterparty_tax_id': '',
    'counterparty_name': 'Desconocido',
    'counterparty_address': '',
    'concept': 'Importado',
    'category': '',
    'tax_base': ZERO,
    'vat_rate': Decimal('21'),
    'vat_amount': None,
    'withholding_rate': ZERO,
    'withholding_amount': None,
    'total_amount': None,
    'supplies': ZERO,
    'income_tax_category': 'Prestación de servicios',
    'supplier_number': '',
    'registration_date': None,  # igual que la fecha de expedición
    'expense_irpf_category': 'Otros servicios exteriores',
    'expense_vat_category': 'Operaciones Interiores Corrientes',
    'deductible': False,
}

TRUE_VALUES = {'SI', 'SÍ', 'S', 'YES', 'Y', 'TRUE', 'VERDADERO', '1', 'X'}

# Día 0 del calendario de Excel (serie 25569 = 1970-01-01)
EXCEL_EPOCH = date(1899, 12, 30)


# ===================== NORMALIZACIÓN DE VALORES =====================

def parse_date(value: Any) -> Optional[date]:
    """
    Admite date/datetime, número de serie de Excel, DD/MM/YYYY y YYYY-MM-DD.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EXCEL_EPOCH + timedelta(days=int(value))

    text = str(value).strip()
    match = re.match(r'^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$', text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    match = re.match(r'^(\d{4})-(\d{1,2})-(\d{1,2})', text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    '1.234,56 €' -> Decimal('1234.56'); '1234.56' -> Decimal('1234.56').
    Devuelve None si la celda está vacía o no es un número.
    """
    if value is None or value == '' or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = re.sub(r'[^0-9,.\-]', '', str(value))
    if not text:
        return None
    if ',' in text:
        # Formato español: el punto es separador de miles
        text = text.replace('.', '').replace(',', '.')
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value or '').strip().upper() in TRUE_VALUES


# ===================== LECTURA DE FICHEROS =====================

def read_csv(content: bytes) -> List[Dict[str, Any]]:
    """Lee un CSV con cabecera; detecta ';' o ',' como separador."""
    text = content.decode('utf-8-sig', errors='replace')
    first_line = text.splitlines()[0] if text else ''
    delimiter = ';' if first_line.count(';') >= first_line.count(',') else ','
    reader = csv.DictReader(StringIO(text), delimiter=delimiter)
    return [
        row for row in reader
        if any((v or '').strip() for v in row.values() if isinstance(v, str))
    ]


def read_excel(content: bytes) -> List[Dict[str, Any]]:
    """Lee la primera hoja de un .xlsx; la primera fila es la cabecera."""
    workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    try:
        worksheet = workbook.worksheets[0]
        rows = worksheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        result = []
        for values in rows:
            if all(v is None or v == '' for v in values):
                continue
            result.append({
                str(h): v for h, v in zip(header, values) if h is not None
            })
        return result
    finally:
        workbook.close()


def read_rows(filename: str, content: bytes) -> List[Dict[str, Any]]:
    name = (filename or '').lower()
    if name.endswith('.csv'):
        return read_csv(content)
    if name.endswith('.xlsx') or name.endswith('.xlsm'):
        return read_excel(content)
    raise UnsupportedFileError("Formato no soportado. Use CSV o Excel (.xlsx).")


# ===================== MAPEO A REGISTROS =====================

def map_columns(row: Dict[str, Any], lookup: Dict[str, str] = ALIAS_LOOKUP) -> Dict[str, Any]:
    """Traduce las cabeceras de una fila a nombres de campo."""
    mapped = {}
    for header, value in row.items():
        field_name = lookup.get(normalize_header(header))
        if field_name is None or field_name in mapped:
            continue
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == '':
            continue
        mapped[field_name] = value
    return mapped


def unmapped_columns(row: Dict[str, Any], lookup: Dict[str, str] = ALIAS_LOOKUP) -> List[str]:
    return [
        str(h) for h in row
        if h is not None and lookup.get(normalize_header(h)) is None
    ]


@dataclass
class ImportedRow:
    row_number: int
    record: FiscalRecord
    unmapped_columns: List[str] = field(default_factory=list)
    auto_numbered: bool = False


class NumberAllocator:
    """
    Correlativos para las filas que llegan sin número.

    Parte del mayor número del ejercicio entre los registros existentes y los
    escritos expresamente en el fichero. peek() no gasta el número; solo
    consume() lo da por usado.
    """

    def __init__(self, kind: RecordKind, existing: Iterable[FiscalRecord], reserved: Iterable[str] = ()):
        self.kind = kind
        self.existing = list(existing)
        self.reserved = list(reserved)
        self._last: Dict[int, int] = {}

    def _highest(self, year: int) -> int:
        highest = max_sequence(self.existing, self.kind, year)
        pattern = number_pattern(self.kind, year)
        for number in self.reserved:
            match = pattern.match((number or '').strip())
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def peek(self, year: int) -> str:
        if year not in self._last:
            self._last[year] = self._highest(year)
        return format_number(self.kind, year, self._last[year] + 1)

    def consume(self, year: int) -> str:
        number = self.peek(year)
        self._last[year] += 1
        return number


def explicit_numbers(imported: Iterable[ImportedRow]) -> List[str]:
    """Números escritos en el propio fichero."""
    return [row.record.document_number for row in imported if not row.auto_numbered]


def _text(values: Dict[str, Any], name: str) -> str:
    value = values.get(name, FIELD_DEFAULTS[name])
    return str(value) if value is not None else ''


def _amount(values: Dict[str, Any], name: str) -> Optional[Decimal]:
    if name in values:
        parsed = parse_decimal(values[name])
        if parsed is not None:
            return parsed
    return FIELD_DEFAULTS[name]


def _build_record(values: Dict[str, Any], kind: RecordKind, number: str, issue_date: date) -> FiscalRecord:
    tax_base = _amount(values, 'tax_base')
    vat_rate = _amount(values, 'vat_rate')
    withholding_rate = _amount(values, 'withholding_rate')
    supplies = _amount(values, 'supplies') if kind == RecordKind.INCOME else ZERO
    amounts = compute_amounts(
        kind,
        tax_base=tax_base,
        vat_rate=vat_rate,
        withholding_rate=withholding_rate,
        vat_amount=_amount(values, 'vat_amount'),
        withholding_amount=_amount(values, 'withholding_amount'),
        total_amount=_amount(values, 'total_amount'),
        supplies=supplies
    )

    common = dict(
        id=new_record_id(),
        kind=kind,
        document_number=number,
        issue_date=issue_date,
        counterparty_tax_id=_text(values, 'counterparty_tax_id'),
        counterparty_name=_text(values, 'counterparty_name'),
        counterparty_address=_text(values, 'counterparty_address'),
        concept=_text(values, 'concept'),
        category=_text(values, 'category'),
        tax_base=amounts.tax_base,
        vat_rate=vat_rate,
        vat_amount=amounts.vat_amount,
        withholding_rate=withholding_rate,
        withholding_amount=amounts.withholding_amount,
        total_amount=amounts.total_amount,
    )

    if kind == RecordKind.INCOME:
        return FiscalRecord(
            income_tax_category=_text(values, 'income_tax_category'),
            supplies=supplies,
            **common
        )
    return FiscalRecord(
        registration_date=parse_date(values.get('registration_date')) or issue_date,
        supplier_number=_text(values, 'supplier_number'),
        expense_irpf_category=_text(values, 'expense_irpf_category'),
        expense_vat_category=_text(values, 'expense_vat_category'),
        deductible=parse_bool(values.get('deductible', FIELD_DEFAULTS['deductible'])),
        **common
    )


def build_records(
    rows: Iterable[Dict[str, Any]],
    kind: RecordKind,
    existing: Iterable[FiscalRecord] = (),
    today: Optional[date] = None
) -> List[ImportedRow]:
    """
    Convierte filas leídas en borradores de registros del tipo indicado.

    Las filas sin número reciben el siguiente correlativo de su ejercicio,
    por encima de los números existentes, de los escritos en el fichero y de
    los asignados en esta misma importación.
    """
    today = today or date.today()
    rows = list(rows)
    mapped = [map_columns(row) for row in rows]

    reserved = [_text(values, 'document_number') for values in mapped]
    allocator = NumberAllocator(kind, existing, reserved)

    imported = []
    for index, (row, values) in enumerate(zip(rows, mapped), start=2):  # fila 1 = cabecera
        issue_date = parse_date(values.get('issue_date')) or today

        number = _text(values, 'document_number')
        auto_numbered = not number
        if auto_numbered:
            number = allocator.consume(issue_date.year)

        imported.append(ImportedRow(
            row_number=index,
            record=_build_record(values, kind, number, issue_date),
            unmapped_columns=unmapped_columns(row),
            auto_numbered=auto_numbered
        ))

    logger.info(f"{len(imported)} filas leídas para importar como {kind.value}")
    return imported


# ===================== CONTACTOS =====================

@dataclass
class ImportedContact:
    row_number: int
    contact: Contact
    unmapped_columns: List[str] = field(default_factory=list)


def parse_contact_type(value: Any) -> ContactType:
    """'Proveedor', 'PROV', 'Supplier' -> PROVIDER; cualquier otro valor -> CLIENT."""
    text = str(value or '').upper()
    if 'PROV' in text or 'SUPPLIER' in text:
        return ContactType.PROVIDER
    return ContactType.CLIENT


def build_contacts(rows: Iterable[Dict[str, Any]]) -> List[ImportedContact]:
    """
    Convierte filas leídas en borradores de contactos.
    El identificador interno (C-n / P-n) se asigna al guardar, no aquí.
    """
    imported = []
    for index, row in enumerate(rows, start=2):
        values = map_columns(row, CONTACT_ALIAS_LOOKUP)
        contact = Contact(
            id=new_record_id(),
            contact_type=parse_contact_type(values.get('contact_type')),
            name=str(values.get('name', '')),
            tax_id=str(values.get('tax_id', '')).upper(),
            fiscal_address=str(values.get('fiscal_address', '')),
            email=str(values.get('email', '')),
            phone=str(values.get('phone', '')),
            contact_person=str(values.get('contact_person', '')),
            notes=str(values.get('notes', '')),
        )
        imported.append(ImportedContact(
            row_number=index,
            contact=contact,
            unmapped_columns=unmapped_columns(row, CONTACT_ALIAS_LOOKUP)
        ))

    logger.info(f"{len(imported)} contactos leídos para importar")
    return imported
