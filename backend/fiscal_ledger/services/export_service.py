"""
Exportación de libros registro y resúmenes fiscales a CSV y Excel.
"""
from io import BytesIO, StringIO
from typing import Iterable, List
import csv

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from ..utils.formatting import format_amount, format_date, format_rate, quarter_label, round_currency
from .fiscal_aggregator import FiscalSummary
from .records import FiscalRecord, RecordKind

KIND_NAMES = {
    RecordKind.INCOME: 'Ingreso',
    RecordKind.EXPENSE: 'Gasto',
}

# (cabecera, atributo) en el orden de los libros registro
RECORD_COLUMNS = [
    ('Tipo', 'kind'),
    ('Número', 'document_number'),
    ('Fecha', 'issue_date'),
    ('NIF', 'counterparty_tax_id'),
    ('Nombre', 'counterparty_name'),
    ('Concepto', 'concept'),
    ('Base Imponible', 'tax_base'),
    ('IVA %', 'vat_rate'),
    ('Cuota IVA', 'vat_amount'),
    ('IRPF %', 'withholding_rate'),
    ('Cuota IRPF', 'withholding_amount'),
    ('Total', 'total_amount'),
    ('Deducible', 'deductible'),
]

HEADER_FONT = Font(bold=True, color='FFFFFF')
HEADER_FILL = PatternFill('solid', fgColor='333366')


def _csv_value(record: FiscalRecord, attr: str) -> str:
    value = getattr(record, attr)
    if attr == 'kind':
        return KIND_NAMES.get(value, str(value))
    if attr == 'issue_date':
        return format_date(value)
    if attr in ('vat_rate', 'withholding_rate'):
        return format_rate(value)
    if attr == 'deductible':
        if record.kind != RecordKind.EXPENSE:
            return ''
        return 'Sí' if value else 'No'
    if attr in ('tax_base', 'vat_amount', 'withholding_amount', 'total_amount'):
        return format_amount(value)
    return value or ''


def records_to_csv(records: Iterable[FiscalRecord]) -> bytes:
    """
    CSV separado por ';' con números y fechas en formato español.
    Lleva BOM para que Excel lo abra con la codificación correcta.
    """
    buffer = StringIO()
    writer = csv.writer(buffer, delimiter=';')
    writer.writerow([header for header, _ in RECORD_COLUMNS])
    for record in records:
        writer.writerow([_csv_value(record, attr) for _, attr in RECORD_COLUMNS])
    return buffer.getvalue().encode('utf-8-sig')


def _write_header(worksheet, headers: List[str]):
    worksheet.append(headers)
    for cell in worksheet[worksheet.max_row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL


def _xlsx_value(record: FiscalRecord, attr: str):
    value = getattr(record, attr)
    if attr == 'kind':
        return KIND_NAMES.get(value, str(value))
    if attr == 'deductible':
        return ('Sí' if value else 'No') if record.kind == RecordKind.EXPENSE else ''
    if attr in ('tax_base', 'vat_amount', 'withholding_amount', 'total_amount'):
        return float(round_currency(value))
    if attr in ('vat_rate', 'withholding_rate'):
        return float(value)
    return value


def _save(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def records_to_xlsx(records: Iterable[FiscalRecord]) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = 'Registros'
    _write_header(worksheet, [header for header, _ in RECORD_COLUMNS])

    for record in records:
        worksheet.append([_xlsx_value(record, attr) for _, attr in RECORD_COLUMNS])
        worksheet.cell(row=worksheet.max_row, column=3).number_format = 'DD/MM/YYYY'

    return _save(workbook)


def summary_to_xlsx(summary: FiscalSummary) -> bytes:
    """
    Libro con una hoja por modelo del resumen anual.
    Los importes se redondean a céntimos solo al escribirlos.
    """
    def money(value):
        return float(round_currency(value))

    workbook = Workbook()

    ws = workbook.active
    ws.title = 'Modelo 303'
    _write_header(ws, ['Periodo', 'Base Devengado', 'IVA Devengado', 'Base Soportado', 'IVA Soportado', 'Resultado'])
    for period in list(summary.quarters) + [summary.period]:
        m = period.model_303
        ws.append([quarter_label(period.quarter), money(m.output_base), money(m.output_vat),
                   money(m.input_base), money(m.input_vat), money(m.result)])

    ws = workbook.create_sheet('Modelo 130')
    _write_header(ws, ['Periodo', 'Ingresos', 'Gastos', 'Rendimiento', 'Cuota', 'Retenciones', 'Resultado'])
    for period in list(summary.quarters) + [summary.period]:
        m = period.model_130
        ws.append([quarter_label(period.quarter), money(m.income), money(m.expenses), money(m.net_yield),
                   money(m.theoretical_quota), money(m.withholding_suffered), money(m.result)])

    ws = workbook.create_sheet('Modelo 111')
    _write_header(ws, ['Periodo', 'Retenciones Practicadas'])
    for period in list(summary.quarters) + [summary.period]:
        ws.append([quarter_label(period.quarter), money(period.model_111.withheld_amount)])

    if summary.model_390 is not None:
        ws = workbook.create_sheet('Modelo 390')
        _write_header(ws, ['Tipo IVA', 'Base Imponible', 'Cuota IVA'])
        for item in summary.model_390.input_breakdown:
            ws.append([format_rate(item.rate), money(item.tax_base), money(item.vat_amount)])
        ws.append(['Resultado anual', None, money(summary.model_390.result)])

    if summary.model_347 is not None:
        ws = workbook.create_sheet('Modelo 347')
        _write_header(ws, ['NIF', 'Nombre', 'Tipo', 'Total Anual'])
        for op in summary.model_347.operations:
            ws.append([op.tax_id, op.name, KIND_NAMES.get(op.kind, str(op.kind)), money(op.total)])

    if summary.model_190 is not None:
        ws = workbook.create_sheet('Modelo 190')
        _write_header(ws, ['NIF', 'Nombre', 'Base Imponible', 'Retención'])
        for entry in summary.model_190.entries:
            ws.append([entry.tax_id, entry.name, money(entry.tax_base), money(entry.withholding_amount)])

    return _save(workbook)
