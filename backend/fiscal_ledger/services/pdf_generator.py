"""
Servicio de generación de PDF.
Factura emitida, informe de modelos tributarios e informe de cierre de ejercicio.
Los PDF se devuelven como bytes; no se guardan en disco.
"""
from io import BytesIO
from xml.sax.saxutils import escape
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch, cm
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
)
from reportlab.lib.enums import TA_CENTER, TA_RIGHT

from ..core.config import get_spain_time
from ..utils.formatting import format_currency, format_date, format_rate, quarter_label
from .fiscal_aggregator import FiscalSummary, YearCloseStats
from .numbering import format_number
from .records import FiscalRecord, RecordKind


REPORT_MODELS = ('ALL', '303', '390', '130', '111', '347', '190')

MODEL_TITLES = {
    'ALL': 'Informe Fiscal',
    '303': 'Modelo 303 (IVA)',
    '390': 'Modelo 390 (Resumen Anual IVA)',
    '130': 'Modelo 130 (IRPF)',
    '111': 'Modelo 111 (Retenciones Practicadas)',
    '347': 'Modelo 347 (Operaciones con Terceros)',
    '190': 'Modelo 190 (Retenciones Soportadas)',
}

KIND_LABELS = {
    RecordKind.INCOME: 'Ventas (Cliente)',
    RecordKind.EXPENSE: 'Compras (Proveedor)',
}

HEADER_BG = colors.Color(0.2, 0.2, 0.4)
TOTAL_BG = colors.Color(0.9, 0.95, 0.9)

# Factura en escala de grises
INVOICE_DARK_GRAY = colors.HexColor('#404040')
INVOICE_LIGHT_GRAY = colors.HexColor('#9ca3af')
INVOICE_TABLE_HEAD = colors.HexColor('#262626')

DEFAULT_CONCEPT = 'Servicios Profesionales'

GDPR_TEXT = (
    'Tratamiento de Datos: Sus datos personales serán tratados para la gestión '
    'administrativa y contable conforme al RGPD. Puede ejercer sus derechos '
    'contactando con el emisor de esta factura.'
)


def invoice_lines(record: FiscalRecord) -> list:
    """
    Líneas de concepto de una factura emitida: (descripción, importe).
    Sin desglose de honorarios, la base menos los gastos con base hace de honorario.
    """
    fees = record.fees if record.fees else record.tax_base - record.taxable_expenses
    lines = [(record.concept or DEFAULT_CONCEPT, format_currency(fees))]
    if record.taxable_expenses > 0:
        lines.append(('Gastos / Suplidos incluidos en base', format_currency(record.taxable_expenses)))
    return lines


def invoice_totals(record: FiscalRecord) -> list:
    """
    Bloque de totales: (etiqueta, importe).

    TOTAL FACTURA = base + IVA - IRPF + suplidos
    TOTAL A PAGAR = TOTAL FACTURA - provisión de fondos (solo si hay provisión)
    """
    rows = [
        ('Base Imponible', format_currency(record.tax_base)),
        (f'IVA {format_rate(record.vat_rate)}', format_currency(record.vat_amount)),
    ]
    if record.withholding_rate > 0:
        rows.append((
            f'Retención IRPF {format_rate(record.withholding_rate)}',
            f'- {format_currency(record.withholding_amount)}'
        ))
    if record.supplies > 0:
        rows.append(('Suplidos (Exento)', f'+ {format_currency(record.supplies)}'))

    rows.append(('TOTAL FACTURA', format_currency(record.total_amount)))

    if record.retainer > 0:
        rows.append(('Menos Provisión de Fondos', f'- {format_currency(record.retainer)}'))
        rows.append(('TOTAL A PAGAR', format_currency(record.total_amount - record.retainer)))
    return rows


class TaxReportPDFGenerator:
    """
    Generador de PDF para facturas emitidas y modelos tributarios.
    """

    def __init__(self, profile: Optional[dict] = None, config: Optional[dict] = None):
        """
        Inicializa el generador con los datos del profesional y estilo.
        """
        self.profile = profile or {}
        self.config = config or {}
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Configura estilos personalizados."""
        primary_color = self.config.get('primary_color', '#4F46E5')
        r, g, b = self._hex_to_rgb(primary_color)

        self.styles.add(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontSize=16,
            textColor=colors.Color(r/255, g/255, b/255),
            alignment=TA_CENTER,
            spaceAfter=12
        ))

        self.styles.add(ParagraphStyle(
            name='SectionTitle',
            parent=self.styles['Heading2'],
            fontSize=12,
            textColor=colors.Color(r/255, g/255, b/255),
            spaceBefore=12,
            spaceAfter=8
        ))

        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.grey,
            alignment=TA_CENTER
        ))

        # Factura
        self.styles.add(ParagraphStyle(
            name='InvoiceTitle',
            parent=self.styles['Heading1'],
            fontSize=22,
            textColor=colors.black,
            alignment=TA_RIGHT,
            spaceAfter=6
        ))

        self.styles.add(ParagraphStyle(
            name='ProfessionalName',
            parent=self.styles['Normal'],
            fontName='Helvetica-Bold',
            fontSize=16,
            leading=20
        ))

        self.styles.add(ParagraphStyle(
            name='Detail',
            parent=self.styles['Normal'],
            fontSize=10,
            textColor=INVOICE_DARK_GRAY
        ))

        self.styles.add(ParagraphStyle(
            name='Label',
            parent=self.styles['Normal'],
            fontName='Helvetica-Bold',
            fontSize=9,
            textColor=INVOICE_LIGHT_GRAY
        ))

        self.styles.add(ParagraphStyle(
            name='Legal',
            parent=self.styles['Normal'],
            fontSize=7,
            textColor=INVOICE_LIGHT_GRAY,
            alignment=TA_CENTER
        ))

    def _hex_to_rgb(self, hex_color: str) -> tuple:
        """Convierte color hexadecimal a RGB."""
        hex_color = hex_color.lstrip('#')
        return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))

    def _build_document(self, elements: list) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=1.5*cm,
            leftMargin=1.5*cm,
            topMargin=1.5*cm,
            bottomMargin=1.5*cm
        )
        doc.build(elements)
        return buffer.getvalue()

    def _table(self, data: list, col_widths: list, total_row: bool = False) -> Table:
        """Tabla con cabecera oscura e importes alineados a la derecha."""
        table = Table(data, colWidths=col_widths)
        style = [
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_BG),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('ALIGN', (1, 1), (-1, -1), 'RIGHT'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
        ]
        if total_row:
            style.extend([
                ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
                ('BACKGROUND', (0, -1), (-1, -1), TOTAL_BG),
            ])
        table.setStyle(TableStyle(style))
        return table

    # ===================== FACTURA EMITIDA =====================

    def generate_invoice_pdf(self, record: FiscalRecord) -> bytes:
        """
        Genera la factura de un ingreso.

        Estructura:
        - Profesional a la izquierda; FACTURA, número y fecha a la derecha
        - Bloque FACTURAR A con los datos del cliente
        - Tabla de conceptos y bloque de totales
        - Forma de pago (IBAN) y texto legal
        """
        if record.kind != RecordKind.INCOME:
            raise ValueError("Solo las facturas emitidas se imprimen como factura")

        elements = []

        header = Table(
            [[self._build_professional_block(), self._build_invoice_meta(record)]],
            colWidths=[10*cm, 8*cm]
        )
        header.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LEFTPADDING', (0, 0), (0, 0), 0),
            ('RIGHTPADDING', (-1, 0), (-1, 0), 0),
        ]))
        elements.append(header)
        elements.append(Spacer(1, 0.4*cm))
        elements.append(HRFlowable(width="100%", thickness=2, color=colors.black))
        elements.append(Spacer(1, 0.4*cm))

        elements.extend(self._build_client_block(record))
        elements.append(Spacer(1, 0.6*cm))
        elements.append(self._build_invoice_lines_table(record))
        elements.append(Spacer(1, 0.4*cm))
        elements.append(self._build_invoice_totals_table(record))
        elements.append(Spacer(1, 1.5*cm))
        elements.extend(self._build_payment_footer())

        return self._build_document(elements)

    def _build_professional_block(self) -> list:
        """Nombre, colegio y número de colegiado, domicilio, NIF y contacto."""
        profile = self.profile
        name = profile.get('name') or 'NOMBRE DEL PROFESIONAL'
        elements = [Paragraph(escape(name.upper()), self.styles['ProfessionalName'])]

        if profile.get('title'):
            elements.append(Paragraph(f"<b>{escape(profile['title'])}</b>", self.styles['Detail']))

        collegiate = '  |  '.join(filter(None, [
            profile.get('bar_association'),
            f"Col. Nº {profile['collegiate_number']}" if profile.get('collegiate_number') else None
        ]))
        lines = [
            collegiate,
            profile.get('address', ''),
            f"{profile.get('zip_code', '')} {profile.get('city', '')}".strip(),
            f"NIF: {profile['nif']}" if profile.get('nif') else '',
            '  |  '.join(filter(None, [profile.get('phone'), profile.get('email')])),
        ]
        for line in lines:
            if line:
                elements.append(Paragraph(escape(line), self.styles['Detail']))

        if profile.get('website'):
            elements.append(Paragraph(f"<b>{escape(profile['website'])}</b>", self.styles['Detail']))
        return elements

    def _build_invoice_meta(self, record: FiscalRecord) -> list:
        issue_date = record.issue_date or get_spain_time().date()
        meta = Table(
            [
                ['NÚMERO:', record.document_number or '---'],
                ['FECHA:', format_date(issue_date)],
            ],
            colWidths=[3*cm, 4.5*cm]
        )
        meta.setStyle(TableStyle([
            ('FONTNAME', (1, 0), (1, -1), 'Helvetica-Bold'),
            ('TEXTCOLOR', (0, 0), (0, -1), INVOICE_DARK_GRAY),
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('LINEABOVE', (0, 0), (-1, 0), 0.5, colors.black),
        ]))
        return [Paragraph('FACTURA', self.styles['InvoiceTitle']), meta]

    def _build_client_block(self, record: FiscalRecord) -> list:
        elements = [
            Paragraph('FACTURAR A:', self.styles['Label']),
            Paragraph(
                f"<b>{escape(record.counterparty_name or 'CLIENTE GENERAL')}</b>",
                self.styles['Heading3']
            ),
        ]
        if record.counterparty_tax_id:
            elements.append(Paragraph(f"NIF/CIF: {escape(record.counterparty_tax_id)}", self.styles['Detail']))
        if record.counterparty_address:
            elements.append(Paragraph(escape(record.counterparty_address), self.styles['Detail']))
        return elements

    def _build_invoice_lines_table(self, record: FiscalRecord) -> Table:
        data = [['CONCEPTO / DESCRIPCIÓN', 'IMPORTE']]
        for concept, amount in invoice_lines(record):
            data.append([Paragraph(escape(concept), self.styles['Normal']), amount])

        table = Table(data, colWidths=[14*cm, 4*cm])
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), INVOICE_TABLE_HEAD),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTNAME', (1, 1), (1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LINEBELOW', (0, 1), (-1, -1), 0.1, INVOICE_LIGHT_GRAY),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def _build_invoice_totals_table(self, record: FiscalRecord) -> Table:
        rows = invoice_totals(record)
        table = Table([list(row) for row in rows], colWidths=[5*cm, 4*cm], hAlign='RIGHT')

        style = [
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('TEXTCOLOR', (0, 0), (0, -1), INVOICE_DARK_GRAY),
        ]
        for index, (label, _) in enumerate(rows):
            if label in ('TOTAL FACTURA', 'TOTAL A PAGAR'):
                style.extend([
                    ('FONTNAME', (0, index), (-1, index), 'Helvetica-Bold'),
                    ('FONTSIZE', (0, index), (-1, index), 12 if label == 'TOTAL FACTURA' else 14),
                    ('LEADING', (0, index), (-1, index), 17),
                    ('TEXTCOLOR', (0, index), (-1, index), colors.black),
                    ('LINEABOVE', (0, index), (-1, index), 0.5, colors.black),
                    ('TOPPADDING', (0, index), (-1, index), 8),
                ])
        table.setStyle(TableStyle(style))
        return table

    def _build_payment_footer(self) -> list:
        elements = [HRFlowable(width="100%", thickness=0.1, color=INVOICE_LIGHT_GRAY)]

        data = [['FORMA DE PAGO:', 'Transferencia Bancaria']]
        if self.profile.get('iban'):
            data.append(['IBAN:', self.profile['iban']])
        payment = Table(data, colWidths=[3.5*cm, 14.5*cm], hAlign='LEFT')
        payment.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (1, 1), (1, 1), 'Courier'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
        ]))
        elements.append(payment)
        elements.append(Spacer(1, 0.8*cm))
        elements.append(Paragraph(GDPR_TEXT, self.styles['Legal']))
        return elements

    # ===================== INFORME DE MODELOS =====================

    def generate_tax_models_report(self, summary: FiscalSummary, model: str = 'ALL') -> bytes:
        """
        Genera el informe de uno o de todos los modelos.

        Args:
            summary: Resumen anual (sin trimestre) del agregador
            model: 'ALL' o el número de modelo

        Returns:
            Contenido del PDF
        """
        if model not in REPORT_MODELS:
            raise ValueError(f"Modelo desconocido: {model}")

        elements = []
        elements.extend(self._build_header())

        title = f"{MODEL_TITLES[model]} - {summary.year}"
        elements.append(Paragraph(title, self.styles['ReportTitle']))
        periodic = model in ('303', '130', '111')
        period_text = 'Periodo: 1T - 4T' if periodic else 'Periodo: Anual'
        elements.append(Paragraph(period_text, self.styles['Normal']))
        elements.append(Spacer(1, 0.2*inch))

        builders = {
            '303': self._build_303_section,
            '390': self._build_390_section,
            '130': self._build_130_section,
            '111': self._build_111_section,
            '347': self._build_347_section,
            '190': self._build_190_section,
        }
        for key, builder in builders.items():
            if model in ('ALL', key):
                elements.extend(builder(summary))

        elements.extend(self._build_footer())
        return self._build_document(elements)

    def _build_header(self) -> list:
        """Encabezado con los datos del profesional."""
        elements = []

        name = self.profile.get('name') or 'NOMBRE DEL PROFESIONAL'
        elements.append(Paragraph(f"<b>{escape(name.upper())}</b>", self.styles['Normal']))

        lines = [
            self.profile.get('address', ''),
            f"{self.profile.get('zip_code', '')} {self.profile.get('city', '')}".strip(),
            f"NIF: {self.profile['nif']}" if self.profile.get('nif') else '',
            '  |  '.join(filter(None, [self.profile.get('phone'), self.profile.get('email')])),
        ]
        for line in lines:
            if line:
                elements.append(Paragraph(escape(line), self.styles['Normal']))

        elements.append(Spacer(1, 0.1*inch))
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.grey))
        elements.append(Spacer(1, 0.1*inch))
        return elements

    def _build_303_section(self, summary: FiscalSummary) -> list:
        elements = [Paragraph('Modelo 303 (IVA)', self.styles['SectionTitle'])]

        data = [['Trimestre', 'IVA Devengado', 'IVA Soportado', 'Resultado']]
        for q in summary.quarters:
            m = q.model_303
            data.append([
                quarter_label(q.quarter),
                format_currency(m.output_vat),
                format_currency(m.input_vat),
                format_currency(m.result)
            ])
        annual = summary.period.model_303
        data.append([
            'TOTAL',
            format_currency(annual.output_vat),
            format_currency(annual.input_vat),
            format_currency(annual.result)
        ])

        elements.append(self._table(data, [1.2*inch, 1.8*inch, 1.8*inch, 1.8*inch], total_row=True))
        elements.append(Spacer(1, 0.2*inch))
        return elements

    def _build_390_section(self, summary: FiscalSummary) -> list:
        elements = [Paragraph('Modelo 390 (Resumen Anual IVA)', self.styles['SectionTitle'])]
        m = summary.model_390
        if m is None:
            return elements

        data = [
            ['Concepto', 'Base Imponible Total', 'Cuota IVA Total'],
            ['IVA Devengado (Facturas Emitidas)', format_currency(m.output_base), format_currency(m.output_vat)],
            ['IVA Soportado (Facturas Recibidas)', format_currency(m.input_base), format_currency(m.input_vat)],
            ['RESULTADO ANUAL', '-', format_currency(m.result)],
        ]
        elements.append(self._table(data, [3*inch, 1.8*inch, 1.8*inch], total_row=True))
        elements.append(Spacer(1, 0.15*inch))

        elements.append(Paragraph('Desglose IVA Soportado por Tipos', self.styles['Normal']))
        breakdown = [['Tipo Impositivo', 'Base Imponible', 'Cuota IVA']]
        for item in m.input_breakdown:
            breakdown.append([
                format_rate(item.rate),
                format_currency(item.tax_base),
                format_currency(item.vat_amount)
            ])
        if len(breakdown) == 1:
            breakdown.append(['Sin gastos deducibles', '-', '-'])
        elements.append(self._table(breakdown, [2*inch, 2*inch, 2*inch]))
        elements.append(Spacer(1, 0.2*inch))
        return elements

    def _build_130_section(self, summary: FiscalSummary) -> list:
        elements = [Paragraph('Modelo 130 (IRPF)', self.styles['SectionTitle'])]

        data = [['Trimestre', 'Ingresos', 'Gastos', 'Rendimiento', '20% Cuota', 'Retenciones', 'Resultado']]
        rows = list(summary.quarters) + [summary.period]
        for q in rows:
            m = q.model_130
            data.append([
                quarter_label(q.quarter) if q.quarter else 'TOTAL',
                format_currency(m.income),
                format_currency(m.expenses),
                format_currency(m.net_yield),
                format_currency(m.theoretical_quota),
                format_currency(m.withholding_suffered),
                format_currency(m.result)
            ])

        widths = [0.8*inch] + [1.0*inch] * 6
        table = self._table(data, widths, total_row=True)
        table.setStyle(TableStyle([('FONTSIZE', (0, 0), (-1, -1), 7)]))
        elements.append(table)
        elements.append(Spacer(1, 0.2*inch))
        return elements

    def _build_111_section(self, summary: FiscalSummary) -> list:
        elements = [Paragraph('Modelo 111 (Retenciones Practicadas)', self.styles['SectionTitle'])]

        data = [['Trimestre', 'Retenciones Practicadas']]
        for q in summary.quarters:
            data.append([quarter_label(q.quarter), format_currency(q.model_111.withheld_amount)])
        data.append(['TOTAL', format_currency(summary.period.model_111.withheld_amount)])

        elements.append(self._table(data, [2*inch, 3*inch], total_row=True))
        elements.append(Spacer(1, 0.2*inch))
        return elements

    def _build_347_section(self, summary: FiscalSummary) -> list:
        elements = [Paragraph('Modelo 347 (Operaciones con Terceros)', self.styles['SectionTitle'])]
        m = summary.model_347
        if m is None:
            return elements

        elements.append(Paragraph(
            f"Operaciones anuales superiores a {format_currency(m.threshold)}",
            self.styles['Normal']
        ))
        data = [['NIF', 'Nombre', 'Tipo', 'Total Anual']]
        for op in m.operations:
            data.append([op.tax_id, op.name[:40], KIND_LABELS.get(op.kind, op.kind), format_currency(op.total)])
        if len(data) == 1:
            data.append(['-', 'Sin operaciones que superen el umbral', '-', '-'])

        elements.append(self._table(data, [1.2*inch, 2.6*inch, 1.5*inch, 1.4*inch]))
        elements.append(Spacer(1, 0.2*inch))
        return elements

    def _build_190_section(self, summary: FiscalSummary) -> list:
        elements = [Paragraph('Modelo 190 (Retenciones Soportadas)', self.styles['SectionTitle'])]
        m = summary.model_190
        if m is None:
            return elements

        data = [['NIF', 'Cliente (Retenedor)', 'Base Imponible', 'Retención']]
        for entry in m.entries:
            data.append([
                entry.tax_id,
                entry.name[:40],
                format_currency(entry.tax_base),
                format_currency(entry.withholding_amount)
            ])
        data.append(['', 'TOTAL', format_currency(m.total_tax_base), format_currency(m.total_withholding)])

        elements.append(self._table(data, [1.2*inch, 2.8*inch, 1.4*inch, 1.3*inch], total_row=True))
        elements.append(Spacer(1, 0.2*inch))
        return elements

    # ===================== CIERRE DE EJERCICIO =====================

    def generate_year_close_report(self, stats: YearCloseStats, summary: FiscalSummary) -> bytes:
        """
        Informe de cierre: cifras del ejercicio y resumen anual de 303 y 130.
        """
        elements = []
        elements.extend(self._build_header())
        elements.append(Paragraph(
            f"Informe de Cierre del Ejercicio {stats.year}",
            self.styles['ReportTitle']
        ))

        data = [
            ['Concepto', 'Importe'],
            ['Registros totales', str(stats.record_count)],
            ['Ingresos computables', format_currency(stats.income_total)],
            ['Gastos deducibles', format_currency(stats.expense_total)],
            ['Rendimiento neto', format_currency(stats.net_yield)],
            ['Resultado IVA (devengado - soportado)', format_currency(stats.vat_result)],
            ['Retenciones IRPF soportadas', format_currency(stats.withholding_suffered)],
        ]
        elements.append(self._table(data, [4*inch, 2.5*inch]))
        elements.append(Spacer(1, 0.2*inch))

        elements.extend(self._build_303_section(summary))
        elements.extend(self._build_390_section(summary))
        elements.extend(self._build_130_section(summary))

        next_year = stats.year + 1
        elements.append(Paragraph(
            f"La numeración se reinicia automáticamente con la fecha de la factura: "
            f"la primera factura de {next_year} será {format_number(RecordKind.INCOME, next_year, 1)}.",
            self.styles['Normal']
        ))

        elements.extend(self._build_footer())
        return self._build_document(elements)

    def _build_footer(self) -> list:
        """Construye el pie de página."""
        elements = []

        elements.append(Spacer(1, 0.2*inch))
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.grey))
        elements.append(Spacer(1, 0.1*inch))

        footer_text = self.config.get('footer_text', '')
        if footer_text:
            elements.append(Paragraph(footer_text, self.styles['Footer']))

        timestamp = get_spain_time().strftime('%d/%m/%Y %H:%M')
        elements.append(Paragraph(
            f'Documento generado el {timestamp} (hora peninsular)',
            self.styles['Footer']
        ))

        return elements
