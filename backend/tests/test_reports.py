"""
Tests para la generación de informes PDF y la exportación a CSV/Excel.
"""
from dataclasses import replace
from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import load_workbook

from fiscal_ledger.services.export_service import records_to_csv, records_to_xlsx, summary_to_xlsx
from fiscal_ledger.services.fiscal_aggregator import FiscalAggregator
from fiscal_ledger.services.pdf_generator import TaxReportPDFGenerator, invoice_lines, invoice_totals
from fiscal_ledger.services.records import FiscalRecord, RecordKind

PROFILE = {
    'name': 'Ana Pérez',
    'nif': '12345678Z',
    'address': 'Calle Mayor 1',
    'city': 'Madrid',
    'zip_code': '28001',
    'email': 'ana@example.com',
    'phone': '',
}


@pytest.fixture
def records():
    return [
        FiscalRecord(
            id="r1", kind=RecordKind.INCOME, document_number="A-25-1",
            issue_date=date(2025, 1, 15), counterparty_tax_id="B12345678",
            counterparty_name="Cliente SL", tax_base=Decimal("4000"),
            vat_rate=Decimal("21"), vat_amount=Decimal("840"),
            withholding_rate=Decimal("15"), withholding_amount=Decimal("600"),
            total_amount=Decimal("4240"),
        ),
        FiscalRecord(
            id="r2", kind=RecordKind.EXPENSE, document_number="R-25-1",
            issue_date=date(2025, 2, 3), counterparty_tax_id="A58818501",
            counterparty_name="Proveedor SA", tax_base=Decimal("1234.5"),
            vat_rate=Decimal("21"), vat_amount=Decimal("259.245"),
            total_amount=Decimal("1493.745"), deductible=True,
        ),
    ]


@pytest.fixture
def summary(records):
    return FiscalAggregator().aggregate(records, 2025)


class TestPDF:

    @pytest.mark.parametrize("model", ["ALL", "303", "390", "130", "111", "347", "190"])
    def test_tax_models_report(self, summary, model):
        content = TaxReportPDFGenerator(profile=PROFILE).generate_tax_models_report(summary, model=model)
        assert content.startswith(b"%PDF")

    def test_unknown_model(self, summary):
        with pytest.raises(ValueError):
            TaxReportPDFGenerator().generate_tax_models_report(summary, model="999")

    def test_year_close_report(self, records, summary):
        stats = FiscalAggregator().year_close(records, 2025)
        content = TaxReportPDFGenerator(profile=PROFILE).generate_year_close_report(stats, summary)
        assert content.startswith(b"%PDF")


@pytest.fixture
def invoice():
    """Honorarios 800 + gastos con base 200, suplidos 30 y provisión de fondos 500."""
    return FiscalRecord(
        id="f1", kind=RecordKind.INCOME, document_number="A-25-7",
        issue_date=date(2025, 4, 2), counterparty_tax_id="12345678Z",
        counterparty_name="Cliente & Hijos", counterparty_address="Gran Vía 10, Madrid",
        concept="Asesoramiento jurídico", tax_base=Decimal("1000"),
        vat_rate=Decimal("21"), vat_amount=Decimal("210"),
        withholding_rate=Decimal("15"), withholding_amount=Decimal("150"),
        # 1000 + 210 - 150 + 30 = 1090
        total_amount=Decimal("1090"), fees=Decimal("800"),
        taxable_expenses=Decimal("200"), supplies=Decimal("30"), retainer=Decimal("500"),
    )


class TestInvoicePDF:

    def test_lines_split_fees_and_taxable_expenses(self, invoice):
        assert invoice_lines(invoice) == [
            ("Asesoramiento jurídico", "800,00 €"),
            ("Gastos / Suplidos incluidos en base", "200,00 €"),
        ]

    def test_lines_without_breakdown_use_base(self, records):
        assert invoice_lines(records[0]) == [("Servicios Profesionales", "4.000,00 €")]

    def test_totals_with_supplies_and_retainer(self, invoice):
        assert invoice_totals(invoice) == [
            ("Base Imponible", "1.000,00 €"),
            ("IVA 21%", "210,00 €"),
            ("Retención IRPF 15%", "- 150,00 €"),
            ("Suplidos (Exento)", "+ 30,00 €"),
            ("TOTAL FACTURA", "1.090,00 €"),
            ("Menos Provisión de Fondos", "- 500,00 €"),
            # 1090 - 500
            ("TOTAL A PAGAR", "590,00 €"),
        ]

    def test_totals_without_withholding_or_retainer(self, invoice):
        plain = replace(invoice, withholding_rate=Decimal("0"), withholding_amount=Decimal("0"),
                        supplies=Decimal("0"), retainer=Decimal("0"), total_amount=Decimal("1210"))
        labels = [label for label, _ in invoice_totals(plain)]
        assert labels == ["Base Imponible", "IVA 21%", "TOTAL FACTURA"]

    def test_generate_invoice_pdf(self, invoice):
        profile = dict(PROFILE, bar_association="ICAM", collegiate_number="12345",
                       website="www.example.com", iban="ES91 2100 0418 4502 0005 1332")
        content = TaxReportPDFGenerator(profile=profile).generate_invoice_pdf(invoice)
        assert content.startswith(b"%PDF")

    def test_generate_invoice_pdf_without_profile(self, invoice):
        assert TaxReportPDFGenerator().generate_invoice_pdf(invoice).startswith(b"%PDF")

    def test_expense_is_not_an_invoice(self, records):
        with pytest.raises(ValueError):
            TaxReportPDFGenerator().generate_invoice_pdf(records[1])


class TestExport:

    def test_csv_uses_spanish_formats(self, records):
        text = records_to_csv(records).decode("utf-8-sig")
        lines = text.splitlines()
        assert lines[0].startswith("Tipo;Número;Fecha;NIF")
        # Importes redondeados solo al presentar: 1493.745 -> 1.493,75
        assert "Gasto;R-25-1;03/02/2025;A58818501;Proveedor SA;;1.234,50;21%;259,25;0%;0,00;1.493,75;Sí" in lines
        assert lines[1].endswith(";")  # ingreso: columna deducible vacía

    def test_records_xlsx(self, records):
        workbook = load_workbook(BytesIO(records_to_xlsx(records)))
        sheet = workbook["Registros"]
        assert sheet.max_row == 3
        assert sheet.cell(row=2, column=2).value == "A-25-1"
        assert sheet.cell(row=3, column=12).value == pytest.approx(1493.75)

    def test_summary_xlsx_has_one_sheet_per_model(self, summary):
        workbook = load_workbook(BytesIO(summary_to_xlsx(summary)))
        assert workbook.sheetnames == [
            "Modelo 303", "Modelo 130", "Modelo 111", "Modelo 390", "Modelo 347", "Modelo 190"
        ]
        sheet_303 = workbook["Modelo 303"]
        # Fila 2 = 1T; resultado 840 - 259.245 = 580.755 -> 580.76
        assert sheet_303.cell(row=2, column=1).value == "1T"
        assert sheet_303.cell(row=2, column=6).value == pytest.approx(580.76)
        assert sheet_303.cell(row=6, column=1).value == "Anual"
        # Solo el cliente supera 3005.06 en el 347
        assert workbook["Modelo 347"].max_row == 2
