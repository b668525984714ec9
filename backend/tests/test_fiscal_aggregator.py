"""
Tests para el motor de agregación fiscal (modelos 303, 390, 130, 111, 347, 190).
"""
from datetime import date
from decimal import Decimal

import pytest
from fiscal_ledger.services.fiscal_aggregator import (
    FiscalAggregator,
    quarter_of,
    to_amount,
)
from fiscal_ledger.services.records import FiscalRecord, RecordKind

D = Decimal


def income(number, issue_date, tax_base, vat_amount=None, withholding_amount="0",
           tax_id="12345678Z", name="Cliente SL", total=None, vat_rate="21"):
    vat_amount = D(vat_amount) if vat_amount is not None else D(tax_base) * D(vat_rate) / 100
    total = D(total) if total is not None else D(tax_base) + vat_amount - D(withholding_amount)
    return FiscalRecord(
        id=f"id-{number}",
        kind=RecordKind.INCOME,
        document_number=number,
        issue_date=issue_date,
        counterparty_tax_id=tax_id,
        counterparty_name=name,
        tax_base=D(tax_base),
        vat_rate=D(vat_rate),
        vat_amount=vat_amount,
        withholding_amount=D(withholding_amount),
        total_amount=total,
    )


def expense(number, issue_date, tax_base, vat_rate="21", vat_amount=None, deductible=True,
            withholding_amount="0", tax_id="B12345678", name="Proveedor SA", total=None):
    vat_amount = D(vat_amount) if vat_amount is not None else D(tax_base) * D(vat_rate) / 100
    total = D(total) if total is not None else D(tax_base) + vat_amount - D(withholding_amount)
    return FiscalRecord(
        id=f"id-{number}",
        kind=RecordKind.EXPENSE,
        document_number=number,
        issue_date=issue_date,
        counterparty_tax_id=tax_id,
        counterparty_name=name,
        tax_base=D(tax_base),
        vat_rate=D(vat_rate),
        vat_amount=vat_amount,
        withholding_amount=D(withholding_amount),
        total_amount=total,
        deductible=deductible,
    )


@pytest.fixture
def aggregator():
    return FiscalAggregator()


@pytest.fixture
def q1_records():
    """Dos emitidas de 1000 + 21% - 15% y un gasto deducible de 100 + 21%."""
    return [
        income("A-25-1", date(2025, 1, 15), "1000", vat_amount="210", withholding_amount="150",
               tax_id="11111111H"),
        income("A-25-2", date(2025, 2, 10), "1000", vat_amount="210", withholding_amount="150",
               tax_id="22222222J"),
        expense("R-25-1", date(2025, 3, 5), "100", vat_amount="21"),
    ]


class TestQuarterScenario:
    """Escenario completo del primer trimestre de 2025."""

    def test_model_303(self, aggregator, q1_records):
        summary = aggregator.aggregate(q1_records, 2025, quarter=1)
        m = summary.period.model_303

        # Devengado = 210 + 210 = 420; soportado = 21; resultado = 399
        assert m.output_vat == D("420")
        assert m.input_vat == D("21")
        assert m.result == D("399")
        assert m.output_base == D("2000")
        assert m.input_base == D("100")

    def test_model_130(self, aggregator, q1_records):
        m = aggregator.aggregate(q1_records, 2025, quarter=1).period.model_130

        # Rendimiento = 2000 - 100 = 1900; cuota = 1900 * 20% = 380
        # Retenciones = 150 + 150 = 300; resultado = 380 - 300 = 80
        assert m.net_yield == D("1900")
        assert m.theoretical_quota == D("380")
        assert m.withholding_suffered == D("300")
        assert m.result == D("80")

    def test_quarterly_summary_has_only_periodic_models(self, aggregator, q1_records):
        summary = aggregator.aggregate(q1_records, 2025, quarter=1)
        assert summary.quarter == 1
        assert len(summary.quarters) == 1
        assert summary.model_390 is None
        assert summary.model_347 is None
        assert summary.model_190 is None

    def test_other_quarter_is_zero(self, aggregator, q1_records):
        m = aggregator.aggregate(q1_records, 2025, quarter=2).period
        assert m.model_303.result == 0
        assert m.model_130.result == 0
        assert m.model_111.withheld_amount == 0

    def test_invalid_quarter(self, aggregator, q1_records):
        with pytest.raises(ValueError):
            aggregator.aggregate(q1_records, 2025, quarter=5)


class TestPeriodicRules:

    def test_non_deductible_expense_is_ignored(self, aggregator):
        records = [
            income("A-25-1", date(2025, 4, 1), "500"),
            expense("R-25-1", date(2025, 4, 2), "300", deductible=False, withholding_amount="45"),
        ]
        period = aggregator.aggregate(records, 2025, quarter=2).period
        assert period.model_303.input_vat == 0
        assert period.model_130.expenses == 0
        assert period.model_111.withheld_amount == 0

    def test_negative_yield_gives_zero_quota(self, aggregator):
        records = [
            income("A-25-1", date(2025, 7, 1), "100", withholding_amount="15"),
            expense("R-25-1", date(2025, 7, 2), "1000"),
        ]
        m = aggregator.aggregate(records, 2025, quarter=3).period.model_130
        # Rendimiento = 100 - 1000 = -900 -> cuota 0; resultado = 0 - 15
        assert m.net_yield == D("-900")
        assert m.theoretical_quota == 0
        assert m.result == D("-15")

    def test_model_111_sums_deductible_expense_withholding(self, aggregator):
        records = [
            expense("R-25-1", date(2025, 10, 1), "1000", withholding_amount="150"),
            expense("R-25-2", date(2025, 11, 1), "200", withholding_amount="30"),
            income("A-25-1", date(2025, 11, 2), "1000", withholding_amount="150"),
        ]
        m = aggregator.aggregate(records, 2025, quarter=4).period.model_111
        assert m.withheld_amount == D("180")

    def test_stored_amounts_are_not_recomputed(self, aggregator):
        # Cuota guardada 20.99 aunque 100 * 21% = 21
        records = [income("A-25-1", date(2025, 1, 1), "100", vat_amount="20.99")]
        m = aggregator.aggregate(records, 2025, quarter=1).period.model_303
        assert m.output_vat == D("20.99")

    def test_no_rounding_in_engine(self, aggregator):
        records = [income("A-25-1", date(2025, 1, 1), "10.005", vat_amount="2.10105")]
        m = aggregator.aggregate(records, 2025, quarter=1).period.model_303
        assert m.output_vat == D("2.10105")
        assert m.output_base == D("10.005")

    def test_other_years_are_excluded(self, aggregator):
        records = [
            income("A-24-1", date(2024, 12, 31), "1000"),
            income("A-25-1", date(2025, 1, 1), "500"),
        ]
        m = aggregator.aggregate(records, 2025).period.model_130
        assert m.income == D("500")


class TestAnnualRollUp:

    @pytest.fixture
    def year_records(self):
        return [
            income("A-25-1", date(2025, 1, 10), "1000", withholding_amount="150"),
            income("A-25-2", date(2025, 5, 10), "2500", withholding_amount="375"),
            income("A-25-3", date(2025, 8, 10), "800"),
            income("A-25-4", date(2025, 12, 31), "1200", withholding_amount="180"),
            expense("R-25-1", date(2025, 2, 1), "300"),
            expense("R-25-2", date(2025, 6, 1), "150", vat_rate="10"),
            expense("R-25-3", date(2025, 9, 1), "50", vat_rate="4"),
            expense("R-25-4", date(2025, 11, 1), "4000"),
        ]

    def test_annual_equals_sum_of_quarters(self, aggregator, year_records):
        summary = aggregator.aggregate(year_records, 2025)
        assert [q.quarter for q in summary.quarters] == [1, 2, 3, 4]

        for attr in ("output_vat", "input_vat", "result"):
            assert getattr(summary.period.model_303, attr) == sum(
                getattr(q.model_303, attr) for q in summary.quarters
            )
        for attr in ("income", "expenses", "theoretical_quota", "withholding_suffered", "result"):
            assert getattr(summary.period.model_130, attr) == sum(
                getattr(q.model_130, attr) for q in summary.quarters
            )
        assert summary.period.model_111.withheld_amount == sum(
            q.model_111.withheld_amount for q in summary.quarters
        )

    def test_annual_130_quota_is_sum_of_quarterly_quotas(self, aggregator, year_records):
        summary = aggregator.aggregate(year_records, 2025)
        # 4T: 1200 - 4000 < 0 -> cuota 0, aunque el año completo tenga rendimiento positivo
        assert summary.quarters[3].model_130.theoretical_quota == 0
        # 1T: (1000-300)*0.2=140; 2T: (2500-150)*0.2=470; 3T: (800-50)*0.2=150
        assert summary.period.model_130.theoretical_quota == D("760")

    def test_390_breakdown_sums_to_annual_input_vat(self, aggregator, year_records):
        summary = aggregator.aggregate(year_records, 2025)
        m390 = summary.model_390
        assert sum(b.vat_amount for b in m390.input_breakdown) == m390.input_vat
        assert m390.input_vat == summary.period.model_303.input_vat
        # Tipos de mayor a menor
        assert [b.rate for b in m390.input_breakdown] == [D("21"), D("10"), D("4")]
        # 21%: 300 + 4000 = 4300 de base
        assert m390.input_breakdown[0].tax_base == D("4300")

    def test_390_with_no_deductible_expenses(self, aggregator):
        summary = aggregator.aggregate([income("A-25-1", date(2025, 1, 1), "100")], 2025)
        assert summary.model_390.input_breakdown == []
        assert summary.model_390.result == D("21")


class TestModel347:

    def test_threshold_is_strict(self, aggregator):
        records = [
            income("A-25-1", date(2025, 1, 1), "0", vat_amount="0", total="3005.06",
                   tax_id="11111111H", name="En el umbral"),
            income("A-25-2", date(2025, 1, 1), "0", vat_amount="0", total="3005.07",
                   tax_id="22222222J", name="Por encima"),
        ]
        ops = aggregator.aggregate(records, 2025).model_347.operations
        assert [op.tax_id for op in ops] == ["22222222J"]
        assert ops[0].total == D("3005.07")

    def test_groups_both_kinds_by_tax_id(self, aggregator):
        # 2000 vendido + 1500 comprado al mismo NIF = 3500 > umbral
        records = [
            income("A-25-1", date(2025, 3, 1), "0", vat_amount="0", total="2000", tax_id="B12345678"),
            expense("R-25-1", date(2025, 9, 1), "0", vat_amount="0", total="1500", tax_id="b12345678 "),
        ]
        ops = aggregator.aggregate(records, 2025).model_347.operations
        assert len(ops) == 1
        assert ops[0].total == D("3500")
        assert ops[0].kind == RecordKind.INCOME

    def test_uses_absolute_totals(self, aggregator):
        records = [
            expense("R-25-1", date(2025, 1, 1), "0", vat_amount="0", total="2000"),
            expense("R-25-2", date(2025, 2, 1), "0", vat_amount="0", total="-1500"),
        ]
        ops = aggregator.aggregate(records, 2025).model_347.operations
        assert ops[0].total == D("3500")
        assert ops[0].kind == RecordKind.EXPENSE

    def test_custom_threshold(self):
        aggregator = FiscalAggregator(third_party_threshold=D("100"))
        records = [income("A-25-1", date(2025, 1, 1), "100")]
        assert len(aggregator.aggregate(records, 2025).model_347.operations) == 1


class TestModel190:

    def test_groups_income_withholding_by_client(self, aggregator):
        records = [
            income("A-25-1", date(2025, 1, 1), "1000", withholding_amount="150", tax_id="11111111H", name="Uno"),
            income("A-25-2", date(2025, 6, 1), "500", withholding_amount="75", tax_id="11111111H", name="Uno"),
            income("A-25-3", date(2025, 6, 1), "700", tax_id="22222222J", name="Sin retención"),
            expense("R-25-1", date(2025, 6, 1), "100", withholding_amount="15", tax_id="33333333P"),
        ]
        m190 = aggregator.aggregate(records, 2025).model_190
        assert len(m190.entries) == 1
        entry = m190.entries[0]
        assert entry.tax_id == "11111111H"
        assert entry.tax_base == D("1500")
        assert entry.withholding_amount == D("225")
        assert m190.total_withholding == D("225")


class TestRobustness:

    def test_empty_set_is_all_zero(self, aggregator):
        summary = aggregator.aggregate([], 2025)
        assert summary.period.model_303.result == 0
        assert summary.period.model_130.result == 0
        assert summary.period.model_111.withheld_amount == 0
        assert summary.model_347.operations == []
        assert summary.model_190.entries == []

    def test_malformed_amount_counts_as_zero(self, aggregator):
        good = income("A-25-1", date(2025, 1, 1), "100", vat_amount="21")
        bad = FiscalRecord(
            id="bad", kind=RecordKind.INCOME, document_number="A-25-2",
            issue_date=date(2025, 1, 2), tax_base="abc", vat_amount=D("NaN"),
        )
        m = aggregator.aggregate([good, bad], 2025, quarter=1).period.model_303
        assert m.output_vat == D("21")
        assert m.output_base == D("100")

    def test_record_without_date_is_skipped(self, aggregator):
        undated = FiscalRecord(
            id="x", kind=RecordKind.INCOME, document_number="A-25-9",
            issue_date=None, tax_base=D("1000"), vat_amount=D("210"),
        )
        summary = aggregator.aggregate([undated], 2025)
        assert summary.period.model_303.output_vat == 0

    def test_to_amount(self):
        assert to_amount(None) == 0
        assert to_amount("12.5") == D("12.5")
        assert to_amount(True) == 0
        assert to_amount(float("inf")) == 0

    @pytest.mark.parametrize("month,quarter", [(1, 1), (3, 1), (4, 2), (9, 3), (12, 4)])
    def test_quarter_of(self, month, quarter):
        assert quarter_of(month) == quarter


class TestYearClose:

    def test_year_close_stats(self, aggregator, q1_records):
        stats = aggregator.year_close(q1_records, 2025)
        assert stats.record_count == 3
        assert stats.income_total == D("2000")
        assert stats.expense_total == D("100")
        assert stats.net_yield == D("1900")
        assert stats.vat_result == D("399")
        assert stats.withholding_suffered == D("300")

    def test_available_years(self, aggregator):
        records = [
            income("A-23-1", date(2023, 1, 1), "1"),
            income("A-25-1", date(2025, 1, 1), "1"),
            expense("R-25-1", date(2025, 2, 1), "1"),
        ]
        assert aggregator.available_years(records) == [2025, 2023]
