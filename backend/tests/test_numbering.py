"""
Tests para la numeración correlativa de documentos.
"""
from datetime import date

from fiscal_ledger.services.numbering import (
    document_sort_key,
    format_number,
    max_sequence,
    next_number,
    parse,
)
from fiscal_ledger.services.records import FiscalRecord, RecordKind


def make(number, kind=RecordKind.INCOME, record_id=None):
    return FiscalRecord(
        id=record_id or number,
        kind=kind,
        document_number=number,
        issue_date=date(2025, 1, 1)
    )


class TestNextNumber:

    def test_empty_set_starts_at_one(self):
        assert next_number([], RecordKind.INCOME, 2025) == "A-25-1"
        assert next_number([], RecordKind.EXPENSE, 2025) == "R-25-1"

    def test_uses_max_plus_one_not_count(self):
        # Huecos por borrados: 1 y 7 -> 8
        existing = [make("A-25-1"), make("A-25-7")]
        assert next_number(existing, RecordKind.INCOME, 2025) == "A-25-8"

    def test_is_idempotent(self):
        existing = [make("A-25-3")]
        first = next_number(existing, RecordKind.INCOME, 2025)
        assert next_number(existing, RecordKind.INCOME, 2025) == first

    def test_monotonic_after_insert(self):
        existing = [make("A-25-3")]
        number = next_number(existing, RecordKind.INCOME, 2025)
        existing.append(make(number))
        assert next_number(existing, RecordKind.INCOME, 2025) == "A-25-5"

    def test_kinds_are_isolated(self):
        existing = [make("A-25-9"), make("R-25-2", RecordKind.EXPENSE)]
        assert next_number(existing, RecordKind.INCOME, 2025) == "A-25-10"
        assert next_number(existing, RecordKind.EXPENSE, 2025) == "R-25-3"

    def test_years_are_isolated(self):
        existing = [make("A-24-40"), make("A-25-2")]
        assert next_number(existing, RecordKind.INCOME, 2024) == "A-24-41"
        assert next_number(existing, RecordKind.INCOME, 2026) == "A-26-1"

    def test_non_matching_numbers_are_ignored(self):
        existing = [
            make("FA-25-99"),
            make("A-25-5-B"),
            make("A-2025-50"),
            make("a-25-70"),
            make("A-25-2"),
        ]
        assert max_sequence(existing, RecordKind.INCOME, 2025) == 2
        assert next_number(existing, RecordKind.INCOME, 2025) == "A-25-3"

    def test_expense_number_under_income_kind_is_ignored(self):
        # Un 'A-' guardado como gasto no cuenta para los ingresos
        existing = [make("A-25-30", RecordKind.EXPENSE)]
        assert next_number(existing, RecordKind.INCOME, 2025) == "A-25-1"

    def test_year_2000_suffix(self):
        assert format_number(RecordKind.INCOME, 2000, 1) == "A-00-1"
        assert format_number(RecordKind.EXPENSE, 2009, 12) == "R-09-12"


class TestParseAndSort:

    def test_parse(self):
        parsed = parse("R-25-14")
        assert parsed.prefix == "R"
        assert parsed.year_suffix == "25"
        assert parsed.sequence == 14
        assert parse("X-25-1") is None
        assert parse(None) is None

    def test_natural_order(self):
        numbers = ["A-25-10", "A-25-2", "FAC-3", "A-24-7", "A-25-1"]
        ordered = sorted(numbers, key=document_sort_key)
        assert ordered == ["A-24-7", "A-25-1", "A-25-2", "A-25-10", "FAC-3"]
