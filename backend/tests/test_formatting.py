"""
Tests para el formato de presentación es-ES.
"""
from datetime import date, datetime
from decimal import Decimal

import pytest
from fiscal_ledger.utils.formatting import (
    format_amount,
    format_currency,
    format_date,
    format_rate,
    quarter_label,
    round_currency,
)
from fiscal_ledger.utils.validators import sanitize_filename, validate_tax_year


class TestCurrency:

    @pytest.mark.parametrize("amount,expected", [
        (Decimal("1234.56"), "1.234,56 €"),
        (Decimal("0"), "0,00 €"),
        (Decimal("1234567.891"), "1.234.567,89 €"),
        (Decimal("-80"), "-80,00 €"),
        (None, "0,00 €"),
    ])
    def test_format_currency(self, amount, expected):
        assert format_currency(amount) == expected

    def test_half_up_rounding(self):
        # 2.675 en float sería 2.67499...; en Decimal se redondea hacia arriba
        assert round_currency(Decimal("2.675")) == Decimal("2.68")
        assert format_amount(Decimal("0.005")) == "0,01"


class TestOtherFormats:

    def test_format_date(self):
        assert format_date(date(2025, 3, 5)) == "05/03/2025"
        assert format_date(datetime(2025, 12, 31, 23, 59)) == "31/12/2025"
        assert format_date(None) == ""

    @pytest.mark.parametrize("rate,expected", [
        (Decimal("21.000000"), "21%"),
        (Decimal("5.5"), "5,5%"),
        (Decimal("0"), "0%"),
    ])
    def test_format_rate(self, rate, expected):
        assert format_rate(rate) == expected

    def test_quarter_label(self):
        assert quarter_label(2) == "2T"
        assert quarter_label(None) == "Anual"


class TestValidators:

    def test_tax_year_range(self):
        assert validate_tax_year(2025)
        assert not validate_tax_year(1999)
        assert not validate_tax_year(3000)

    def test_sanitize_filename(self):
        assert sanitize_filename("../../etc/passwd") == "etcpasswd"
        assert sanitize_filename("modelos_2025.pdf") == "modelos_2025.pdf"
