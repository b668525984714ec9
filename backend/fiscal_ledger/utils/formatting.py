"""
Formato de presentación (es-ES).
El redondeo a céntimos solo ocurre aquí, nunca en el motor.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")


def round_currency(amount) -> Decimal:
    """Redondeo comercial a dos decimales."""
    return Decimal(str(amount or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount) -> str:
    """1234567.891 -> '1.234.567,89'"""
    rounded = round_currency(amount)
    text = f"{rounded:,.2f}"
    # 1,234.56 -> 1.234,56
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(amount) -> str:
    """1234.5 -> '1.234,50 €'"""
    return f"{format_amount(amount)} €"


def format_rate(rate) -> str:
    """Tipo impositivo sin ceros sobrantes: 21.00 -> '21%', 5.5 -> '5,5%'"""
    value = Decimal(str(rate or 0)).normalize()
    if value == value.to_integral():
        value = value.quantize(Decimal(1))
    return f"{value}".replace(".", ",") + "%"


def format_date(value: Optional[Union[date, datetime]]) -> str:
    """Fecha en formato DD/MM/YYYY ('' si no hay fecha)."""
    if value is None:
        return ""
    return value.strftime('%d/%m/%Y')


def quarter_label(quarter: Optional[int]) -> str:
    return f"{quarter}T" if quarter else "Anual"
