"""
Cálculo de importes de una factura en el formulario.

Solo se usa al construir un borrador (alta manual o importación) cuando falta
algún importe. La agregación trabaja siempre con los importes guardados.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .records import RecordKind, ZERO

HUNDRED = Decimal("100")


@dataclass
class InvoiceAmounts:
    tax_base: Decimal
    vat_amount: Decimal
    withholding_amount: Decimal
    total_amount: Decimal
    amount_to_pay: Decimal


def percentage(amount: Decimal, rate: Decimal) -> Decimal:
    """Importe * tipo / 100, sin redondear."""
    return amount * rate / HUNDRED


def income_base(fees: Decimal, taxable_expenses: Decimal) -> Decimal:
    """Base de una factura emitida: honorarios + gastos que forman parte de la base."""
    return (fees or ZERO) + (taxable_expenses or ZERO)


def compute_amounts(
    kind: RecordKind,
    tax_base: Decimal,
    vat_rate: Decimal,
    withholding_rate: Decimal,
    vat_amount: Optional[Decimal] = None,
    withholding_amount: Optional[Decimal] = None,
    total_amount: Optional[Decimal] = None,
    supplies: Decimal = ZERO,
    retainer: Decimal = ZERO
) -> InvoiceAmounts:
    """
    Completa los importes que no vengan informados.

    Total emitida = base + IVA - IRPF + suplidos
    Total recibida = base + IVA - IRPF
    A pagar = total - provisión de fondos
    """
    tax_base = tax_base or ZERO
    if vat_amount is None:
        vat_amount = percentage(tax_base, vat_rate or ZERO)
    if withholding_amount is None:
        withholding_amount = percentage(tax_base, withholding_rate or ZERO)
    if total_amount is None:
        total_amount = tax_base + vat_amount - withholding_amount
        if kind == RecordKind.INCOME:
            total_amount += supplies or ZERO

    return InvoiceAmounts(
        tax_base=tax_base,
        vat_amount=vat_amount,
        withholding_amount=withholding_amount,
        total_amount=total_amount,
        amount_to_pay=total_amount - (retainer or ZERO)
    )
