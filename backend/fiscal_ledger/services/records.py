"""
Forma del registro fiscal sobre la que opera el motor.
Facturas emitidas (ingresos) y facturas/tickets recibidos (gastos).
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class RecordKind(str, Enum):
    """Tipo de documento. No cambia nunca tras la creación."""
    INCOME = "INCOME"  # Factura emitida
    EXPENSE = "EXPENSE"  # Factura recibida


# Prefijo de numeración por tipo: A-25-1 (emitidas), R-25-1 (registro de recibidas)
NUMBER_PREFIXES = {
    RecordKind.INCOME: "A",
    RecordKind.EXPENSE: "R",
}

ZERO = Decimal("0")


def new_record_id() -> str:
    """Identificador opaco asignado al crear el registro."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class FiscalRecord:
    """
    Registro fiscal inmutable.

    Los importes derivados (cuota IVA, retención, total) se guardan tal cual
    se recibieron: la agregación nunca los recalcula.
    """
    id: str
    kind: RecordKind
    document_number: str
    issue_date: Optional[date]
    counterparty_tax_id: str = ""
    counterparty_name: str = ""
    counterparty_address: str = ""

    tax_base: Decimal = ZERO
    vat_rate: Decimal = ZERO
    vat_amount: Decimal = ZERO
    withholding_rate: Decimal = ZERO
    withholding_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    # Solo gastos
    deductible: bool = False
    registration_date: Optional[date] = None
    supplier_number: str = ""
    expense_irpf_category: str = ""
    expense_vat_category: str = ""

    # Solo ingresos
    income_tax_category: str = ""
    fees: Decimal = ZERO  # Honorarios
    taxable_expenses: Decimal = ZERO  # Gastos que forman parte de la base
    supplies: Decimal = ZERO  # Suplidos
    retainer: Decimal = ZERO  # Provisión de fondos

    concept: str = ""
    category: str = ""

    @property
    def is_income(self) -> bool:
        return self.kind == RecordKind.INCOME

    @property
    def counts_as_deductible_expense(self) -> bool:
        """Gasto deducible: tipo gasto y marcado como deducible."""
        return self.kind == RecordKind.EXPENSE and bool(self.deductible)
