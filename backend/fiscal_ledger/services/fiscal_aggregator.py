"""
Motor de agregación fiscal.
Calcula los modelos 303, 390, 130, 111, 347 y 190 a partir de los registros.

Reglas generales:
- El ejercicio y el trimestre se deciden por la fecha de expedición.
- Los importes guardados (cuota IVA, retención, total) no se recalculan.
- Aritmética Decimal sin redondeo: redondear es cosa de la presentación.
- Los modelos periódicos anuales (303, 130, 111) son la suma de los cuatro
  trimestres, de modo que el anual siempre cuadra con los trimestrales.
"""
from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional
import logging

from .records import FiscalRecord, RecordKind, ZERO
from .tax_id_validator import normalize_tax_id

logger = logging.getLogger(__name__)

QUARTERS = (1, 2, 3, 4)
DEFAULT_IRPF_ADVANCE_RATE = Decimal("0.20")
DEFAULT_THIRD_PARTY_THRESHOLD = Decimal("3005.06")


# ===================== RESULTADOS =====================

@dataclass
class Model303:
    """IVA periódico: devengado (emitidas) menos soportado deducible."""
    output_base: Decimal = ZERO
    output_vat: Decimal = ZERO  # IVA devengado
    input_base: Decimal = ZERO
    input_vat: Decimal = ZERO  # IVA soportado
    result: Decimal = ZERO


@dataclass
class Model130:
    """Pago fraccionado IRPF (estimación directa simplificada)."""
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    net_yield: Decimal = ZERO
    theoretical_quota: Decimal = ZERO
    withholding_suffered: Decimal = ZERO
    result: Decimal = ZERO


@dataclass
class Model111:
    """Retenciones practicadas en facturas recibidas deducibles."""
    withheld_amount: Decimal = ZERO


@dataclass
class PeriodSummary:
    """Modelos periódicos de un trimestre (quarter) o del año (quarter=None)."""
    quarter: Optional[int]
    model_303: Model303 = field(default_factory=Model303)
    model_130: Model130 = field(default_factory=Model130)
    model_111: Model111 = field(default_factory=Model111)


@dataclass
class VatRateBreakdown:
    rate: Decimal
    tax_base: Decimal = ZERO
    vat_amount: Decimal = ZERO


@dataclass
class Model390:
    """Resumen anual de IVA con desglose del soportado por tipo."""
    output_base: Decimal = ZERO
    output_vat: Decimal = ZERO
    input_base: Decimal = ZERO
    input_vat: Decimal = ZERO
    result: Decimal = ZERO
    input_breakdown: List[VatRateBreakdown] = field(default_factory=list)


@dataclass
class ThirdPartyOperation:
    tax_id: str
    name: str
    total: Decimal
    kind: RecordKind


@dataclass
class Model347:
    threshold: Decimal
    operations: List[ThirdPartyOperation] = field(default_factory=list)


@dataclass
class WithholdingReceived:
    tax_id: str
    name: str
    tax_base: Decimal = ZERO
    withholding_amount: Decimal = ZERO


@dataclass
class Model190:
    entries: List[WithholdingReceived] = field(default_factory=list)

    @property
    def total_tax_base(self) -> Decimal:
        return sum((e.tax_base for e in self.entries), ZERO)

    @property
    def total_withholding(self) -> Decimal:
        return sum((e.withholding_amount for e in self.entries), ZERO)


@dataclass
class FiscalSummary:
    """
    Resultado de la agregación.
    Con trimestre solo se rellenan los modelos periódicos de ese trimestre;
    sin trimestre se añaden los cuatro trimestres y los modelos anuales.
    """
    year: int
    quarter: Optional[int]
    period: PeriodSummary
    quarters: List[PeriodSummary] = field(default_factory=list)
    model_390: Optional[Model390] = None
    model_347: Optional[Model347] = None
    model_190: Optional[Model190] = None


@dataclass
class YearCloseStats:
    """Cifras del cierre de ejercicio."""
    year: int
    record_count: int
    income_total: Decimal
    expense_total: Decimal
    net_yield: Decimal
    vat_result: Decimal
    withholding_suffered: Decimal


# ===================== UTILIDADES =====================

def to_amount(value) -> Decimal:
    """
    Convierte un importe a Decimal.
    Valores nulos, no finitos o ilegibles cuentan como cero.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning(f"Importe ilegible ignorado en la agregación: {value!r}")
        return ZERO
    if not amount.is_finite():
        logger.warning(f"Importe no finito ignorado en la agregación: {value!r}")
        return ZERO
    return amount


def quarter_of(month: int) -> int:
    """Trimestre natural de un mes (1-12)."""
    return (month - 1) // 3 + 1


def quarter_months(quarter: int) -> range:
    """Meses (1-12) del trimestre."""
    start = (quarter - 1) * 3 + 1
    return range(start, start + 3)


def _sum_dataclasses(items, cls):
    """Suma campo a campo una lista de resultados del mismo tipo."""
    totals = cls()
    for item in items:
        for f in fields(cls):
            setattr(totals, f.name, getattr(totals, f.name) + getattr(item, f.name))
    return totals


def _is_usable(record: FiscalRecord) -> bool:
    if not isinstance(record.issue_date, date):
        logger.warning(f"Registro {record.id} sin fecha de expedición válida: se excluye")
        return False
    if record.kind not in (RecordKind.INCOME, RecordKind.EXPENSE):
        logger.warning(f"Registro {record.id} con tipo desconocido {record.kind!r}: se excluye")
        return False
    return True


# ===================== MOTOR =====================

class FiscalAggregator:
    """
    Agregador de modelos tributarios.
    Sin estado: cada llamada trabaja sobre la instantánea que recibe.
    """

    def __init__(
        self,
        irpf_advance_rate: Decimal = DEFAULT_IRPF_ADVANCE_RATE,
        third_party_threshold: Decimal = DEFAULT_THIRD_PARTY_THRESHOLD
    ):
        self.irpf_advance_rate = Decimal(irpf_advance_rate)
        self.third_party_threshold = Decimal(third_party_threshold)

    # ---------- filtros ----------

    @staticmethod
    def filter_year(records: Iterable[FiscalRecord], year: int) -> List[FiscalRecord]:
        return [
            r for r in records
            if _is_usable(r) and r.issue_date.year == year
        ]

    @staticmethod
    def filter_quarter(records: Iterable[FiscalRecord], quarter: int) -> List[FiscalRecord]:
        months = quarter_months(quarter)
        return [r for r in records if r.issue_date.month in months]

    # ---------- modelos periódicos ----------

    @staticmethod
    def calculate_303(records: List[FiscalRecord]) -> Model303:
        """
        Modelo 303.
        Fórmula: resultado = Σ cuota IVA emitidas - Σ cuota IVA gastos deducibles
        """
        incomes = [r for r in records if r.kind == RecordKind.INCOME]
        expenses = [r for r in records if r.counts_as_deductible_expense]

        output_vat = sum((to_amount(r.vat_amount) for r in incomes), ZERO)
        input_vat = sum((to_amount(r.vat_amount) for r in expenses), ZERO)

        return Model303(
            output_base=sum((to_amount(r.tax_base) for r in incomes), ZERO),
            output_vat=output_vat,
            input_base=sum((to_amount(r.tax_base) for r in expenses), ZERO),
            input_vat=input_vat,
            result=output_vat - input_vat
        )

    def calculate_130(self, records: List[FiscalRecord]) -> Model130:
        """
        Modelo 130.
        Fórmula: rendimiento = Σ base emitidas - Σ base gastos deducibles
                 cuota = max(rendimiento, 0) * 20%
                 resultado = cuota - Σ retenciones soportadas en emitidas
        """
        incomes = [r for r in records if r.kind == RecordKind.INCOME]
        expenses = [r for r in records if r.counts_as_deductible_expense]

        income = sum((to_amount(r.tax_base) for r in incomes), ZERO)
        expense = sum((to_amount(r.tax_base) for r in expenses), ZERO)
        net_yield = income - expense
        quota = max(net_yield, ZERO) * self.irpf_advance_rate
        withholding = sum((to_amount(r.withholding_amount) for r in incomes), ZERO)

        return Model130(
            income=income,
            expenses=expense,
            net_yield=net_yield,
            theoretical_quota=quota,
            withholding_suffered=withholding,
            result=quota - withholding
        )

    @staticmethod
    def calculate_111(records: List[FiscalRecord]) -> Model111:
        """Modelo 111: Σ retenciones de las facturas recibidas deducibles."""
        return Model111(
            withheld_amount=sum(
                (to_amount(r.withholding_amount) for r in records if r.counts_as_deductible_expense),
                ZERO
            )
        )

    def calculate_period(self, records: List[FiscalRecord], quarter: Optional[int]) -> PeriodSummary:
        return PeriodSummary(
            quarter=quarter,
            model_303=self.calculate_303(records),
            model_130=self.calculate_130(records),
            model_111=self.calculate_111(records)
        )

    @staticmethod
    def roll_up(quarters: List[PeriodSummary]) -> PeriodSummary:
        """Anual de los modelos periódicos = suma de los trimestres."""
        return PeriodSummary(
            quarter=None,
            model_303=_sum_dataclasses([q.model_303 for q in quarters], Model303),
            model_130=_sum_dataclasses([q.model_130 for q in quarters], Model130),
            model_111=_sum_dataclasses([q.model_111 for q in quarters], Model111)
        )

    # ---------- modelos anuales ----------

    @staticmethod
    def calculate_390(year_records: List[FiscalRecord], annual_303: Model303) -> Model390:
        """
        Modelo 390.
        Totales del 303 anual y desglose del IVA soportado deducible por tipo,
        de mayor a menor tipo.
        """
        by_rate = {}
        for record in year_records:
            if not record.counts_as_deductible_expense:
                continue
            rate = to_amount(record.vat_rate)
            entry = by_rate.setdefault(rate, VatRateBreakdown(rate=rate))
            entry.tax_base += to_amount(record.tax_base)
            entry.vat_amount += to_amount(record.vat_amount)

        breakdown = sorted(by_rate.values(), key=lambda e: e.rate, reverse=True)

        return Model390(
            output_base=annual_303.output_base,
            output_vat=annual_303.output_vat,
            input_base=annual_303.input_base,
            input_vat=annual_303.input_vat,
            result=annual_303.result,
            input_breakdown=breakdown
        )

    def calculate_347(self, year_records: List[FiscalRecord]) -> Model347:
        """
        Modelo 347.
        Agrupa ingresos y gastos por NIF; total = Σ |total factura|.
        Solo se declaran los grupos que superan estrictamente el umbral.
        """
        groups = {}
        for record in year_records:
            tax_id = normalize_tax_id(record.counterparty_tax_id)
            group = groups.setdefault(tax_id, {'name': '', 'by_kind': {}})
            if not group['name'] and record.counterparty_name:
                group['name'] = record.counterparty_name
            kind = RecordKind(record.kind)
            group['by_kind'][kind] = group['by_kind'].get(kind, ZERO) + abs(to_amount(record.total_amount))

        operations = []
        for tax_id, group in groups.items():
            total = sum(group['by_kind'].values(), ZERO)
            if total > self.third_party_threshold:
                # Tipo predominante; en empate, el primero que apareció
                dominant = max(group['by_kind'], key=group['by_kind'].get)
                operations.append(ThirdPartyOperation(
                    tax_id=tax_id,
                    name=group['name'],
                    total=total,
                    kind=dominant
                ))

        return Model347(threshold=self.third_party_threshold, operations=operations)

    @staticmethod
    def calculate_190(year_records: List[FiscalRecord]) -> Model190:
        """
        Modelo 190 (retenciones soportadas).
        Clientes que nos practicaron retención, agrupados por NIF.
        """
        groups = {}
        for record in year_records:
            if record.kind != RecordKind.INCOME:
                continue
            withholding = to_amount(record.withholding_amount)
            if withholding <= ZERO:
                continue
            tax_id = normalize_tax_id(record.counterparty_tax_id)
            entry = groups.setdefault(
                tax_id,
                WithholdingReceived(tax_id=tax_id, name=record.counterparty_name or '')
            )
            entry.tax_base += to_amount(record.tax_base)
            entry.withholding_amount += withholding

        return Model190(entries=list(groups.values()))

    # ---------- punto de entrada ----------

    def aggregate(
        self,
        records: Iterable[FiscalRecord],
        year: int,
        quarter: Optional[int] = None
    ) -> FiscalSummary:
        """
        Calcula el resumen fiscal del ejercicio o de uno de sus trimestres.
        Nunca falla por el contenido de los registros: un conjunto vacío
        produce todos los importes a cero.
        """
        if quarter is not None and quarter not in QUARTERS:
            raise ValueError(f"Trimestre inválido: {quarter}")

        year_records = self.filter_year(records, year)

        if quarter is not None:
            period = self.calculate_period(self.filter_quarter(year_records, quarter), quarter)
            return FiscalSummary(year=year, quarter=quarter, period=period, quarters=[period])

        quarters = [
            self.calculate_period(self.filter_quarter(year_records, q), q)
            for q in QUARTERS
        ]
        annual = self.roll_up(quarters)

        return FiscalSummary(
            year=year,
            quarter=None,
            period=annual,
            quarters=quarters,
            model_390=self.calculate_390(year_records, annual.model_303),
            model_347=self.calculate_347(year_records),
            model_190=self.calculate_190(year_records)
        )

    # ---------- cierre de ejercicio ----------

    def year_close(self, records: Iterable[FiscalRecord], year: int) -> YearCloseStats:
        """Cifras del informe de cierre de ejercicio."""
        records = list(records)
        summary = self.aggregate(records, year)
        annual_130 = summary.period.model_130

        return YearCloseStats(
            year=year,
            record_count=len(self.filter_year(records, year)),
            income_total=annual_130.income,
            expense_total=annual_130.expenses,
            net_yield=annual_130.income - annual_130.expenses,
            vat_result=summary.period.model_303.result,
            withholding_suffered=annual_130.withholding_suffered
        )

    @staticmethod
    def available_years(records: Iterable[FiscalRecord]) -> List[int]:
        """Ejercicios con algún registro, del más reciente al más antiguo."""
        years = {r.issue_date.year for r in records if isinstance(r.issue_date, date)}
        return sorted(years, reverse=True)


# Instancia global del motor
fiscal_aggregator = FiscalAggregator()
