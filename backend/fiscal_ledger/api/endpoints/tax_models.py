"""
Endpoints de modelos tributarios.
Resumen 303/390/130/111/347/190, descargas en PDF y Excel, y cierre de ejercicio.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ...core.config import settings, get_professional_profile
from ...schemas.schemas import AvailableYearsResponse, FiscalSummaryResponse, YearCloseResponse
from ...services import numbering
from ...services.fiscal_aggregator import FiscalAggregator
from ...services.pdf_generator import REPORT_MODELS, TaxReportPDFGenerator
from ...services.export_service import summary_to_xlsx
from ...services.record_store import SQLAlchemyRecordStore
from ...services.records import RecordKind
from .records import check_year, get_store, XLSX_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tax-models", tags=["Modelos Tributarios"])


def get_aggregator() -> FiscalAggregator:
    """Dependency: motor con los parámetros fiscales de la configuración."""
    return FiscalAggregator(
        irpf_advance_rate=settings.IRPF_ADVANCE_RATE,
        third_party_threshold=settings.THIRD_PARTY_THRESHOLD
    )


def attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/years", response_model=AvailableYearsResponse)
async def list_years(
    store: SQLAlchemyRecordStore = Depends(get_store),
    aggregator: FiscalAggregator = Depends(get_aggregator)
):
    """Ejercicios con algún registro, del más reciente al más antiguo."""
    return AvailableYearsResponse(years=aggregator.available_years(store.list_all()))


@router.get("/{year}", response_model=FiscalSummaryResponse)
async def get_summary(
    year: int,
    quarter: Optional[int] = Query(None, ge=1, le=4),
    store: SQLAlchemyRecordStore = Depends(get_store),
    aggregator: FiscalAggregator = Depends(get_aggregator)
):
    """
    Resumen fiscal del ejercicio.
    Con trimestre: solo los modelos periódicos (303, 130, 111) de ese trimestre.
    Sin trimestre: los cuatro trimestres, el anual y los modelos 390, 347 y 190.
    """
    check_year(year)
    summary = aggregator.aggregate(store.list_all(), year, quarter)
    return FiscalSummaryResponse.model_validate(summary)


@router.get("/{year}/pdf")
async def download_summary_pdf(
    year: int,
    model: str = Query("ALL"),
    store: SQLAlchemyRecordStore = Depends(get_store),
    aggregator: FiscalAggregator = Depends(get_aggregator)
):
    """Informe PDF de todos los modelos o de uno solo (?model=303)."""
    check_year(year)
    model = model.upper()
    if model not in REPORT_MODELS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Modelo no disponible: {model}"
        )

    summary = aggregator.aggregate(store.list_all(), year)
    generator = TaxReportPDFGenerator(profile=get_professional_profile())
    content = generator.generate_tax_models_report(summary, model=model)

    logger.info(f"Informe PDF del modelo {model} generado para {year}")
    suffix = "" if model == "ALL" else f"_{model}"
    return attachment(content, "application/pdf", f"modelos{suffix}_{year}.pdf")


@router.get("/{year}/xlsx")
async def download_summary_xlsx(
    year: int,
    store: SQLAlchemyRecordStore = Depends(get_store),
    aggregator: FiscalAggregator = Depends(get_aggregator)
):
    check_year(year)
    summary = aggregator.aggregate(store.list_all(), year)
    return attachment(summary_to_xlsx(summary), XLSX_MEDIA_TYPE, f"modelos_{year}.xlsx")


@router.get("/{year}/close", response_model=YearCloseResponse)
async def get_year_close(
    year: int,
    store: SQLAlchemyRecordStore = Depends(get_store),
    aggregator: FiscalAggregator = Depends(get_aggregator)
):
    """
    Cifras del cierre de ejercicio.
    Incluye los primeros números del ejercicio siguiente, que empiezan de
    nuevo en 1 sin necesidad de ninguna acción.
    """
    check_year(year)
    records = store.list_all()
    stats = aggregator.year_close(records, year)
    return YearCloseResponse(
        year=stats.year,
        record_count=stats.record_count,
        income_total=stats.income_total,
        expense_total=stats.expense_total,
        net_yield=stats.net_yield,
        vat_result=stats.vat_result,
        withholding_suffered=stats.withholding_suffered,
        next_income_number=numbering.next_number(records, RecordKind.INCOME, year + 1),
        next_expense_number=numbering.next_number(records, RecordKind.EXPENSE, year + 1)
    )


@router.get("/{year}/close/pdf")
async def download_year_close_pdf(
    year: int,
    store: SQLAlchemyRecordStore = Depends(get_store),
    aggregator: FiscalAggregator = Depends(get_aggregator)
):
    check_year(year)
    records = store.list_all()
    stats = aggregator.year_close(records, year)
    summary = aggregator.aggregate(records, year)

    generator = TaxReportPDFGenerator(profile=get_professional_profile())
    content = generator.generate_year_close_report(stats, summary)

    logger.info(f"Informe de cierre del ejercicio {year} generado")
    return attachment(content, "application/pdf", f"cierre_{year}.pdf")
