"""
Aplicación principal FastAPI del gestor fiscal para profesionales autónomos.
Libros registro de facturas emitidas y recibidas y modelos tributarios.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from .core.config import settings
from .db.database import init_db
from .api.endpoints import contacts, records, tax_models
from .api.middleware.security import (
    SecurityHeadersMiddleware,
    AuditLogMiddleware
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Crear aplicación
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## Gestor Fiscal del Profesional

    Libros registro y modelos tributarios para un profesional autónomo
    en estimación directa simplificada.

    ### Funcionalidades:
    - Alta y edición de facturas emitidas (A-aa-n) y recibidas (R-aa-n)
    - Validación de DNI, NIE y CIF
    - Agenda de clientes y proveedores (C-n / P-n)
    - Factura en PDF de cada ingreso
    - Detección de números de factura duplicados
    - Importación desde CSV o Excel y exportación a CSV o Excel
    - Cierre de ejercicio

    ### Modelos:
    - **303**: IVA trimestral
    - **390**: Resumen anual de IVA
    - **130**: Pago fraccionado de IRPF
    - **111**: Retenciones practicadas
    - **347**: Operaciones con terceros
    - **190**: Retenciones soportadas
    """,
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Agregar middleware de seguridad
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuditLogMiddleware)

# Incluir routers
app.include_router(records.router, prefix="/api/v1")
app.include_router(tax_models.router, prefix="/api/v1")
app.include_router(contacts.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    """Inicialización al arrancar la aplicación."""
    init_db()
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} iniciado")
    logger.info("Documentación disponible en /api/docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Limpieza al cerrar la aplicación."""
    logger.info("Aplicación cerrada")


@app.get("/")
async def root():
    """Endpoint raíz."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }


@app.get("/health")
async def health_check():
    """Health check para monitoreo."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }
