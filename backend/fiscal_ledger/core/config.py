"""
Configuración central del gestor fiscal.
Los valores se cargan desde variables de entorno o desde el fichero .env.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


# Zona horaria peninsular (con horario de verano)
SPAIN_TZ = ZoneInfo("Europe/Madrid")


class Settings(BaseSettings):
    """
    Configuración de la aplicación.
    Un único profesional por instalación: su identidad se define aquí.
    """
    # Application
    APP_NAME: str = "Gestor Fiscal del Profesional"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./fiscal_ledger.db"

    # CORS
    CORS_ORIGINS: str = "*"

    # Parámetros fiscales
    IRPF_ADVANCE_RATE: Decimal = Decimal("0.20")  # Modelo 130: 20% del rendimiento neto
    THIRD_PARTY_THRESHOLD: Decimal = Decimal("3005.06")  # Modelo 347
    DEFAULT_VAT_RATE: Decimal = Decimal("21")
    DEFAULT_WITHHOLDING_RATE: Decimal = Decimal("15")

    # Datos del profesional (cabecera de informes y facturas)
    PROFESSIONAL_NAME: str = ""
    PROFESSIONAL_TITLE: str = "ABOGADO"
    PROFESSIONAL_NIF: str = ""
    PROFESSIONAL_ADDRESS: str = ""
    PROFESSIONAL_CITY: str = ""
    PROFESSIONAL_ZIP_CODE: str = ""
    PROFESSIONAL_PROVINCE: str = ""
    PROFESSIONAL_BAR_ASSOCIATION: str = ""  # Colegio profesional
    PROFESSIONAL_COLLEGIATE_NUMBER: str = ""
    PROFESSIONAL_EMAIL: Optional[str] = None
    PROFESSIONAL_PHONE: Optional[str] = None
    PROFESSIONAL_WEBSITE: Optional[str] = None
    PROFESSIONAL_IBAN: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()


def get_spain_time() -> datetime:
    """Fecha y hora actual en España peninsular."""
    return datetime.now(SPAIN_TZ)


def get_professional_profile() -> dict:
    """
    Datos del profesional para las cabeceras de los informes y las facturas.
    """
    return {
        'name': settings.PROFESSIONAL_NAME,
        'title': settings.PROFESSIONAL_TITLE,
        'nif': settings.PROFESSIONAL_NIF,
        'address': settings.PROFESSIONAL_ADDRESS,
        'city': settings.PROFESSIONAL_CITY,
        'zip_code': settings.PROFESSIONAL_ZIP_CODE,
        'province': settings.PROFESSIONAL_PROVINCE,
        'bar_association': settings.PROFESSIONAL_BAR_ASSOCIATION,
        'collegiate_number': settings.PROFESSIONAL_COLLEGIATE_NUMBER,
        'email': settings.PROFESSIONAL_EMAIL or '',
        'phone': settings.PROFESSIONAL_PHONE or '',
        'website': settings.PROFESSIONAL_WEBSITE or '',
        'iban': settings.PROFESSIONAL_IBAN or '',
    }
