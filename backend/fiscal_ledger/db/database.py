"""
Configuración de base de datos.
Por defecto SQLite local; admite PostgreSQL vía DATABASE_URL.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from ..core.config import settings


def build_engine(database_url: str):
    """
    Crea el motor SQLAlchemy.
    SQLite no admite pool con desbordamiento y necesita compartir hilo con FastAPI.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=settings.DEBUG
        )

    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.DEBUG
    )


engine = build_engine(settings.DATABASE_URL)

# Sesión de base de datos
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base para modelos declarativos
Base = declarative_base()


def get_db():
    """
    Dependency para obtener sesión de base de datos.
    Garantiza cierre correcto de conexión.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Inicializa las tablas de la base de datos."""
    # Registrar los modelos en Base.metadata
    from ..models import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
