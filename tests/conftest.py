"""
Fixtures de la API: base de datos SQLite en memoria compartida por la app.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fiscal_ledger.db.database import Base, get_db
from fiscal_ledger.main import app
from fiscal_ledger.models import models  # noqa: F401


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # Sin context manager: no se ejecuta el startup (init_db sobre el fichero real)
    yield TestClient(app)
    app.dependency_overrides.clear()
    engine.dispose()
