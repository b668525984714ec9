"""
Almacén de registros fiscales.

El motor nunca toca la persistencia directamente: recibe instantáneas de
list_all(). Se asume un único escritor; no hay bloqueo optimista.
"""
from typing import Iterable, List, Protocol

from sqlalchemy.orm import Session
import logging

from ..models.models import FiscalRecordModel
from .records import FiscalRecord

logger = logging.getLogger(__name__)


class RecordNotFoundError(KeyError):
    """No existe ningún registro con ese identificador."""


class RecordKindChangeError(ValueError):
    """El tipo de un registro no puede cambiar tras su creación."""


class RecordStore(Protocol):
    def list_all(self) -> List[FiscalRecord]: ...

    def get(self, record_id: str) -> FiscalRecord: ...

    def insert(self, record: FiscalRecord) -> FiscalRecord: ...

    def replace(self, record_id: str, record: FiscalRecord) -> FiscalRecord: ...

    def delete(self, record_id: str) -> None: ...

    def delete_many(self, record_ids: Iterable[str]) -> int: ...


class SQLAlchemyRecordStore:
    """
    Implementación sobre SQLAlchemy.
    Cada operación de escritura hace commit al terminar.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, record_id: str) -> FiscalRecordModel:
        model = self.db.get(FiscalRecordModel, record_id)
        if model is None:
            raise RecordNotFoundError(record_id)
        return model

    def list_all(self) -> List[FiscalRecord]:
        models = self.db.query(FiscalRecordModel).order_by(
            FiscalRecordModel.issue_date, FiscalRecordModel.created_at
        ).all()
        return [m.to_record() for m in models]

    def get(self, record_id: str) -> FiscalRecord:
        return self._get_model(record_id).to_record()

    def insert(self, record: FiscalRecord) -> FiscalRecord:
        model = FiscalRecordModel.from_record(record)
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        logger.info(f"Registro {record.kind.value} {record.document_number} creado")
        return model.to_record()

    def replace(self, record_id: str, record: FiscalRecord) -> FiscalRecord:
        model = self._get_model(record_id)
        if model.kind != record.kind:
            raise RecordKindChangeError(
                f"No se puede cambiar el tipo del registro {record_id}"
            )
        model.apply_record(record)
        self.db.commit()
        self.db.refresh(model)
        logger.info(f"Registro {record.kind.value} {record.document_number} modificado")
        return model.to_record()

    def delete(self, record_id: str) -> None:
        model = self._get_model(record_id)
        self.db.delete(model)
        self.db.commit()
        logger.info(f"Registro {record_id} eliminado")

    def delete_many(self, record_ids: Iterable[str]) -> int:
        """Borrado masivo. Los identificadores inexistentes se ignoran."""
        ids = list(record_ids)
        if not ids:
            return 0
        deleted = self.db.query(FiscalRecordModel).filter(
            FiscalRecordModel.id.in_(ids)
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"{deleted} registros eliminados")
        return deleted
