"""
Almacén de la agenda de contactos.
Misma forma que el almacén de registros: instantáneas inmutables y commit por operación.
"""
from typing import List

from sqlalchemy.orm import Session
import logging

from ..models.models import ContactModel
from .contacts import Contact

logger = logging.getLogger(__name__)


class ContactNotFoundError(KeyError):
    """No existe ningún contacto con ese identificador."""


class SQLAlchemyContactStore:

    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, contact_id: str) -> ContactModel:
        model = self.db.get(ContactModel, contact_id)
        if model is None:
            raise ContactNotFoundError(contact_id)
        return model

    def list_all(self) -> List[Contact]:
        models = self.db.query(ContactModel).order_by(ContactModel.created_at).all()
        return [m.to_contact() for m in models]

    def get(self, contact_id: str) -> Contact:
        return self._get_model(contact_id).to_contact()

    def insert(self, contact: Contact) -> Contact:
        model = ContactModel.from_contact(contact)
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        logger.info(f"Contacto {contact.internal_id} creado")
        return model.to_contact()

    def replace(self, contact_id: str, contact: Contact) -> Contact:
        model = self._get_model(contact_id)
        model.apply_contact(contact)
        self.db.commit()
        self.db.refresh(model)
        logger.info(f"Contacto {contact.internal_id} modificado")
        return model.to_contact()

    def delete(self, contact_id: str) -> None:
        model = self._get_model(contact_id)
        self.db.delete(model)
        self.db.commit()
        logger.info(f"Contacto {contact_id} eliminado")
