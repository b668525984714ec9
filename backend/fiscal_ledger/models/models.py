"""
Modelos de base de datos del gestor fiscal.

Registros fiscales (facturas emitidas y recibidas) y agenda de contactos.
La unicidad (tipo, número) la garantiza IntegrityGuard antes de escribir y,
como red, la restricción única de la tabla.
"""
from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Numeric, Text,
    Enum, UniqueConstraint
)
from sqlalchemy.sql import func
from ..db.database import Base
from ..services.contacts import Contact, ContactType
from ..services.records import FiscalRecord, RecordKind, ZERO


# Seis decimales: base en céntimos por tipo con dos decimales / 100 cabe
# exacto (1234,57 * 21,25 / 100 = 262,346125). Más decimales se redondean.
Amount = Numeric(18, 6, asdecimal=True)


class FiscalRecordModel(Base):
    """
    Registro fiscal persistido.
    Los importes se guardan tal cual llegan; no se recalculan al leer.
    """
    __tablename__ = "fiscal_records"
    __table_args__ = (
        UniqueConstraint("kind", "document_number", name="uq_fiscal_records_kind_number"),
    )

    id = Column(String(36), primary_key=True, index=True)
    kind = Column(Enum(RecordKind), nullable=False, index=True)
    document_number = Column(String(50), nullable=False, index=True)
    issue_date = Column(Date, nullable=False, index=True)
    registration_date = Column(Date)  # Solo gastos: fecha de registro contable
    supplier_number = Column(String(100))  # Solo gastos: número del proveedor

    # Contraparte (cliente o proveedor)
    counterparty_tax_id = Column(String(30), index=True)
    counterparty_name = Column(String(255))
    counterparty_address = Column(String(500))

    concept = Column(Text)
    category = Column(String(255))

    # Importes
    tax_base = Column(Amount, default=0)
    vat_rate = Column(Amount, default=0)
    vat_amount = Column(Amount, default=0)
    withholding_rate = Column(Amount, default=0)
    withholding_amount = Column(Amount, default=0)
    total_amount = Column(Amount, default=0)

    # Desglose de emitidas
    fees = Column(Amount, default=0)  # Honorarios
    taxable_expenses = Column(Amount, default=0)
    supplies = Column(Amount, default=0)  # Suplidos
    retainer = Column(Amount, default=0)  # Provisión de fondos

    deductible = Column(Boolean, default=False)

    # Clasificación libre (desglose 390 e informativa)
    income_tax_category = Column(String(255))
    expense_irpf_category = Column(String(255))
    expense_vat_category = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    AMOUNT_FIELDS = (
        'tax_base', 'vat_rate', 'vat_amount', 'withholding_rate',
        'withholding_amount', 'total_amount', 'fees', 'taxable_expenses',
        'supplies', 'retainer'
    )
    TEXT_FIELDS = (
        'supplier_number', 'counterparty_tax_id', 'counterparty_name',
        'counterparty_address', 'concept', 'category', 'income_tax_category',
        'expense_irpf_category', 'expense_vat_category'
    )

    def to_record(self) -> FiscalRecord:
        """Instantánea inmutable para el motor."""
        values = {}
        for name in self.AMOUNT_FIELDS:
            value = getattr(self, name)
            values[name] = ZERO if value is None else value
        values.update({name: getattr(self, name) or "" for name in self.TEXT_FIELDS})
        return FiscalRecord(
            id=self.id,
            kind=self.kind,
            document_number=self.document_number,
            issue_date=self.issue_date,
            registration_date=self.registration_date,
            deductible=bool(self.deductible),
            **values
        )

    def apply_record(self, record: FiscalRecord) -> None:
        """Sustituye todos los campos con los del registro (edición = reemplazo)."""
        self.kind = record.kind
        self.document_number = record.document_number
        self.issue_date = record.issue_date
        self.registration_date = record.registration_date
        self.deductible = bool(record.deductible)
        for name in self.AMOUNT_FIELDS + self.TEXT_FIELDS:
            setattr(self, name, getattr(record, name))

    @classmethod
    def from_record(cls, record: FiscalRecord) -> "FiscalRecordModel":
        model = cls(id=record.id)
        model.apply_record(record)
        return model


class ContactModel(Base):
    """
    Contacto de la agenda (cliente o proveedor).
    El identificador interno C-n / P-n es único en toda la agenda.
    """
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, index=True)
    contact_type = Column(Enum(ContactType), nullable=False, index=True)
    internal_id = Column(String(20), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    tax_id = Column(String(30), index=True)
    fiscal_address = Column(String(500))
    email = Column(String(255))
    phone = Column(String(50))
    contact_person = Column(String(255))
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    TEXT_FIELDS = (
        'internal_id', 'name', 'tax_id', 'fiscal_address', 'email',
        'phone', 'contact_person', 'notes'
    )

    def to_contact(self) -> Contact:
        return Contact(
            id=self.id,
            contact_type=self.contact_type,
            **{name: getattr(self, name) or "" for name in self.TEXT_FIELDS}
        )

    def apply_contact(self, contact: Contact) -> None:
        self.contact_type = contact.contact_type
        for name in self.TEXT_FIELDS:
            setattr(self, name, getattr(contact, name))

    @classmethod
    def from_contact(cls, contact: Contact) -> "ContactModel":
        model = cls(id=contact.id)
        model.apply_contact(contact)
        return model
