"""
Tests para la agenda de contactos: identificadores C-n / P-n, búsqueda,
comprobaciones antes de guardar y almacén SQLAlchemy.
"""
from dataclasses import replace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fiscal_ledger.db.database import Base
from fiscal_ledger.models import models  # noqa: F401
from fiscal_ledger.services.contact_store import ContactNotFoundError, SQLAlchemyContactStore
from fiscal_ledger.services.contacts import (
    Contact,
    ContactType,
    check_contact,
    next_contact_id,
    parse_contact_id,
    search_contacts,
)
from fiscal_ledger.services.integrity_guard import IssueCode


def contact(contact_id, internal_id, contact_type=ContactType.CLIENT, name="Cliente SL", tax_id="12345678Z", **extra):
    return Contact(
        id=contact_id,
        contact_type=contact_type,
        internal_id=internal_id,
        name=name,
        tax_id=tax_id,
        **extra
    )


class TestContactIds:

    def test_empty_directory_starts_at_one(self):
        assert next_contact_id([], ContactType.CLIENT) == "C-1"
        assert next_contact_id([], ContactType.PROVIDER) == "P-1"

    def test_max_plus_one_per_type(self):
        existing = [
            contact("1", "C-1"),
            contact("2", "C-7"),
            contact("3", "P-2", ContactType.PROVIDER),
        ]
        # Los huecos no se rellenan: máximo + 1
        assert next_contact_id(existing, ContactType.CLIENT) == "C-8"
        assert next_contact_id(existing, ContactType.PROVIDER) == "P-3"

    def test_ignores_malformed_ids(self):
        existing = [
            contact("1", "C-3-B"),
            contact("2", "CX-9"),
            contact("3", "c-5"),
            contact("4", ""),
            contact("5", "P-9"),  # prefijo de proveedor en un cliente
        ]
        assert next_contact_id(existing, ContactType.CLIENT) == "C-1"

    def test_idempotent(self):
        existing = [contact("1", "C-4")]
        assert next_contact_id(existing, ContactType.CLIENT) == next_contact_id(existing, ContactType.CLIENT)

    @pytest.mark.parametrize("value,expected", [
        ("C-12", ("C", 12)),
        ("P-1", ("P", 1)),
        ("C-", None),
        ("X-1", None),
        (None, None),
    ])
    def test_parse_contact_id(self, value, expected):
        assert parse_contact_id(value) == expected


class TestSearch:

    @pytest.fixture
    def directory(self):
        return [
            contact("1", "C-10", name="Zapatería Luna", tax_id="B11111111"),
            contact("2", "C-2", name="Ana Gómez", tax_id="22222222J", email="ana@correo.es"),
            contact("3", "P-1", ContactType.PROVIDER, name="Papelería SL", tax_id="B33333333",
                    contact_person="Luis"),
        ]

    def test_natural_order(self, directory):
        assert [c.internal_id for c in search_contacts(directory)] == ["C-2", "C-10", "P-1"]

    def test_filter_by_type(self, directory):
        assert [c.internal_id for c in search_contacts(directory, contact_type=ContactType.PROVIDER)] == ["P-1"]

    @pytest.mark.parametrize("term,expected", [
        ("luna", ["C-10"]),
        ("22222222", ["C-2"]),
        ("p-1", ["P-1"]),
        ("correo.es", ["C-2"]),
        ("luis", ["P-1"]),
        ("nadie", []),
    ])
    def test_search_term(self, directory, term, expected):
        assert [c.internal_id for c in search_contacts(directory, term)] == expected


class TestCheckContact:

    def test_valid_contact(self):
        result = check_contact(contact("1", "C-1"), [])
        assert result.blocking == []
        assert result.advisory == []

    def test_missing_name_and_tax_id_block(self):
        result = check_contact(contact("1", "C-1", name="", tax_id=""), [])
        assert result.is_blocked
        assert {i.field for i in result.blocking} == {"name", "tax_id"}

    def test_invalid_tax_id_is_only_advisory(self):
        result = check_contact(contact("1", "C-1", tax_id="12345678A"), [])
        assert not result.is_blocked
        assert result.advisory[0].code == IssueCode.INVALID_CHECKSUM
        assert result.advisory[0].message == "NIF incorrecto: La letra debería ser Z"

    def test_repeated_tax_id_is_advisory(self):
        existing = [contact("1", "C-1")]
        result = check_contact(contact("2", "C-2", tax_id=" 12345678z "), existing)
        assert result.needs_confirmation
        assert result.advisory[0].code == IssueCode.DUPLICATE_TAX_ID
        assert "C-1" in result.advisory[0].message

    def test_editing_same_contact_is_not_a_duplicate(self):
        existing = [contact("1", "C-1")]
        result = check_contact(replace(existing[0], name="Nuevo Nombre"), existing)
        assert result.advisory == []


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    try:
        yield SQLAlchemyContactStore(session)
    finally:
        session.close()
        engine.dispose()


class TestSQLAlchemyContactStore:

    def test_insert_and_get(self, store):
        store.insert(contact("1", "C-1", fiscal_address="Calle Mayor 1", notes="VIP"))
        saved = store.get("1")
        assert saved.contact_type == ContactType.CLIENT
        assert saved.internal_id == "C-1"
        assert saved.fiscal_address == "Calle Mayor 1"
        assert saved.phone == ""

    def test_replace_can_change_type(self, store):
        original = store.insert(contact("1", "C-1"))
        updated = store.replace("1", replace(original, contact_type=ContactType.PROVIDER, internal_id="P-1"))
        assert updated.contact_type == ContactType.PROVIDER
        assert store.get("1").internal_id == "P-1"

    def test_delete_and_unknown_id(self, store):
        store.insert(contact("1", "C-1"))
        store.delete("1")
        assert store.list_all() == []
        with pytest.raises(ContactNotFoundError):
            store.get("1")
        with pytest.raises(ContactNotFoundError):
            store.delete("1")
