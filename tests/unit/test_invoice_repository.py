"""Unit tests for InvoiceRepository against a temporary SQLite database."""

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from services.invoices.database import create_db_engine, init_database, invoices
from services.invoices.repository import InvoiceRepository, PersistenceError
from services.shared.config import Settings


@pytest.fixture
def repository(tmp_path: Path) -> InvoiceRepository:
    """Create a repository bound to a fresh database."""
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'invoices.db'}")
    engine = create_db_engine(settings)
    init_database(engine)
    return InvoiceRepository(engine)


@pytest.fixture
def customer_id(repository: InvoiceRepository) -> str:
    """Insert a customer to bill."""
    return repository.insert_customer("Delba de Oliveira", "delba@oliveira.com")


def _rows(repository: InvoiceRepository) -> list[dict]:
    with repository.engine.connect() as conn:
        return [row._asdict() for row in conn.execute(select(invoices)).all()]


class TestInsertInvoice:
    """Test invoice inserts."""

    def test_insert_persists_row(self, repository: InvoiceRepository, customer_id: str) -> None:
        """Should insert one row with the given values."""
        invoice_id = repository.insert_invoice(customer_id, 1050, "paid", date(2024, 1, 15))

        rows = _rows(repository)
        assert len(rows) == 1
        assert rows[0] == {
            "id": invoice_id,
            "customer_id": customer_id,
            "amount": 1050,
            "status": "paid",
            "date": date(2024, 1, 15),
        }

    def test_insert_unknown_customer_raises(self, repository: InvoiceRepository) -> None:
        """Should reject an invoice for a customer that does not exist."""
        with pytest.raises(PersistenceError) as exc_info:
            repository.insert_invoice("no-such-customer", 100, "pending", date(2024, 1, 1))

        assert exc_info.value.operation == "insert_invoice"
        assert _rows(repository) == []


class TestUpdateInvoice:
    """Test invoice updates."""

    def test_update_overwrites_fields(
        self, repository: InvoiceRepository, customer_id: str
    ) -> None:
        """Should overwrite customer, amount and status but keep the date."""
        other_id = repository.insert_customer("Lee Robinson", "lee@robinson.com")
        invoice_id = repository.insert_invoice(customer_id, 100, "pending", date(2024, 1, 1))

        updated = repository.update_invoice(invoice_id, other_id, 500, "paid")

        assert updated == 1
        record = repository.get_invoice(invoice_id)
        assert record is not None
        assert record.customer_id == other_id
        assert record.amount == 500
        assert record.status == "paid"
        assert record.date == date(2024, 1, 1)

    def test_update_unknown_id_changes_nothing(
        self, repository: InvoiceRepository, customer_id: str
    ) -> None:
        """Should report zero affected rows for an unknown id."""
        repository.insert_invoice(customer_id, 100, "pending", date(2024, 1, 1))
        before = _rows(repository)

        assert repository.update_invoice("missing", customer_id, 999, "paid") == 0
        assert _rows(repository) == before


class TestDeleteInvoice:
    """Test invoice deletes."""

    def test_delete_removes_only_target(
        self, repository: InvoiceRepository, customer_id: str
    ) -> None:
        """Should remove exactly the matching row."""
        keep = repository.insert_invoice(customer_id, 100, "pending", date(2024, 1, 1))
        drop = repository.insert_invoice(customer_id, 200, "paid", date(2024, 1, 2))

        assert repository.delete_invoice(drop) == 1
        assert [row["id"] for row in _rows(repository)] == [keep]

    def test_delete_unknown_id(self, repository: InvoiceRepository) -> None:
        """Should report zero affected rows for an unknown id."""
        assert repository.delete_invoice("missing") == 0


class TestReads:
    """Test listing and lookup queries."""

    def test_get_invoice_missing(self, repository: InvoiceRepository) -> None:
        """Should return None for an unknown id."""
        assert repository.get_invoice("missing") is None

    def test_list_invoices_joins_customer_newest_first(
        self, repository: InvoiceRepository, customer_id: str
    ) -> None:
        """Should include customer details and order by date descending."""
        older = repository.insert_invoice(customer_id, 100, "pending", date(2024, 1, 1))
        newer = repository.insert_invoice(customer_id, 200, "paid", date(2024, 2, 1))

        items = repository.list_invoices()

        assert [item.id for item in items] == [newer, older]
        assert items[0].name == "Delba de Oliveira"
        assert items[0].email == "delba@oliveira.com"
        assert items[0].amount == 200

    def test_list_customers_sorted_by_name(self, repository: InvoiceRepository) -> None:
        """Should list customers alphabetically."""
        repository.insert_customer("Michael Novotny", "michael@novotny.com")
        repository.insert_customer("Amy Burns", "amy@burns.com")

        names = [customer.name for customer in repository.list_customers()]

        assert names == ["Amy Burns", "Michael Novotny"]

    def test_ping(self, repository: InvoiceRepository) -> None:
        """Should answer when the database is reachable."""
        assert repository.ping() is True


class TestDatabaseErrors:
    """Test driver errors are wrapped."""

    @pytest.fixture
    def broken_repository(self) -> InvoiceRepository:
        """Repository whose engine cannot connect."""
        engine = MagicMock()
        error = OperationalError("SELECT 1", {}, Exception("database is locked"))
        engine.begin.side_effect = error
        engine.connect.side_effect = error
        return InvoiceRepository(engine)

    def test_update_wraps_error(self, broken_repository: InvoiceRepository) -> None:
        """Should raise PersistenceError naming the operation."""
        with pytest.raises(PersistenceError) as exc_info:
            broken_repository.update_invoice("inv-1", "cust-1", 100, "paid")

        assert exc_info.value.operation == "update_invoice"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_delete_wraps_error(self, broken_repository: InvoiceRepository) -> None:
        """Should raise PersistenceError on delete failure."""
        with pytest.raises(PersistenceError):
            broken_repository.delete_invoice("inv-1")

    def test_ping_reports_failure(self, broken_repository: InvoiceRepository) -> None:
        """Should return False instead of raising."""
        assert broken_repository.ping() is False


def test_init_database_is_idempotent(tmp_path: Path) -> None:
    """Test that creating the schema twice is harmless."""
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'twice.db'}")
    engine = create_db_engine(settings)

    init_database(engine)
    init_database(engine)

    repository = InvoiceRepository(engine)
    assert repository.list_invoices() == []
