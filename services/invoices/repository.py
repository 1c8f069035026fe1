"""Invoice persistence on top of SQLAlchemy Core.

Each mutation issues exactly one parameterized statement. Driver errors are
logged and re-raised as PersistenceError; nothing is retried here.
"""

import logging
import datetime

from pydantic import BaseModel
from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from services.invoices.database import customers, invoices
from services.invoices.schema import InvoiceStatus

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A database statement failed.

    Attributes:
        operation: Name of the repository operation that failed
    """

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation


class Customer(BaseModel):
    """Customer an invoice can be billed to."""

    id: str
    name: str
    email: str
    image_url: str | None = None


class InvoiceRecord(BaseModel):
    """Persisted invoice row. ``amount`` is in cents."""

    id: str
    customer_id: str
    amount: int
    status: str
    date: datetime.date


class InvoiceListItem(InvoiceRecord):
    """Invoice row joined with its customer, for the listing page."""

    name: str
    email: str


class InvoiceRepository:
    """Reads and writes the invoices table."""

    def __init__(self, engine: Engine) -> None:
        """Initialize repository.

        Args:
            engine: Engine bound to a database created by init_database
        """
        self.engine = engine

    def insert_invoice(
        self,
        customer_id: str,
        amount_cents: int,
        status: InvoiceStatus,
        invoice_date: datetime.date,
    ) -> str:
        """Insert a new invoice.

        Args:
            customer_id: Existing customer id
            amount_cents: Amount in integer cents
            status: Invoice status
            invoice_date: Issue date

        Returns:
            Generated invoice id

        Raises:
            PersistenceError: If the INSERT fails
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    insert(invoices).values(
                        customer_id=customer_id,
                        amount=amount_cents,
                        status=status,
                        date=invoice_date,
                    )
                )
        except SQLAlchemyError as e:
            logger.error(f"Error inserting invoice for customer {customer_id}: {e}")
            raise PersistenceError("insert_invoice", e) from e

        invoice_id = str(result.inserted_primary_key[0])
        logger.info(f"Inserted invoice {invoice_id} ({amount_cents} cents, {status})")
        return invoice_id

    def update_invoice(
        self, invoice_id: str, customer_id: str, amount_cents: int, status: InvoiceStatus
    ) -> int:
        """Overwrite customer, amount and status of an invoice.

        Returns:
            Number of rows updated (0 when the id does not exist)

        Raises:
            PersistenceError: If the UPDATE fails
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(invoices)
                    .where(invoices.c.id == invoice_id)
                    .values(customer_id=customer_id, amount=amount_cents, status=status)
                )
        except SQLAlchemyError as e:
            logger.error(f"Error updating invoice {invoice_id}: {e}")
            raise PersistenceError("update_invoice", e) from e

        return result.rowcount

    def delete_invoice(self, invoice_id: str) -> int:
        """Delete an invoice by id.

        Returns:
            Number of rows deleted (0 when the id does not exist)

        Raises:
            PersistenceError: If the DELETE fails
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(invoices).where(invoices.c.id == invoice_id))
        except SQLAlchemyError as e:
            logger.error(f"Error deleting invoice {invoice_id}: {e}")
            raise PersistenceError("delete_invoice", e) from e

        return result.rowcount

    def get_invoice(self, invoice_id: str) -> InvoiceRecord | None:
        """Fetch a single invoice, or None if it does not exist."""
        try:
            with self.engine.connect() as conn:
                row = (
                    conn.execute(select(invoices).where(invoices.c.id == invoice_id))
                    .mappings()
                    .first()
                )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching invoice {invoice_id}: {e}")
            raise PersistenceError("get_invoice", e) from e

        if row is None:
            return None
        return InvoiceRecord.model_validate(dict(row))

    def list_invoices(self) -> list[InvoiceListItem]:
        """List all invoices with customer details, newest first."""
        query = (
            select(
                invoices.c.id,
                invoices.c.customer_id,
                invoices.c.amount,
                invoices.c.status,
                invoices.c.date,
                customers.c.name,
                customers.c.email,
            )
            .join(customers, invoices.c.customer_id == customers.c.id)
            .order_by(invoices.c.date.desc(), invoices.c.id)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing invoices: {e}")
            raise PersistenceError("list_invoices", e) from e

        return [InvoiceListItem.model_validate(dict(row)) for row in rows]

    def list_customers(self) -> list[Customer]:
        """List customers ordered by name."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(select(customers).order_by(customers.c.name)).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing customers: {e}")
            raise PersistenceError("list_customers", e) from e

        return [Customer.model_validate(dict(row)) for row in rows]

    def insert_customer(self, name: str, email: str, image_url: str | None = None) -> str:
        """Insert a customer and return its generated id."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    insert(customers).values(name=name, email=email, image_url=image_url)
                )
        except SQLAlchemyError as e:
            logger.error(f"Error inserting customer {name}: {e}")
            raise PersistenceError("insert_customer", e) from e

        return str(result.inserted_primary_key[0])

    def ping(self) -> bool:
        """Check the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            return False
