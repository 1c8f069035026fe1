"""SQLAlchemy Core engine and table definitions for the invoice dashboard.

SQLAlchemy Core (not ORM) is used: every mutation is a single
parameterized statement, so sessions and identity maps add nothing.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.shared.config import Settings

logger = logging.getLogger(__name__)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("id", Text, primary_key=True, default=lambda: str(uuid.uuid4())),
    Column("name", Text, nullable=False),
    Column("email", Text, nullable=False),
    Column("image_url", Text),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", Text, primary_key=True, default=lambda: str(uuid.uuid4())),
    Column("customer_id", Text, ForeignKey("customers.id"), nullable=False),
    Column("amount", Integer, nullable=False),  # cents
    Column("status", Text, nullable=False),  # pending | paid
    Column("date", Date, nullable=False),
)


def create_db_engine(settings: Settings) -> Engine:
    """Create the database engine.

    Foreign keys are enforced on SQLite so invoices cannot reference a
    missing customer.

    Args:
        settings: Application settings with database configuration

    Returns:
        SQLAlchemy Engine
    """
    engine = create_engine(settings.database_url, echo=settings.database_echo)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


@retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential_jitter(initial=1, max=10),
    reraise=True,
)
def init_database(engine: Engine) -> None:
    """Create the customers and invoices tables if missing.

    Retries while the database is still coming up. Idempotent.

    Args:
        engine: Engine bound to the target database
    """
    metadata.create_all(engine)
    logger.info(f"Database schema ready on {engine.url.render_as_string(hide_password=True)}")
