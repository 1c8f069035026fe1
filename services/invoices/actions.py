"""Create, update and delete handlers for dashboard invoices.

Each handler validates (create/update), runs one SQL statement, invalidates
the invoices listing and reports the outcome as a value. Navigation is left
to the caller.
"""

import logging
from datetime import UTC, date, datetime
from typing import Literal

from pydantic import BaseModel

from services.invoices.cache import Invalidator
from services.invoices.repository import InvoiceRepository, PersistenceError
from services.invoices.schema import (
    InvoiceFormInput,
    ValidationFailure,
    to_cents,
    validate_invoice_form,
)

logger = logging.getLogger(__name__)

INVOICES_PATH = "/dashboard/invoices"
DELETED_MESSAGE = "Deleted Invoice"


class FormState(BaseModel):
    """State returned to the invoice form.

    Attributes:
        errors: Field-keyed error messages from validation
        message: Summary message shown above the form
    """

    errors: dict[str, list[str]] | None = None
    message: str | None = None


class RedirectOutcome(BaseModel):
    """Mutation succeeded; the caller should navigate to ``target``."""

    outcome: Literal["redirect"] = "redirect"
    target: str


class ErrorOutcome(BaseModel):
    """Mutation failed; ``state`` goes back to the form."""

    outcome: Literal["error"] = "error"
    state: FormState


ActionResult = RedirectOutcome | ErrorOutcome


def create_invoice(
    prev_state: FormState,
    form: InvoiceFormInput,
    *,
    repository: InvoiceRepository,
    invalidate: Invalidator,
    today: date | None = None,
) -> ActionResult:
    """Validate the form and insert a new invoice dated today.

    Args:
        prev_state: Previous form state (unused)
        form: Submitted form values
        repository: Invoice repository
        invalidate: Cache invalidation capability
        today: Issue date override; defaults to the current UTC date

    Returns:
        RedirectOutcome to the listing on success, ErrorOutcome otherwise
    """
    validated = validate_invoice_form(form)
    if isinstance(validated, ValidationFailure):
        return ErrorOutcome(
            state=FormState(
                errors=validated.errors,
                message="Missing Fields. Failed to Create Invoice.",
            )
        )

    fields = validated.data
    amount_in_cents = to_cents(fields.amount)
    invoice_date = today or datetime.now(UTC).date()

    try:
        repository.insert_invoice(fields.customer_id, amount_in_cents, fields.status, invoice_date)
    except PersistenceError:
        return ErrorOutcome(state=FormState(message="Database Error: Failed to Create Invoice."))

    invalidate(INVOICES_PATH)
    return RedirectOutcome(target=INVOICES_PATH)


def update_invoice(
    invoice_id: str,
    prev_state: FormState,
    form: InvoiceFormInput,
    *,
    repository: InvoiceRepository,
    invalidate: Invalidator,
) -> ActionResult:
    """Validate the form and overwrite an existing invoice.

    An id that matches no row is not an error: the update changes nothing
    and still redirects.

    Args:
        invoice_id: Invoice to update
        prev_state: Previous form state (unused)
        form: Submitted form values
        repository: Invoice repository
        invalidate: Cache invalidation capability

    Returns:
        RedirectOutcome to the listing on success, ErrorOutcome otherwise
    """
    validated = validate_invoice_form(form)
    if isinstance(validated, ValidationFailure):
        return ErrorOutcome(
            state=FormState(
                errors=validated.errors,
                message="Missing Fields. Failed to Update Invoice.",
            )
        )

    fields = validated.data
    amount_in_cents = to_cents(fields.amount)

    try:
        updated = repository.update_invoice(
            invoice_id, fields.customer_id, amount_in_cents, fields.status
        )
    except PersistenceError:
        return ErrorOutcome(state=FormState(message="Database Error: Failed to Update Invoice."))

    if updated == 0:
        logger.warning(f"Update matched no invoice with id {invoice_id}")
    else:
        logger.info(f"Updated invoice {invoice_id}")

    invalidate(INVOICES_PATH)
    return RedirectOutcome(target=INVOICES_PATH)


def delete_invoice(
    invoice_id: str,
    *,
    repository: InvoiceRepository,
    invalidate: Invalidator,
) -> FormState:
    """Delete an invoice by id.

    Reports success whether or not a row matched.

    Returns:
        FormState carrying the status message
    """
    try:
        deleted = repository.delete_invoice(invoice_id)
    except PersistenceError:
        return FormState(message="Database Error: Failed to Delete Invoice")

    logger.info(f"Deleted invoice {invoice_id} ({deleted} row(s))")
    invalidate(INVOICES_PATH)
    return FormState(message=DELETED_MESSAGE)
