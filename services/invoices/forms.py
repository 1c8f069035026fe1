"""Adapter between submitted form fields and the typed invoice form.

This is the only module that knows the names the dashboard's HTML form
uses for its inputs.
"""

from collections.abc import Mapping
from typing import Any

from services.invoices.schema import InvoiceFormInput

# typed field name -> submitted form field name
FORM_FIELDS: dict[str, str] = {
    "customer_id": "customerId",
    "amount": "amount",
    "status": "status",
}


def invoice_form_from_mapping(form_data: Mapping[str, Any]) -> InvoiceFormInput:
    """Build the typed form from submitted key/value pairs.

    Non-string values (e.g. file uploads) are treated as missing.

    Args:
        form_data: Submitted form fields

    Returns:
        InvoiceFormInput ready for validation
    """
    values: dict[str, str | None] = {}
    for field, form_name in FORM_FIELDS.items():
        value = form_data.get(form_name)
        values[field] = value if isinstance(value, str) else None
    return InvoiceFormInput(**values)


def to_form_errors(errors: dict[str, list[str]]) -> dict[str, list[str]]:
    """Re-key field errors by submitted form field name."""
    return {FORM_FIELDS.get(field, field): messages for field, messages in errors.items()}
