"""Invoice form models and validation.

The form rules live on Pydantic models; callers only ever see the
ValidationSuccess / ValidationFailure variants returned by validate_invoice_form.
"""

import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)

InvoiceStatus = Literal["pending", "paid"]

CUSTOMER_ERROR = "Please select a customer."
AMOUNT_ERROR = "Please enter an amount greater than $0."
STATUS_ERROR = "Please select an invoice status."

# Largest amount accepted, so cents always fit a signed 64-bit column.
MAX_AMOUNT = Decimal("99999999.99")
CENT = Decimal("0.01")

FIELD_MESSAGES: dict[str, str] = {
    "customer_id": CUSTOMER_ERROR,
    "amount": AMOUNT_ERROR,
    "status": STATUS_ERROR,
}


class InvoiceFormInput(BaseModel):
    """Raw invoice form values, before validation.

    Every value is whatever the client submitted (usually a string), or None
    when the field was missing.
    """

    customer_id: str | None = None
    amount: str | None = None
    status: str | None = None


class InvoiceFields(BaseModel):
    """Validated fields shared by the create and update forms."""

    model_config = ConfigDict(frozen=True)

    customer_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)] = Field(
        ..., description="Customer the invoice is billed to"
    )
    amount: Decimal = Field(
        ..., gt=0, le=MAX_AMOUNT, allow_inf_nan=False, description="Amount in dollars"
    )
    status: InvoiceStatus = Field(..., description="Payment status")

    @field_validator("amount")
    @classmethod
    def whole_cents(cls, v: Decimal) -> Decimal:
        """Reject sub-cent amounts, which would not survive conversion to cents."""
        if v != v.quantize(CENT):
            raise ValueError("amount must be a whole number of cents")
        return v


class InvoiceSchema(InvoiceFields):
    """Complete invoice form, including the system-managed fields.

    ``id`` and ``date`` are never read from a submitted form; create and
    update validate against InvoiceFields only.
    """

    id: str
    date: datetime.date


class ValidationSuccess(BaseModel):
    """Validated form data."""

    success: Literal[True] = True
    data: InvoiceFields


class ValidationFailure(BaseModel):
    """Field-keyed error messages, in field declaration order."""

    success: Literal[False] = False
    errors: dict[str, list[str]]


ValidationResult = ValidationSuccess | ValidationFailure


def validate_invoice_form(form: InvoiceFormInput) -> ValidationResult:
    """Validate and coerce submitted invoice fields.

    Args:
        form: Raw form values

    Returns:
        ValidationSuccess with typed fields, or ValidationFailure listing one
        message per failing field
    """
    try:
        fields = InvoiceFields.model_validate(form.model_dump())
    except ValidationError as e:
        failed = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
        errors = {
            field: [message] for field, message in FIELD_MESSAGES.items() if field in failed
        }
        return ValidationFailure(errors=errors)

    return ValidationSuccess(data=fields)


def to_cents(amount: Decimal) -> int:
    """Convert a dollar amount to integer cents, rounding half up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a dollar amount."""
    return (Decimal(cents) / 100).quantize(CENT)
