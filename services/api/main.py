"""FastAPI application for the invoice dashboard.

Serves:
- Health, readiness and Prometheus metrics endpoints
- The cached invoices listing
- Form data for the create and edit pages
- Form-encoded create, update and delete mutations

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from services.api import metrics
from services.invoices import actions
from services.invoices.actions import INVOICES_PATH, ActionResult, FormState, RedirectOutcome
from services.invoices.cache import PageCache
from services.invoices.database import create_db_engine, init_database
from services.invoices.forms import invoice_form_from_mapping, to_form_errors
from services.invoices.repository import Customer, InvoiceRepository, PersistenceError
from services.invoices.schema import InvoiceSchema, from_cents
from services.shared.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

UNMATCHED_ENDPOINT = "unmatched"

engine = create_db_engine(settings)
repository = InvoiceRepository(engine)
page_cache = PageCache()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Create the database schema before serving requests."""
    init_database(repository.engine)
    yield


app = FastAPI(
    title="Invoice Dashboard",
    description="Invoice listing and create/update/delete actions",
    version=settings.service_version,
    lifespan=lifespan,
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Label by route template so invoice ids do not create new series
    route = request.scope.get("route")
    endpoint = getattr(route, "path", UNMATCHED_ENDPOINT)

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool


class CreateFormResponse(BaseModel):
    """Data backing the create invoice form."""

    customers: list[Customer]


class EditFormResponse(BaseModel):
    """Data backing the edit invoice form. ``invoice.amount`` is in dollars."""

    invoice: InvoiceSchema
    customers: list[Customer]


def revalidate_path(path: str) -> None:
    """Invalidate a cached page and count it."""
    page_cache.invalidate(path)
    metrics.page_invalidations_total.labels(path=path).inc()


def _action_response(action: str, result: ActionResult) -> Response:
    """Turn a create/update outcome into a redirect or an error body."""
    if isinstance(result, RedirectOutcome):
        metrics.invoice_mutations_total.labels(action=action, outcome="success").inc()
        return RedirectResponse(result.target, status_code=status.HTTP_303_SEE_OTHER)

    state = result.state
    if state.errors is not None:
        metrics.invoice_mutations_total.labels(action=action, outcome="validation_error").inc()
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"errors": to_form_errors(state.errors), "message": state.message},
        )

    metrics.invoice_mutations_total.labels(action=action, outcome="database_error").inc()
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": state.message},
    )


def _load_customers() -> list[Customer]:
    try:
        return repository.list_customers()
    except PersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch customers.",
        ) from e


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint; ready once the database answers.

    Returns:
        Readiness status
    """
    return ReadinessResponse(ready=repository.ping())


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.get(INVOICES_PATH, tags=["Invoices"])
def list_invoices() -> list[dict[str, Any]]:
    """Invoices listing, served from the page cache until a mutation invalidates it.

    Raises:
        HTTPException: If the invoices cannot be read
    """
    cached = page_cache.get(INVOICES_PATH)
    if cached is not None:
        return cached

    try:
        items = repository.list_invoices()
    except PersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch invoices.",
        ) from e

    payload = [item.model_dump(mode="json") for item in items]
    page_cache.set(INVOICES_PATH, payload)
    return payload


@app.get(f"{INVOICES_PATH}/create", response_model=CreateFormResponse, tags=["Invoices"])
def create_invoice_form() -> CreateFormResponse:
    """Customers to choose from on the create form."""
    return CreateFormResponse(customers=_load_customers())


@app.post(f"{INVOICES_PATH}/create", tags=["Invoices"])
async def create_invoice(request: Request) -> Response:
    """Create an invoice from a submitted form.

    ## Responses

    - 303 redirect to the invoices listing on success
    - 422 with `errors` keyed by form field and a `message` if validation fails
    - 500 with a `message` if the database write fails
    """
    form = invoice_form_from_mapping(await request.form())
    result = await run_in_threadpool(
        actions.create_invoice,
        FormState(),
        form,
        repository=repository,
        invalidate=revalidate_path,
    )
    return _action_response("create", result)


@app.get(
    f"{INVOICES_PATH}/{{invoice_id}}/edit", response_model=EditFormResponse, tags=["Invoices"]
)
def edit_invoice_form(invoice_id: str) -> EditFormResponse:
    """Current invoice values, in form units, plus the customers list.

    Raises:
        HTTPException: 404 if the invoice does not exist
    """
    try:
        record = repository.get_invoice(invoice_id)
    except PersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch invoice.",
        ) from e

    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")

    invoice = InvoiceSchema(
        id=record.id,
        customer_id=record.customer_id,
        amount=from_cents(record.amount),
        status=record.status,
        date=record.date,
    )
    return EditFormResponse(invoice=invoice, customers=_load_customers())


@app.post(f"{INVOICES_PATH}/{{invoice_id}}/edit", tags=["Invoices"])
async def update_invoice(invoice_id: str, request: Request) -> Response:
    """Update an invoice from a submitted form.

    Responds like the create endpoint. An unknown id still redirects.
    """
    form = invoice_form_from_mapping(await request.form())
    result = await run_in_threadpool(
        actions.update_invoice,
        invoice_id,
        FormState(),
        form,
        repository=repository,
        invalidate=revalidate_path,
    )
    return _action_response("update", result)


@app.post(f"{INVOICES_PATH}/{{invoice_id}}/delete", tags=["Invoices"])
def delete_invoice(invoice_id: str) -> JSONResponse:
    """Delete an invoice.

    Returns 200 with the status message, or 500 if the database call fails.
    The client stays on (and re-fetches) the listing.
    """
    state = actions.delete_invoice(invoice_id, repository=repository, invalidate=revalidate_path)

    if state.message == actions.DELETED_MESSAGE:
        metrics.invoice_mutations_total.labels(action="delete", outcome="success").inc()
        return JSONResponse(content={"message": state.message})

    metrics.invoice_mutations_total.labels(action="delete", outcome="database_error").inc()
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": state.message},
    )
