from fastapi import APIRouter

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import get_gateway
from campadmin.services.reconciliation import invoice_payment_summary, reconcile_invoice

router = APIRouter()


@router.get("/by-number/{invoice_number}/payment-summary")
def get_invoice_payment_summary(invoice_number: str):
    try:
        return invoice_payment_summary(get_gateway(), invoice_number)
    except AdminError as exc:
        raise http_error(exc) from exc


@router.post("/by-number/{invoice_number}/reconcile")
def reconcile_invoice_payments(invoice_number: str):
    try:
        return reconcile_invoice(get_gateway(), invoice_number)
    except AdminError as exc:
        raise http_error(exc) from exc
