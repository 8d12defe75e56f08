from fastapi import APIRouter, HTTPException, Query, Request, status

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.entities.registry import BANK_TRANSACTIONS
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import (
    CandidateListResponse,
    MatchRequest,
    MatchResponse,
    ReconciliationResponse,
    StatementImportResponse,
)
from campadmin.services.reconciliation import (
    import_statement,
    list_match_candidates,
    match_transaction,
    reconcile_pending,
)

router = APIRouter()


@router.post("/reconcile", response_model=ReconciliationResponse)
def reconcile_transactions():
    try:
        summary = reconcile_pending(get_gateway())
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "matched": summary.matched,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "errors": summary.errors,
    }


@router.post("/import", response_model=StatementImportResponse)
async def import_bank_statement(
    request: Request,
    filename: str = Query(..., min_length=1, max_length=200),
):
    content = await request.body()
    try:
        imported = import_statement(get_gateway(), filename, content)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "ok": True,
        "file_path": imported.file_path,
        "batch_id": imported.batch_id,
        "transactions": imported.transactions,
    }


@router.get("/{transaction_id}/candidates", response_model=CandidateListResponse)
def get_match_candidates(
    transaction_id: str,
    search: str = Query(default="", max_length=120),
):
    gateway = get_gateway()
    try:
        transaction = gateway.get(BANK_TRANSACTIONS, transaction_id)
        if transaction.status != "unmatched":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only unmatched transactions can be matched.",
            )
        candidates = list_match_candidates(gateway, transaction, search)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "items": [invoice.model_dump(mode="json") for invoice in candidates],
        "count": len(candidates),
    }


@router.post("/{transaction_id}/match", response_model=MatchResponse)
def match_bank_transaction(transaction_id: str, payload: MatchRequest):
    try:
        result = match_transaction(get_gateway(), transaction_id, payload.invoice_id)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {
        "ok": True,
        "transaction_id": transaction_id,
        "invoice_id": payload.invoice_id,
        "result": result,
    }
