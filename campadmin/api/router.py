from fastapi import APIRouter

from campadmin.api.routes import (
    bank_transactions,
    cancellations,
    credit_notes,
    entities,
    inclusions,
    invoices,
    metrics,
    newsletter,
    references,
    reports,
    waiting_list,
)

router = APIRouter(prefix="/v1")
router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
router.include_router(references.router, prefix="/references", tags=["references"])
router.include_router(reports.router, prefix="/reports", tags=["reports"])
router.include_router(bank_transactions.router, prefix="/bank-transactions", tags=["bank-transactions"])
router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
router.include_router(credit_notes.router, prefix="/credit-notes", tags=["credit-notes"])
router.include_router(cancellations.router, prefix="/cancellation-requests", tags=["cancellation-requests"])
router.include_router(inclusions.router, prefix="/inclusion-requests", tags=["inclusion-requests"])
router.include_router(waiting_list.router, prefix="/waiting-list", tags=["waiting-list"])
router.include_router(newsletter.router, prefix="/newsletter-subscribers", tags=["newsletter-subscribers"])
# Generic entity routes match any slug, so they go last.
router.include_router(entities.router, tags=["entities"])
