from fastapi import APIRouter

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.entities.registry import NEWSLETTER_SUBSCRIBERS
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import NewsletterImportRequest, NewsletterImportResponse, NewsletterToggleResponse
from campadmin.services import newsletter

router = APIRouter()


@router.post("/import", response_model=NewsletterImportResponse)
def import_newsletter_subscribers(payload: NewsletterImportRequest):
    try:
        summary = newsletter.import_emails(get_gateway(), payload.emails)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"imported": summary.imported, "failed": summary.failed, "invalid": summary.invalid}


@router.post("/{subscriber_id}/toggle", response_model=NewsletterToggleResponse)
def toggle_newsletter_subscriber(subscriber_id: str):
    gateway = get_gateway()
    try:
        subscriber = gateway.get(NEWSLETTER_SUBSCRIBERS, subscriber_id)
        changes = newsletter.toggle_active(gateway, subscriber)
    except AdminError as exc:
        raise http_error(exc) from exc
    return {"ok": True, "id": subscriber_id, **changes}
