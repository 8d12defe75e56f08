from fastapi import APIRouter, Query

from campadmin.api.errors import http_error
from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import get_gateway
from campadmin.schemas.common import ReportFiltersResponse
from campadmin.services import reports

router = APIRouter()


@router.get("/financial")
def get_financial_dashboard(
    periode: str | None = Query(default=None, max_length=40),
    center_id: str | None = Query(default=None),
    semaine: str | None = Query(default=None, max_length=10),
):
    try:
        return reports.financial_dashboard(get_gateway(), periode=periode, center_id=center_id, semaine=semaine)
    except AdminError as exc:
        raise http_error(exc) from exc


@router.get("/filters", response_model=ReportFiltersResponse)
def get_report_filters():
    return reports.available_filters(get_gateway())
