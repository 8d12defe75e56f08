from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from campadmin.core.errors import AdminError
from campadmin.integrations.gateway import Gateway, ensure_procedure_success

logger = logging.getLogger(__name__)

DASHBOARD_PROCEDURE = "get_financial_dashboard_data"

_FILTER_PROCEDURES = {
    "periodes": "get_available_periodes",
    "centers": "get_available_centers",
    "semaines": "get_available_semaines",
}


class ReportFilters(BaseModel):
    periodes: list[Any] = Field(default_factory=list)
    centers: list[Any] = Field(default_factory=list)
    semaines: list[Any] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)


def financial_dashboard(
    gateway: Gateway,
    *,
    periode: str | None = None,
    center_id: str | None = None,
    semaine: str | None = None,
) -> dict[str, Any]:
    result = gateway.invoke(
        DASHBOARD_PROCEDURE,
        {
            "p_periode": periode or None,
            "p_center_id": center_id or None,
            "p_semaine": semaine or None,
        },
    )
    return ensure_procedure_success(result, DASHBOARD_PROCEDURE)


def available_filters(gateway: Gateway) -> ReportFilters:
    """Load each filter list independently; one failing list does not hide the others."""
    filters = ReportFilters()
    for key, procedure in _FILTER_PROCEDURES.items():
        try:
            result = ensure_procedure_success(gateway.invoke(procedure), procedure)
        except AdminError as exc:
            logger.warning("Loading report filter %s failed: %s", key, exc.message)
            filters.errors[key] = exc.message
            continue
        values = result.get(key) if isinstance(result, dict) else result
        setattr(filters, key, list(values or []))
    return filters
