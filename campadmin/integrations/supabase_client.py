from __future__ import annotations

import json
import logging
from collections.abc import Callable
from functools import lru_cache
from time import perf_counter
from typing import Any, TypeVar

from supabase import Client, create_client

from campadmin.core.config import settings
from campadmin.core.errors import AdminError, GatewayError, NotFoundError, ValidationError
from campadmin.observability.perf_metrics import perf_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Postgres SQLSTATEs that mean the payload itself was rejected.
_VALIDATION_SQLSTATES = {"22P02", "22003", "22007", "22001", "22023"}
_NOT_FOUND_CODES = {"PGRST116"}


def _can_connect() -> bool:
    return bool(settings.supabase_url and settings.supabase_service_role_key)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    if not _can_connect():
        raise GatewayError("Supabase integration not configured.")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def _message_from_exception(exc: Exception) -> str:
    message = getattr(exc, "message", None) or str(exc) or "Supabase request failed."
    details = getattr(exc, "details", None)
    hint = getattr(exc, "hint", None)
    parts = [str(message).strip()]
    if details:
        parts.append(f"Details: {details}")
    if hint:
        parts.append(f"Hint: {hint}")
    return " ".join(part for part in parts if part)


def translate_exception(exc: Exception) -> AdminError:
    """Map a PostgREST / transport exception onto the admin error taxonomy."""
    if isinstance(exc, AdminError):
        return exc

    code = str(getattr(exc, "code", "") or "")
    message = _message_from_exception(exc)
    details = {"code": code} if code else {}

    if code in _NOT_FOUND_CODES:
        return NotFoundError(message, details=details)
    if code.startswith("23") or code in _VALIDATION_SQLSTATES:
        return ValidationError(message, details=details)
    return GatewayError(message, details=details)


def timed_execute(metric_key: str, operation: Callable[[], T]) -> T:
    start = perf_counter()
    error_code = None
    try:
        return operation()
    except Exception as exc:  # noqa: BLE001
        translated = translate_exception(exc)
        error_code = translated.code
        if translated is not exc:
            logger.warning("Gateway call %s failed: %s", metric_key, translated.message)
            raise translated from exc
        raise
    finally:
        perf_metrics.record_gateway(metric_key, (perf_counter() - start) * 1000, error_code)


def decode_function_payload(payload: Any) -> Any:
    """Edge functions answer with raw bytes; RPCs with parsed JSON."""
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    if isinstance(payload, str):
        text = payload.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text
    return payload
