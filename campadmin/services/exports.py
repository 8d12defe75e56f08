from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from campadmin.controllers.list_view import ListViewController
from campadmin.core.errors import ValidationError
from campadmin.core.formatting import export_filename, format_date, format_datetime
from campadmin.entities.registry import EntityDefinition

logger = logging.getLogger(__name__)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def rows_to_csv(entity: EntityDefinition, rows: Iterable[Any]) -> str:
    if not entity.csv_columns:
        raise ValidationError(f"{entity.label} lists cannot be exported.")
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([column.header for column in entity.csv_columns])
    for row in rows:
        cells = []
        for column in entity.csv_columns:
            value = column.resolve(row)
            if column.formatter is not None and value is not None:
                cells.append(column.formatter(value))
            else:
                cells.append(_cell(value))
        writer.writerow(cells)
    return buffer.getvalue()


def export_list(controller: ListViewController, *, today: date | None = None) -> tuple[str, str]:
    """Serialise the rows the controller currently holds; returns ``(filename, csv_text)``."""
    entity = controller.entity
    content = rows_to_csv(entity, controller.rows)
    filename = export_filename(entity.export_prefix or entity.table, today)
    logger.info("Exported %s %s rows to %s", len(controller.rows), entity.name, filename)
    controller.notifier.success(f"Exported {len(controller.rows)} rows.")
    return filename, content
