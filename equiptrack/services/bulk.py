"""Best-effort administrative batches.

Unlike the workflow operations these are not atomic: each row is its own
transaction, failures are collected per row, and nothing is rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import EquipTrackError
from ..crud.equipment import create_equipment, update_equipment

logger = logging.getLogger(__name__)

DATABASE_ERROR = "DATABASE_ERROR"


@dataclass
class RowError:
    row: int
    id: str | None
    code: str
    message: str


@dataclass
class BulkResult:
    succeeded: int = 0
    errors: list[RowError] = field(default_factory=list)


def _run(db: Session, rows: Iterable[tuple[str | None, dict]], action) -> BulkResult:
    result = BulkResult()
    for index, (item_id, payload) in enumerate(rows, start=1):
        try:
            action(item_id, payload)
        except EquipTrackError as exc:
            db.rollback()
            result.errors.append(RowError(row=index, id=item_id, code=exc.code, message=exc.message))
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "equipment.bulk.row_failed",
                extra={"extra_data": {"row": index, "equipment_id": item_id, "error": type(exc).__name__}},
            )
            message = str(getattr(exc, "orig", None) or exc).splitlines()[0]
            result.errors.append(RowError(row=index, id=item_id, code=DATABASE_ERROR, message=message))
        else:
            result.succeeded += 1
    return result


def bulk_import(db: Session, rows: Iterable[dict[str, Any]]) -> BulkResult:
    """Create one item per row; rows that fail are reported, the rest stay."""

    rows = list(rows)
    result = _run(
        db,
        ((str(row.get("id") or "") or None, row) for row in rows),
        lambda _id, payload: create_equipment(db, payload),
    )
    logger.info(
        "equipment.bulk_import",
        extra={"extra_data": {"rows": len(rows), "succeeded": result.succeeded, "failed": len(result.errors)}},
    )
    return result


def bulk_update(db: Session, item_ids: Iterable[str], patch: dict[str, Any]) -> BulkResult:
    """Apply the same patch to every id independently."""

    ids = list(item_ids)
    result = _run(db, ((item_id, patch) for item_id in ids), lambda item_id, payload: update_equipment(db, item_id, payload))
    logger.info(
        "equipment.bulk_update",
        extra={"extra_data": {"rows": len(ids), "fields": sorted(patch), "succeeded": result.succeeded}},
    )
    return result
