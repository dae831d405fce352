"""
Cactux Topo Backend — Record Store
====================================

What:  The two record operations the topo app consumes: list rows and update
       fields of one row, for the `route` and `boulder` tables.
Why:   Keeps SQLAlchemy out of the persistence adapter and the routes.
How:   Thin wrapper around an AsyncSession. It flushes but never commits;
       get_db_session() commits once the request has succeeded.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import asc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cactux.exceptions import NotFoundError, RecordUpdateError, ValidationError
from cactux.models.climb import MODELS_BY_TABLE

logger = logging.getLogger(__name__)

# Columns the gallery may read and the pipeline may write
READABLE_COLUMNS = ("id", "name", "grade", "image", "image_line", "updated_at")
WRITABLE_FIELDS = frozenset({"image", "image_line"})


def _model_for(table: str):
    try:
        return MODELS_BY_TABLE[table]
    except KeyError:
        raise ValidationError(
            message=f"Unknown table '{table}'. Expected one of: {', '.join(MODELS_BY_TABLE)}",
            field="tableType",
            context={"table": table},
        )


class RecordStore:
    """Record operations bound to one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        order_by: str = "name",
    ) -> List[Dict[str, Any]]:
        """
        List rows of `table` as plain dicts.

        Raises:
            ValidationError: unknown table or column.
            RecordUpdateError: the query itself failed.
        """
        model = _model_for(table)
        wanted = list(columns or ("id", "name", "grade", "image", "image_line"))
        unknown = [c for c in wanted + [order_by] if c not in READABLE_COLUMNS]
        if unknown:
            raise ValidationError(
                message=f"Unknown column(s): {', '.join(unknown)}",
                field="columns",
                context={"columns": unknown},
            )

        query = select(*(getattr(model, c) for c in wanted)).order_by(
            asc(getattr(model, order_by))
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error("Failed to list %s rows: %s", table, e, exc_info=True)
            raise RecordUpdateError(
                message=f"Could not load {table}s. Please try again.",
                context={"table": table, "error_type": type(e).__name__},
            )
        return [dict(row._mapping) for row in result]

    async def update(self, table: str, record_id: str, fields: Dict[str, Any]) -> None:
        """
        Update `fields` on the row `record_id` of `table`.

        Raises:
            ValidationError: unknown table or a non-writable field.
            NotFoundError: no row with that id.
            RecordUpdateError: the database rejected the statement.
        """
        model = _model_for(table)
        illegal = set(fields) - WRITABLE_FIELDS
        if illegal or not fields:
            raise ValidationError(
                message=f"Fields not writable: {', '.join(sorted(illegal)) or '(none given)'}",
                field="fields",
                context={"fields": sorted(fields)},
            )

        statement = (
            update(model)
            .where(model.id == record_id)
            .values(**fields, updated_at=datetime.now(timezone.utc))
        )
        try:
            result = await self.session.execute(statement)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to update %s %s (%s): %s",
                table, record_id, ", ".join(fields), e,
                exc_info=True,
            )
            raise RecordUpdateError(
                message="The image was stored but the record could not be updated.",
                context={"table": table, "record_id": record_id, "error_type": type(e).__name__},
            )

        if result.rowcount == 0:
            raise NotFoundError(resource=table, resource_id=record_id)

        logger.info("Updated %s %s: %s", table, record_id, ", ".join(sorted(fields)))
