"""
Cactux Topo Backend — Record Store Tests
==========================================

What:  Tests for RecordStore.select/update against a real SQLite database.
How:   Uses the db_session / seeded_records fixtures (aiosqlite file).
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from cactux.exceptions import NotFoundError, RecordUpdateError, ValidationError
from cactux.services.record_store import RecordStore


class TestSelect:
    """Tests for listing rows."""

    @pytest.mark.asyncio
    async def test_lists_rows_ordered_by_name(self, db_session, seeded_records):
        rows = await RecordStore(db_session).select("route")
        assert [r["id"] for r in rows] == ["arete-1", "crack-2"]
        assert set(rows[0]) == {"id", "name", "grade", "image", "image_line"}

    @pytest.mark.asyncio
    async def test_selected_columns_only(self, db_session, seeded_records):
        rows = await RecordStore(db_session).select("boulder", columns=("id", "image_line"))
        assert rows == [{"id": "roof-7", "image_line": None}]

    @pytest.mark.asyncio
    async def test_unknown_table_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Unknown table"):
            await RecordStore(db_session).select("sector")

    @pytest.mark.asyncio
    async def test_unknown_column_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Unknown column"):
            await RecordStore(db_session).select("route", columns=("id", "password"))


class TestUpdate:
    """Tests for updating image fields."""

    @pytest.mark.asyncio
    async def test_updates_image_line(self, db_session, seeded_records, read_record):
        store = RecordStore(db_session)
        await store.update("route", "arete-1", {"image_line": "http://x/a.webp"})
        await db_session.commit()

        row = await read_record("route", "arete-1")
        assert row.image_line == "http://x/a.webp"
        assert row.image is None

    @pytest.mark.asyncio
    async def test_missing_record_raises_not_found(self, db_session, seeded_records):
        with pytest.raises(NotFoundError, match="nope"):
            await RecordStore(db_session).update("route", "nope", {"image": "u"})

    @pytest.mark.asyncio
    async def test_boulder_id_not_found_in_route_table(self, db_session, seeded_records):
        with pytest.raises(NotFoundError):
            await RecordStore(db_session).update("route", "roof-7", {"image": "u"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fields", [{"name": "x"}, {}, {"image": "u", "grade": "8a"}])
    async def test_only_image_fields_writable(self, db_session, fields):
        with pytest.raises(ValidationError):
            await RecordStore(db_session).update("route", "arete-1", fields)

    @pytest.mark.asyncio
    async def test_database_error_becomes_record_update_error(self):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("UPDATE", {}, Exception("locked"))
        with pytest.raises(RecordUpdateError):
            await RecordStore(session).update("route", "arete-1", {"image": "u"})
