"""
Cactux Topo Backend — Route & Boulder SQLAlchemy Models
=========================================================

What:  ORM models for the `route` and `boulder` tables.
Why:   The annotation pipeline reads and writes the `image` and `image_line`
       columns of these rows; the gallery UI lists them.
How:   Both tables share the same columns through `ClimbMixin`.

Table Design:
    - id: String primary key. Record ids travel in URLs and blob paths, so
      the API restricts them to [A-Za-z0-9_-].
    - image: Public URL of the base photo (nullable until uploaded)
    - image_line: Public URL of the annotated photo (nullable until saved)
    - updated_at: Touched on every image write
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TIMESTAMP

from cactux.database import Base


class ClimbMixin:
    """Columns shared by routes and boulders."""

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    grade: Mapped[Optional[str]] = mapped_column(String(16), nullable=True, default=None)

    image: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Public URL of the base photo",
    )

    image_line: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Public URL of the photo with the route line drawn on it",
    )

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id!r}, name={self.name!r})>"


class Route(ClimbMixin, Base):
    """A sport/trad route."""

    __tablename__ = "route"


class Boulder(ClimbMixin, Base):
    """A boulder problem."""

    __tablename__ = "boulder"


# Logical table name (as used by the API's tableType) → model
MODELS_BY_TABLE = {
    "route": Route,
    "boulder": Boulder,
}
