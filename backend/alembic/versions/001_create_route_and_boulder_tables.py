"""Create route and boulder tables

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the `route` and `boulder` tables read by the gallery and
       written by the image endpoints.
How:   Both tables get identical columns; `image` and `image_line` hold
       public blob URLs.

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CLIMB_TABLES = ("route", "boulder")


def _create_climb_table(name: str) -> None:
    op.create_table(
        name,
        # Record ids appear in blob paths: [A-Za-z0-9_-]{1,64}
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("grade", sa.String(16), nullable=True),
        sa.Column(
            "image",
            sa.Text(),
            nullable=True,
            comment="Public URL of the base photo",
        ),
        sa.Column(
            "image_line",
            sa.Text(),
            nullable=True,
            comment="Public URL of the photo with the route line drawn on it",
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # The listing endpoint orders by name
    op.create_index(f"idx_{name}_name", name, ["name"])


def upgrade() -> None:
    for name in CLIMB_TABLES:
        _create_climb_table(name)


def downgrade() -> None:
    """Drop both tables. All route/boulder rows are lost."""
    for name in reversed(CLIMB_TABLES):
        op.drop_index(f"idx_{name}_name", table_name=name)
        op.drop_table(name)
