"""initial schema - users, vehicles, suppliers, quotation lifecycle, settings

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

For databases created by the startup schema sync: `alembic stamp 001_initial`.
For new databases: `alembic upgrade head`.
"""
from typing import Sequence, Union

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table from the ORM models (checkfirst, idempotent)."""
    from autoquote.database import engine
    from autoquote.models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)


def downgrade() -> None:
    """Drop every table. Development databases only."""
    from autoquote.database import engine
    from autoquote.models import Base

    Base.metadata.drop_all(bind=engine)
