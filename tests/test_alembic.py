"""
test_alembic.py — Verify Alembic migration setup and structure.

Reads the migration files and env.py as text so nothing runs outside of
Alembic's runtime context and no live database is needed.

Called by: pytest
Depends on: alembic/, autoquote.models
"""

import re
from pathlib import Path

ROOT = Path(__file__).parent.parent
MIGRATION_DIR = ROOT / "alembic" / "versions"


def _migrations():
    return sorted(MIGRATION_DIR.glob("*.py"))


def _source(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def test_single_baseline_migration():
    files = _migrations()
    assert [f.name for f in files] == ["001_initial_schema.py"]
    src = _source(files[0])
    assert re.search(r'^revision(:\s*str)?\s*=\s*"001_initial"', src, re.M)
    assert re.search(r"^down_revision(:[^=]+)?=\s*None", src, re.M)


def test_baseline_uses_metadata():
    src = _source(_migrations()[0])
    assert "Base.metadata.create_all" in src
    assert "Base.metadata.drop_all" in src
    assert "from autoquote" in src


def test_env_uses_app_settings_and_metadata():
    src = _source(ROOT / "alembic" / "env.py")
    assert "settings.database_url" in src
    assert "target_metadata = Base.metadata" in src
    assert "compare_type=True" in src


def test_ini_points_at_alembic_dir():
    ini = _source(ROOT / "alembic.ini")
    assert re.search(r"^script_location\s*=\s*alembic", ini, re.M)


def test_every_table_is_in_metadata():
    from autoquote.models import Base

    expected = {
        "users",
        "companies",
        "company_users",
        "vehicles",
        "parts",
        "suppliers",
        "specializations",
        "quotations",
        "quotation_requests",
        "counter_offers",
        "purchase_orders",
        "purchase_order_items",
        "message_templates",
        "text_abbreviations",
        "whatsapp_configs",
        "workshops",
    }
    assert expected <= set(Base.metadata.tables)
