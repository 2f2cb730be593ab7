"""Check that the configured database is reachable and the schema exists.

Usage:
  python3 scripts/check_db_connection.py
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from autoquote.config import settings
from autoquote.database import SessionLocal


def main() -> int:
    db = SessionLocal()
    try:
        db.execute(text("SELECT id FROM suppliers LIMIT 1")).first()
    except SQLAlchemyError as e:
        logger.error(f"Database check failed for {settings.database_url.split('@')[-1]}: {e}")
        return 1
    finally:
        db.close()
    logger.info("Database connection OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
