# SQLAlchemy database setup.
#
# - Local development and tests: SQLite file (jail_visitation.db) by default.
# - Production: PostgreSQL, only when DATABASE_URL is set.

import logging
import os
from pathlib import Path
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

logger = logging.getLogger(__name__)

backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
load_dotenv(dotenv_path=env_path)

env_database_url = os.getenv("DATABASE_URL", "").strip()

IS_POSTGRES = bool(env_database_url) and not env_database_url.startswith("sqlite")

if env_database_url:
    DATABASE_URL = env_database_url
else:
    DATABASE_URL = "sqlite:///./jail_visitation.db"

if IS_POSTGRES:
    logger.info("Using external PostgreSQL database")
else:
    logger.info(f"Using SQLite database: {DATABASE_URL}")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def fix_sequences():
    """
    Resets PostgreSQL serial sequences to max(id) + 1.

    Rows imported from a dump keep their ids but leave the sequence behind,
    which later shows up as "duplicate key value violates unique constraint"
    on insert. No-op on SQLite.
    """
    if not IS_POSTGRES:
        return

    logger.info("Checking PostgreSQL sequences...")

    tables_to_fix = ["pdls", "visitors", "scanned_visitors", "cells"]

    with engine.connect() as conn:
        for table in tables_to_fix:
            try:
                exists = conn.execute(
                    text(
                        "SELECT EXISTS (SELECT FROM information_schema.tables "
                        "WHERE table_name = :table)"
                    ),
                    {"table": table},
                ).scalar()
                if not exists:
                    continue

                conn.execute(text(f"""
                    SELECT setval(
                        pg_get_serial_sequence('{table}', 'id'),
                        COALESCE((SELECT MAX(id) FROM {table}), 0) + 1,
                        false
                    )
                """))
                conn.commit()
                logger.info(f"Sequence for '{table}' synchronised")
            except Exception as e:
                conn.rollback()
                logger.warning(f"Could not fix sequence for '{table}': {e}")


def get_db():
    """
    FastAPI dependency that yields a session and always closes it.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
