# backend/questionnaire_ai/db/session.py
from __future__ import annotations
import logging

from psycopg import sql
from psycopg_pool import ConnectionPool

from questionnaire_ai.db.config import settings

logger = logging.getLogger("qa.db")

_SCHEMA = """
CREATE EXTENSION IF NOT EXISTS vector;
CREATE TABLE IF NOT EXISTS {table} (
    id                      TEXT PRIMARY KEY,
    organization_id         TEXT NOT NULL,
    source_type             TEXT NOT NULL,
    source_id               TEXT NOT NULL,
    content                 TEXT NOT NULL,
    policy_name             TEXT,
    vendor_name             TEXT,
    questionnaire_question  TEXT,
    context_question        TEXT,
    document_name           TEXT,
    manual_answer_question  TEXT,
    content_hash            TEXT NOT NULL,
    embedded_hash           TEXT,
    embedding               vector({dim})
);
CREATE INDEX IF NOT EXISTS {org_index} ON {table} (organization_id);
"""


class DatabasePool:
    """Global psycopg3 connection pool."""
    pool: ConnectionPool | None = None

    @classmethod
    def init(cls):
        if cls.pool:
            logger.info("Database pool already initialized.")
            return

        masked = settings.database_url.replace(settings.db_password, "*****")
        logger.info(f"Connecting to database using DSN: {masked}")
        cls.pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=1,
            max_size=10,
            num_workers=2,
            timeout=30,
        )
        logger.info("✅ Database connection pool initialized.")

    @classmethod
    def close(cls):
        if cls.pool:
            cls.pool.close()
            cls.pool = None
            logger.info("🧹 Database pool closed.")

    @classmethod
    def require(cls) -> ConnectionPool:
        if not cls.pool:
            raise RuntimeError("Database pool not initialized")
        return cls.pool


def ensure_schema() -> None:
    """Create the knowledge table and pgvector extension if missing."""
    table = settings.knowledge_table
    stmt = sql.SQL(_SCHEMA).format(
        table=sql.Identifier(table),
        org_index=sql.Identifier(f"{table}_org_idx"),
        dim=sql.SQL(str(int(settings.embedding_dim))),
    )
    with DatabasePool.require().connection() as conn:
        conn.execute(stmt)
    logger.info(f"📐 Knowledge table '{table}' ready (dim={settings.embedding_dim}).")


def ping_db() -> tuple[bool, str]:
    """Check DB connectivity."""
    try:
        if not DatabasePool.pool:
            return False, "Pool not initialized"
        with DatabasePool.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
                return True, f"Database connection successful: {settings.db_host}:{settings.db_port}/{settings.db_name}"
    except Exception as e:
        return False, str(e)
