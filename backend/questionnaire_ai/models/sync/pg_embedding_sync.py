# backend/questionnaire_ai/models/sync/pg_embedding_sync.py
from __future__ import annotations
from typing import List, Tuple
import asyncio, hashlib, logging

from psycopg import sql

from questionnaire_ai.core.errors import EmbeddingSyncFailure
from questionnaire_ai.core.ports.embeddings import IEmbeddingModel, IEmbeddingSync
from questionnaire_ai.db.session import DatabasePool
from questionnaire_ai.models.retriever.pgvector_retriever import to_vector_literal

log = logging.getLogger("qa.sync.pgvector")


def content_hash(text: str) -> str:
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


class PgEmbeddingSync(IEmbeddingSync):
    """
    Re-embeds rows whose content changed since their last embedding.

    Each run holds a transaction-scoped advisory lock keyed on the
    organization, so concurrent callers for the same organization queue
    behind each other and the second one finds nothing stale.
    """

    def __init__(self, embedder: IEmbeddingModel, table: str = "knowledge_items", batch_size: int = 64):
        self.embedder = embedder
        self.table = table
        self.batch_size = batch_size

    def _stale_rows(self, cur, organization_id: str) -> List[Tuple[str, str]]:
        cur.execute(
            sql.SQL("""
                SELECT id, content FROM {table}
                WHERE organization_id = %s
                  AND (embedding IS NULL OR embedded_hash IS DISTINCT FROM content_hash);
            """).format(table=sql.Identifier(self.table)),
            (organization_id,),
        )
        return cur.fetchall()

    def _update_batch(self, cur, rows: List[Tuple[str, str]]) -> int:
        vectors = self.embedder.embed_batch([content for _, content in rows])
        updated = 0
        stmt = sql.SQL("""
            UPDATE {table}
               SET embedding = %s::vector,
                   embedded_hash = content_hash
             WHERE id = %s;
        """).format(table=sql.Identifier(self.table))
        for (row_id, _), vec in zip(rows, vectors):
            if not vec:
                continue
            cur.execute(stmt, (to_vector_literal(vec), row_id))
            updated += 1
        return updated

    def _sync(self, organization_id: str) -> int:
        with DatabasePool.require().connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s));", (organization_id,))
                    stale = self._stale_rows(cur, organization_id)
                    if not stale:
                        log.info(f"✅ Embeddings up to date for org={organization_id}")
                        return 0
                    total = 0
                    for start in range(0, len(stale), self.batch_size):
                        total += self._update_batch(cur, stale[start:start + self.batch_size])
        log.info(f"🔄 Re-embedded {total}/{len(stale)} rows for org={organization_id}")
        return total

    async def sync_embeddings(self, organization_id: str) -> int:
        try:
            return await asyncio.to_thread(self._sync, organization_id)
        except Exception as e:
            raise EmbeddingSyncFailure(f"Embedding sync failed for {organization_id}: {e}") from e
