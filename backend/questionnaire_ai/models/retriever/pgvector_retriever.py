# backend/questionnaire_ai/models/retriever/pgvector_retriever.py

from __future__ import annotations
from typing import List
import asyncio, logging

import psycopg
from psycopg import sql

from questionnaire_ai.core.entities import SimilarContent, SourceType
from questionnaire_ai.core.ports.embeddings import IEmbeddingModel
from questionnaire_ai.core.ports.retriever import IContentRetriever
from questionnaire_ai.db.session import DatabasePool

logger = logging.getLogger("qa.retriever.pgvector")

IVF_PROBES = 50


def to_vector_literal(vec: List[float]) -> str:
    return "[" + ",".join(f"{x:.7f}" for x in vec) + "]"


_QUERY = """
    SELECT id, source_type, source_id, content,
           policy_name, vendor_name, questionnaire_question,
           context_question, document_name, manual_answer_question,
           1 - (embedding <=> %(qv)s::vector) AS score
    FROM {table}
    WHERE organization_id = %(org)s
      AND embedding IS NOT NULL
      AND 1 - (embedding <=> %(qv)s::vector) >= %(min_sim)s
    ORDER BY embedding <=> %(qv)s::vector
    LIMIT %(k)s;
"""


def _row_to_item(row) -> SimilarContent:
    (id_, source_type, source_id, content, policy_name, vendor_name,
     questionnaire_question, context_question, document_name, manual_answer_question, score) = row
    return SimilarContent(
        id=str(id_),
        score=float(score),
        content=content,
        source_type=SourceType.parse(source_type),
        source_id=str(source_id),
        policy_name=policy_name,
        vendor_name=vendor_name,
        questionnaire_question=questionnaire_question,
        context_question=context_question,
        document_name=document_name,
        manual_answer_question=manual_answer_question,
    )


class PgVectorContentRetriever(IContentRetriever):
    """Organization-scoped cosine search over the knowledge table."""

    def __init__(self, embedder: IEmbeddingModel, table: str = "knowledge_items", min_similarity: float = 0.2):
        self.embedder = embedder
        self.table = table
        self.min_similarity = min_similarity

    def _prepare_session(self, cur: psycopg.Cursor) -> None:
        try:
            cur.execute(f"SET ivfflat.probes = {IVF_PROBES};")
        except psycopg.Error as e:
            logger.warning(f"⚠️ Could not set ivfflat.probes={IVF_PROBES}: {e}")

    def _search(self, query: str, organization_id: str, k: int) -> List[SimilarContent]:
        qv = self.embedder.embed(query)
        if not qv:
            logger.error("❌ Query embedding is empty.")
            return []

        stmt = sql.SQL(_QUERY).format(table=sql.Identifier(self.table))
        params = {
            "qv": to_vector_literal(qv),
            "org": organization_id,
            "min_sim": self.min_similarity,
            "k": k,
        }
        with DatabasePool.require().connection() as conn:
            conn.autocommit = True
            with conn.cursor() as cur:
                self._prepare_session(cur)
                cur.execute(stmt, params)
                rows = cur.fetchall()

        items = [_row_to_item(r) for r in rows]
        logger.info(
            "🔍 Retrieved %d items for org=%s; scores: %s",
            len(items), organization_id, [round(i.score, 3) for i in items],
        )
        return items

    async def find_similar_content(self, query: str, organization_id: str, k: int) -> List[SimilarContent]:
        return await asyncio.to_thread(self._search, query, organization_id, k)
