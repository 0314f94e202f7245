from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import asyncio, json, logging

import numpy as np

from questionnaire_ai.core.entities import SimilarContent, SourceType
from questionnaire_ai.core.ports.embeddings import IEmbeddingModel, IEmbeddingSync
from questionnaire_ai.core.ports.retriever import IContentRetriever
from questionnaire_ai.models.sync.pg_embedding_sync import content_hash

logger = logging.getLogger("qa.store.memory")


_NAME_FIELDS = (
    "policy_name", "vendor_name", "questionnaire_question",
    "context_question", "document_name", "manual_answer_question",
)


def _pick(obj: dict, keys: List[str]) -> str:
    for k in keys:
        v = obj.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""


def _map_record(obj: dict) -> Optional[Tuple[str, SimilarContent]]:
    org = _pick(obj, ["organization_id", "organizationId", "org"])
    item_id = _pick(obj, ["id", "item_id", "uuid"])
    content = _pick(obj, ["content", "text", "body"])
    if not (org and item_id and content):
        return None
    item = SimilarContent(
        id=item_id,
        score=0.0,
        content=content,
        source_type=SourceType.parse(_pick(obj, ["source_type", "sourceType", "type"])),
        source_id=_pick(obj, ["source_id", "sourceId"]) or item_id,
        **{name: _pick(obj, [name]) or None for name in _NAME_FIELDS},
    )
    return org, item


def read_seed_records(path: str) -> List[Tuple[str, SimilarContent]]:
    """Read (organization_id, item) pairs from a JSON list or a JSONL file; unusable records are skipped."""
    p = Path(path)
    records: List[Tuple[str, SimilarContent]] = []
    with p.open("r", encoding="utf-8") as f:
        if p.suffix.lower() == ".jsonl":
            rows = []
            for n, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning(f"⚠️ Skipping bad seed line {n} in {p.name}: {e}")
        else:
            data = json.load(f)
            rows = data if isinstance(data, list) else []
    for obj in rows:
        if isinstance(obj, dict):
            mapped = _map_record(obj)
            if mapped:
                records.append(mapped)
    return records


@dataclass
class _Entry:
    item: SimilarContent
    content_hash: str
    embedded_hash: Optional[str] = None
    vector: Optional[np.ndarray] = None


@dataclass
class _OrgIndex:
    entries: Dict[str, _Entry] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class InMemoryKnowledgeStore(IContentRetriever, IEmbeddingSync):
    """
    Process-local knowledge corpus with numpy cosine search.
    Serves as both retriever and embedding sync for local runs and tests.
    """

    def __init__(self, embedder: IEmbeddingModel, min_similarity: float = 0.2):
        self.embedder = embedder
        self.min_similarity = min_similarity
        self._orgs: Dict[str, _OrgIndex] = {}

    def _org(self, organization_id: str) -> _OrgIndex:
        return self._orgs.setdefault(organization_id, _OrgIndex())

    def upsert(self, organization_id: str, item: SimilarContent) -> None:
        """Add or replace an item; it is re-embedded on the next sync if its content changed."""
        org = self._org(organization_id)
        digest = content_hash(item.content)
        prev = org.entries.get(item.id)
        if prev and prev.content_hash == digest:
            org.entries[item.id] = _Entry(item, digest, prev.embedded_hash, prev.vector)
        else:
            org.entries[item.id] = _Entry(item, digest)

    def load_seed(self, path: str) -> int:
        """Upsert every usable record of a seed file; embeddings are built on the next sync."""
        records = read_seed_records(path)
        for organization_id, item in records:
            self.upsert(organization_id, item)
        orgs = {org for org, _ in records}
        logger.info(f"📚 Loaded {len(records)} knowledge items for {len(orgs)} orgs from {path}")
        return len(records)

    async def sync_embeddings(self, organization_id: str) -> int:
        org = self._org(organization_id)
        async with org.lock:
            stale = [e for e in org.entries.values() if e.embedded_hash != e.content_hash]
            if not stale:
                return 0
            vectors = await asyncio.to_thread(self.embedder.embed_batch, [e.item.content for e in stale])
            for entry, vec in zip(stale, vectors):
                if vec:
                    entry.vector = np.asarray(vec, dtype=np.float32)
                    entry.embedded_hash = entry.content_hash
            logger.info(f"🔄 Re-embedded {len(stale)} items for org={organization_id}")
            return len(stale)

    async def find_similar_content(self, query: str, organization_id: str, k: int) -> List[SimilarContent]:
        entries = [e for e in self._org(organization_id).entries.values() if e.vector is not None]
        if not entries:
            return []
        q = np.asarray(await asyncio.to_thread(self.embedder.embed, query), dtype=np.float32)
        if not q.size:
            return []
        mat = np.vstack([e.vector for e in entries])
        norms = np.linalg.norm(mat, axis=1) * (np.linalg.norm(q) + 1e-9)
        norms[norms == 0] = 1.0
        sims = (mat @ q) / norms

        order = np.argsort(-sims)
        hits: List[SimilarContent] = []
        for i in order:
            score = float(sims[i])
            if score < self.min_similarity or len(hits) >= k:
                break
            hits.append(replace(entries[i].item, score=score))
        return hits

