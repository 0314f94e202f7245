# backend/questionnaire_ai/models/embedding/ollama_embedding.py
from __future__ import annotations
from typing import List
import time, logging

import numpy as np
import requests

from questionnaire_ai.core.ports.embeddings import IEmbeddingModel

logger = logging.getLogger("qa.embedding.ollama")


def _l2_normalize(vec: List[float]) -> List[float]:
    v = np.asarray(vec, dtype=float)
    n = np.linalg.norm(v)
    return (v / n).tolist() if n > 0 else v.tolist()


class EmbeddingError(RuntimeError):
    pass


class OllamaEmbedding(IEmbeddingModel):
    """
    Embedding model using Ollama's /api/embed endpoint.
    Batches inputs and retries each batch three times before giving up.
    """

    def __init__(self, host: str, model: str = "nomic-embed-text", timeout: int = 600, batch_size: int = 16):
        self.host = host.rstrip("/")
        self.model = model if ":" in model else f"{model}:latest"
        self.timeout = timeout
        self.batch_size = batch_size

    def _post(self, inputs: List[str]) -> List[List[float]]:
        url = f"{self.host}/api/embed"
        payload = {"model": self.model, "input": inputs}
        last: Exception | None = None
        for attempt in range(3):
            try:
                r = requests.post(url, json=payload, timeout=self.timeout)
                r.raise_for_status()
                embs = r.json().get("embeddings") or []
                if len(embs) != len(inputs):
                    raise ValueError(f"Embedding batch mismatch: {len(embs)} vs {len(inputs)}")
                return [_l2_normalize([float(x) for x in e]) for e in embs]
            except (requests.RequestException, ValueError) as e:
                last = e
                logger.warning(f"⚠️ Embed failed ({len(inputs)} items): {e} (Attempt {attempt + 1}/3)")
                time.sleep(2 * (attempt + 1))
        raise EmbeddingError(f"Ollama embedding failed after 3 attempts: {last}") from last

    def embed(self, text: str) -> List[float]:
        if not (text := (text or "").strip()):
            return []
        return self._post([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        clean = [(t or "").strip() for t in texts]
        idxs = [i for i, t in enumerate(clean) if t]
        out: List[List[float]] = [[] for _ in texts]
        for start in range(0, len(idxs), self.batch_size):
            sub = idxs[start:start + self.batch_size]
            for slot, vec in zip(sub, self._post([clean[i] for i in sub])):
                out[slot] = vec
        return out
