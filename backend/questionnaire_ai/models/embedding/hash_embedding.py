from __future__ import annotations
from typing import List
import hashlib, re

import numpy as np

from questionnaire_ai.core.ports.embeddings import IEmbeddingModel

_TOKEN = re.compile(r"[a-z0-9]+")


class HashEmbedding(IEmbeddingModel):
    """
    Deterministic feature-hashing embedding for offline / local mode.
    Each lowercase token is hashed into a signed bucket, so texts sharing
    vocabulary land close together under cosine similarity.
    """

    def __init__(self, dim: int = 768):
        self.dim = dim

    def _bucket(self, token: str) -> tuple[int, float]:
        h = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        x = int.from_bytes(h, "little")
        return x % self.dim, (1.0 if (x >> 63) & 1 else -1.0)

    def embed(self, text: str) -> List[float]:
        vec = np.zeros(self.dim, dtype=float)
        for token in _TOKEN.findall((text or "").lower()):
            idx, sign = self._bucket(token)
            vec[idx] += sign
        n = np.linalg.norm(vec)
        return (vec / n).tolist() if n > 0 else vec.tolist()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]
