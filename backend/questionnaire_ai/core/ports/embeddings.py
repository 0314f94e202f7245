from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List


class IEmbeddingModel(ABC):
    @abstractmethod
    def embed(self, text: str) -> List[float]:
        ...

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        ...


class IEmbeddingSync(ABC):
    @abstractmethod
    async def sync_embeddings(self, organization_id: str) -> int:
        """Bring the organization's embeddings up to date; returns rows re-embedded."""
        ...
