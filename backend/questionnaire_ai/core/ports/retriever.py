from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List

from questionnaire_ai.core.entities import SimilarContent


class IContentRetriever(ABC):
    @abstractmethod
    async def find_similar_content(self, query: str, organization_id: str, k: int) -> List[SimilarContent]:
        """Up to ``k`` items ordered by descending similarity."""
        ...
