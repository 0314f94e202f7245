from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from questionnaire_ai.core.entities import Attachment


class ITextGenerator(ABC):
    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        attachments: Sequence[Attachment] = (),
    ) -> str:
        ...


class IStructuredGenerator(ABC):
    @abstractmethod
    async def generate_object(
        self,
        schema: Dict[str, Any],
        system_prompt: str,
        user_prompt: str,
    ) -> Dict[str, Any]:
        """Return a JSON object conforming to ``schema``."""
        ...
