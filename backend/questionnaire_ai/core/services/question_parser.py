from __future__ import annotations
from typing import Any, List

from questionnaire_ai.core.entities import QuestionAnswer
from questionnaire_ai.core.ports.generator import IStructuredGenerator
from questionnaire_ai.core.ports.logger import IPipelineLogger, NullPipelineLogger
from questionnaire_ai.core.services.prompts import (
    PARSE_SYSTEM_PROMPT,
    QA_RESPONSE_SCHEMA,
    chunk_user_prompt,
)


def _clean_answer(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    return text or None


def coerce_pairs(payload: Any) -> List[QuestionAnswer]:
    """Turn the model's ``questionsAndAnswers`` payload into QuestionAnswer rows."""
    items = (payload or {}).get("questionsAndAnswers") if isinstance(payload, dict) else None
    out: List[QuestionAnswer] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        question = item.get("question")
        if not isinstance(question, str) or not question.strip():
            continue
        out.append(QuestionAnswer(question=question.strip(), answer=_clean_answer(item.get("answer"))))
    return out


class QuestionParser:
    def __init__(self, generator: IStructuredGenerator, logger: IPipelineLogger | None = None):
        self.generator = generator
        self.log = logger or NullPipelineLogger()

    async def parse_chunk(self, chunk_text: str, chunk_index: int, total_chunks: int) -> List[QuestionAnswer]:
        # Failures propagate; the caller picks the fan-out policy.
        payload = await self.generator.generate_object(
            QA_RESPONSE_SCHEMA,
            PARSE_SYSTEM_PROMPT,
            chunk_user_prompt(chunk_text, chunk_index, total_chunks),
        )
        pairs = coerce_pairs(payload)
        self.log.info(
            "Parsed chunk",
            {"chunk": chunk_index + 1, "total": total_chunks, "pairs": len(pairs)},
        )
        return pairs
