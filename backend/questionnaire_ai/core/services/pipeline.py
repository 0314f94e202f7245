from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from questionnaire_ai.core.entities import Chunk, ChunkFailure, ChunkingOptions, QuestionAnswer
from questionnaire_ai.core.ports.logger import IPipelineLogger, NullPipelineLogger
from questionnaire_ai.core.services.chunker import (
    DEFAULT_QUESTION_RULES,
    QuestionRule,
    build_question_aware_chunks,
)
from questionnaire_ai.core.services.content_extractor import ContentExtractor
from questionnaire_ai.core.services.fanout import FailurePolicy, fan_out
from questionnaire_ai.core.services.question_parser import QuestionParser


def normalize_question(question: str) -> str:
    return " ".join(question.split()).lower()


def merge(chunk_results: Sequence[Sequence[QuestionAnswer]]) -> List[QuestionAnswer]:
    """First-seen-wins merge of per-chunk results, keyed on normalized question text."""
    seen: Dict[str, QuestionAnswer] = {}
    for pairs in chunk_results:
        for qa in pairs:
            key = normalize_question(qa.question)
            if key not in seen:
                seen[key] = qa
    return list(seen.values())


@dataclass(frozen=True)
class PipelineOutput:
    questions_and_answers: List[QuestionAnswer]
    chunk_count: int
    chunk_failures: List[ChunkFailure] = field(default_factory=list)


class QuestionnairePipeline:
    """
    Document → QA list: extract, chunk, parse every chunk concurrently, merge.

    ``chunk_policy`` controls what a failed chunk does. FAIL_FAST aborts the
    whole parse with the first error; COLLECT_ALL keeps the chunks that
    succeeded and reports the rest as ``ChunkFailure`` entries.
    """

    def __init__(
        self,
        extractor: ContentExtractor,
        parser: QuestionParser,
        options: ChunkingOptions | None = None,
        rules: Sequence[QuestionRule] = DEFAULT_QUESTION_RULES,
        chunk_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        max_concurrency: int | None = None,
        logger: IPipelineLogger | None = None,
    ):
        self.extractor = extractor
        self.parser = parser
        self.options = options or ChunkingOptions()
        self.rules = tuple(rules)
        self.chunk_policy = chunk_policy
        self.max_concurrency = max_concurrency
        self.log = logger or NullPipelineLogger()

    # ------------------------------------------------------
    # The four steps
    # ------------------------------------------------------
    async def extract(self, data: bytes, media_type: str) -> str:
        return await self.extractor.extract(data, media_type)

    def chunk(self, text: str) -> List[Chunk]:
        return build_question_aware_chunks(text, self.options, self.rules)

    async def parse_chunk(self, chunk_text: str, chunk_index: int, total_chunks: int) -> List[QuestionAnswer]:
        return await self.parser.parse_chunk(chunk_text, chunk_index, total_chunks)

    @staticmethod
    def merge(chunk_results: Sequence[Sequence[QuestionAnswer]]) -> List[QuestionAnswer]:
        return merge(chunk_results)

    # ------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------
    async def run(self, data: bytes, media_type: str) -> PipelineOutput:
        started = time.monotonic()
        text = await self.extract(data, media_type)
        chunks = self.chunk(text)
        total = len(chunks)
        self.log.info("Chunked content", {"chars": len(text), "chunks": total})

        if not chunks:
            return PipelineOutput(questions_and_answers=[], chunk_count=0)

        async def _parse(i: int, chunk: Chunk) -> List[QuestionAnswer]:
            return await self.parse_chunk(chunk.content, i, total)

        outcomes = await fan_out(chunks, _parse, self.chunk_policy, self.max_concurrency)

        results: List[List[QuestionAnswer]] = []
        failures: List[ChunkFailure] = []
        for i, outcome in enumerate(outcomes):
            if outcome.ok:
                results.append(outcome.value or [])
            else:
                failures.append(ChunkFailure(chunk_index=i, error=str(outcome.error)))
                self.log.error("Chunk parse failed", {"chunk": i + 1, "error": str(outcome.error)})

        merged = self.merge(results) if results else []
        self.log.info(
            "Parsed questionnaire",
            {
                "questions": len(merged),
                "chunks": total,
                "failed_chunks": len(failures),
                "ms": int((time.monotonic() - started) * 1000),
            },
        )
        return PipelineOutput(questions_and_answers=merged, chunk_count=total, chunk_failures=failures)
