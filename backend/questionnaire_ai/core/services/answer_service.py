from __future__ import annotations
import time
from typing import List, Optional, Sequence, Tuple

from questionnaire_ai.core.entities import AnswerResult, QuestionAnswer, Source
from questionnaire_ai.core.errors import RetrievalOrGenerationFailure
from questionnaire_ai.core.ports.embeddings import IEmbeddingSync
from questionnaire_ai.core.ports.generator import ITextGenerator
from questionnaire_ai.core.ports.logger import IPipelineLogger, NullPipelineLogger, truncate
from questionnaire_ai.core.ports.retriever import IContentRetriever
from questionnaire_ai.core.services.fanout import FailurePolicy, fan_out
from questionnaire_ai.core.services.grounding import (
    build_context,
    deduplicate_sources,
    is_no_evidence_answer,
)
from questionnaire_ai.core.services.prompts import ANSWER_SYSTEM_PROMPT, answer_user_prompt


class AnswerService:
    """
    Retrieval-augmented answering for questionnaire items.

    The single path (``answer_question``) never raises: any retrieval or
    generation error comes back as ``success=False`` with the error text.
    The batch path (``generate_answers``) syncs embeddings once, answers
    only the unanswered items concurrently, and writes back a result only
    when it succeeded with a non-null answer.
    """

    def __init__(
        self,
        retriever: IContentRetriever,
        generator: ITextGenerator,
        embedding_sync: IEmbeddingSync,
        top_k: int = 5,
        max_concurrency: int | None = None,
        logger: IPipelineLogger | None = None,
    ):
        self.retriever = retriever
        self.generator = generator
        self.embedding_sync = embedding_sync
        self.top_k = top_k
        self.max_concurrency = max_concurrency
        self.log = logger or NullPipelineLogger()

    # ------------------------------------------------------
    # 🔄 Embedding refresh (never fatal)
    # ------------------------------------------------------
    async def _sync(self, organization_id: str) -> None:
        try:
            await self.embedding_sync.sync_embeddings(organization_id)
        except Exception as e:
            self.log.warning(
                "Embedding sync failed; answering against existing index",
                {"organization_id": organization_id, "error": str(e)},
            )

    # ------------------------------------------------------
    # 🧠 Retrieval + generation core
    # ------------------------------------------------------
    async def _retrieve_and_generate(
        self, question: str, organization_id: str
    ) -> Tuple[Optional[str], Tuple[Source, ...]]:
        items = await self.retriever.find_similar_content(question, organization_id, self.top_k)
        if not items:
            self.log.info("No similar content found", {"question": truncate(question)})
            return None, ()

        sources = tuple(deduplicate_sources(items))
        text = await self.generator.generate_text(
            answer_user_prompt(question, build_context(items)),
            system_prompt=ANSWER_SYSTEM_PROMPT,
        )
        answer = (text or "").strip()

        if not answer or is_no_evidence_answer(answer):
            self.log.info("Model reported no evidence", {"question": truncate(question)})
            return None, ()

        if not sources:
            self.log.warning(
                "Answer produced without any grounding source",
                {"question": truncate(question), "hits": len(items)},
            )
        return answer, sources

    async def answer_question(
        self,
        question: str,
        organization_id: str,
        question_index: int = 0,
        skip_sync: bool = False,
    ) -> AnswerResult:
        if not skip_sync:
            await self._sync(organization_id)

        try:
            answer, sources = await self._retrieve_and_generate(question, organization_id)
        except Exception as e:
            failure = RetrievalOrGenerationFailure(str(e) or e.__class__.__name__)
            self.log.error(
                "Failed to answer question",
                {"question_index": question_index, "question": truncate(question), "error": str(failure)},
            )
            return AnswerResult(
                question_index=question_index,
                question=question,
                answer=None,
                sources=(),
                success=False,
                error=str(failure),
            )

        return AnswerResult(
            question_index=question_index,
            question=question,
            answer=answer,
            sources=sources,
            success=True,
        )

    # ------------------------------------------------------
    # 📦 Batch
    # ------------------------------------------------------
    async def generate_answers(
        self, questions: Sequence[QuestionAnswer], organization_id: str
    ) -> List[QuestionAnswer]:
        started = time.monotonic()
        results = list(questions)
        pending = [(i, qa) for i, qa in enumerate(results) if not qa.is_answered]
        if not pending:
            return results

        self.log.info(
            f"Generating answers for {len(pending)} of {len(results)} questions",
            {"organization_id": organization_id},
        )
        await self._sync(organization_id)

        async def _answer(_: int, entry: Tuple[int, QuestionAnswer]) -> AnswerResult:
            index, qa = entry
            return await self.answer_question(qa.question, organization_id, index, skip_sync=True)

        outcomes = await fan_out(pending, _answer, FailurePolicy.COLLECT_ALL, self.max_concurrency)

        answered = 0
        for (index, qa), outcome in zip(pending, outcomes):
            if not outcome.ok:
                self.log.error(
                    "Answer task crashed",
                    {"question_index": index, "error": str(outcome.error)},
                )
                continue
            res = outcome.value
            if res.success and res.answer is not None:
                results[index] = QuestionAnswer(question=qa.question, answer=res.answer, sources=res.sources)
                answered += 1

        self.log.info(
            f"Batch answer generation completed: {answered}/{len(pending)} answered "
            f"in {int((time.monotonic() - started) * 1000)}ms",
            {"organization_id": organization_id},
        )
        return results
