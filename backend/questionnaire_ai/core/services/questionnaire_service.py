from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence

from questionnaire_ai.core.entities import (
    AnswerResult,
    ExportFile,
    ParsedResult,
    QuestionAnswer,
    QuestionnaireFile,
)
from questionnaire_ai.core.ports.logger import IPipelineLogger, NullPipelineLogger
from questionnaire_ai.core.services.answer_service import AnswerService
from questionnaire_ai.core.services.export_service import ExportService
from questionnaire_ai.core.services.pipeline import QuestionnairePipeline

DEFAULT_VENDOR = "questionnaire"


@dataclass(frozen=True)
class AutoAnswerResult:
    parsed: ParsedResult
    questions_and_answers: List[QuestionAnswer]
    export: ExportFile


class QuestionnaireService:
    """Entry points used by the HTTP layer: parse, answer, render."""

    def __init__(
        self,
        pipeline: QuestionnairePipeline,
        answers: AnswerService,
        exports: ExportService,
        logger: IPipelineLogger | None = None,
    ):
        self.pipeline = pipeline
        self.answers = answers
        self.exports = exports
        self.log = logger or NullPipelineLogger()

    async def parse(self, file: QuestionnaireFile) -> ParsedResult:
        out = await self.pipeline.run(file.data, file.media_type)
        vendor = file.vendor_name or file.file_name or DEFAULT_VENDOR
        return ParsedResult(
            vendor_name=vendor,
            file_name=file.file_name,
            total_questions=len(out.questions_and_answers),
            questions_and_answers=out.questions_and_answers,
            chunk_failures=out.chunk_failures,
        )

    async def generate_answers(
        self, questions: Sequence[QuestionAnswer], organization_id: str
    ) -> List[QuestionAnswer]:
        return await self.answers.generate_answers(questions, organization_id)

    async def answer_single_question(
        self,
        question: str,
        organization_id: str,
        question_index: int = 0,
        skip_sync: bool = False,
    ) -> AnswerResult:
        return await self.answers.answer_question(question, organization_id, question_index, skip_sync)

    def render(self, questions: Sequence[QuestionAnswer], fmt: str, vendor_name: str | None = None) -> ExportFile:
        return self.exports.render(questions, fmt, vendor_name)

    async def auto_answer_and_export(
        self,
        file: QuestionnaireFile,
        organization_id: str,
        fmt: str = "xlsx",
        export_all: bool = False,
    ) -> AutoAnswerResult:
        parsed = await self.parse(file)
        answered = await self.generate_answers(parsed.questions_and_answers, organization_id)
        if export_all:
            export = self.exports.render_all(answered, parsed.vendor_name)
        else:
            export = self.exports.render(answered, fmt, parsed.vendor_name)
        self.log.info(
            "Auto-answer export ready",
            {
                "questions": len(answered),
                "answered": sum(1 for qa in answered if qa.is_answered),
                "filename": export.filename,
            },
        )
        return AutoAnswerResult(parsed=parsed, questions_and_answers=answered, export=export)

