from __future__ import annotations
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from questionnaire_ai.core.entities import (
    AnswerResult,
    ParsedResult,
    QuestionAnswer,
    Source,
    SourceType,
)

ExportFormat = Literal["xlsx", "csv", "pdf"]


class SourceModel(BaseModel):
    source_type: SourceType
    source_id: str
    score: float
    source_name: Optional[str] = None

    @classmethod
    def from_entity(cls, s: Source) -> "SourceModel":
        return cls(source_type=s.source_type, source_id=s.source_id, score=s.score, source_name=s.source_name)

    def to_entity(self) -> Source:
        return Source(self.source_type, self.source_id, self.score, self.source_name)


class QuestionAnswerModel(BaseModel):
    question: str = Field(..., min_length=1)
    answer: Optional[str] = None
    sources: List[SourceModel] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, qa: QuestionAnswer) -> "QuestionAnswerModel":
        return cls(
            question=qa.question,
            answer=qa.answer,
            sources=[SourceModel.from_entity(s) for s in qa.sources],
        )

    def to_entity(self) -> QuestionAnswer:
        # Sources without an answer are dropped.
        sources = tuple(s.to_entity() for s in self.sources) if self.answer is not None else ()
        return QuestionAnswer(question=self.question, answer=self.answer, sources=sources)


class FilePayload(BaseModel):
    file_data: str = Field(..., description="Base64-encoded file content")
    file_type: str = Field(..., description="Declared media type, e.g. application/pdf")
    file_name: str = ""
    vendor_name: str = ""


class ChunkFailureModel(BaseModel):
    chunk_index: int
    error: str


class ParseResponse(BaseModel):
    vendor_name: str
    file_name: str
    total_questions: int
    questions_and_answers: List[QuestionAnswerModel]
    chunk_failures: List[ChunkFailureModel] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, r: ParsedResult) -> "ParseResponse":
        return cls(
            vendor_name=r.vendor_name,
            file_name=r.file_name,
            total_questions=r.total_questions,
            questions_and_answers=[QuestionAnswerModel.from_entity(qa) for qa in r.questions_and_answers],
            chunk_failures=[ChunkFailureModel(chunk_index=f.chunk_index, error=f.error) for f in r.chunk_failures],
        )


class AnswersRequest(BaseModel):
    organization_id: str = Field(..., min_length=1)
    questions_and_answers: List[QuestionAnswerModel]


class AnswersResponse(BaseModel):
    questions_and_answers: List[QuestionAnswerModel]


class SingleAnswerRequest(BaseModel):
    organization_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    question_index: int = Field(default=0, ge=0)
    skip_sync: bool = False


class AnswerResultModel(BaseModel):
    question_index: int
    question: str
    answer: Optional[str]
    sources: List[SourceModel]
    success: bool
    error: Optional[str] = None

    @classmethod
    def from_entity(cls, r: AnswerResult) -> "AnswerResultModel":
        return cls(
            question_index=r.question_index,
            question=r.question,
            answer=r.answer,
            sources=[SourceModel.from_entity(s) for s in r.sources],
            success=r.success,
            error=r.error,
        )


class ExportRequest(BaseModel):
    questions_and_answers: List[QuestionAnswerModel]
    format: ExportFormat = "xlsx"
    vendor_name: str = ""


class AutoAnswerRequest(FilePayload):
    organization_id: str = Field(..., min_length=1)
    format: ExportFormat = "xlsx"
    export_all: bool = False
