from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class SourceType(str, Enum):
    POLICY = "policy"
    QUESTIONNAIRE = "questionnaire"
    CONTEXT_QA = "context_qa"
    MANUAL_ANSWER = "manual_answer"
    KNOWLEDGE_BASE_DOCUMENT = "knowledge_base_document"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> "SourceType":
        """Map a stored source-type string onto the enum; unknown kinds become OTHER."""
        value = (raw or "").strip().lower()
        if value == "context":
            return cls.CONTEXT_QA
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class Source:
    source_type: SourceType
    source_id: str
    score: float
    source_name: Optional[str] = None


@dataclass(frozen=True)
class QuestionAnswer:
    question: str
    answer: Optional[str] = None
    sources: Tuple[Source, ...] = ()

    def __post_init__(self):
        if self.answer is None and self.sources:
            raise ValueError("An unanswered question cannot carry sources")

    @property
    def is_answered(self) -> bool:
        return bool(self.answer and self.answer.strip())


@dataclass(frozen=True)
class Chunk:
    content: str
    question_count: int


@dataclass(frozen=True)
class ChunkingOptions:
    max_chunk_chars: int = 80_000
    min_chunk_chars: int = 5_000
    max_questions_per_chunk: int = 1


@dataclass(frozen=True)
class Attachment:
    media_type: str
    data: bytes


@dataclass(frozen=True)
class SimilarContent:
    """One ranked hit from the organization corpus."""
    id: str
    score: float
    content: str
    source_type: SourceType
    source_id: str
    policy_name: Optional[str] = None
    vendor_name: Optional[str] = None
    questionnaire_question: Optional[str] = None
    context_question: Optional[str] = None
    document_name: Optional[str] = None
    manual_answer_question: Optional[str] = None


@dataclass(frozen=True)
class AnswerResult:
    question_index: int
    question: str
    answer: Optional[str]
    sources: Tuple[Source, ...]
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ChunkFailure:
    chunk_index: int
    error: str


@dataclass(frozen=True)
class ParsedResult:
    vendor_name: str
    file_name: str
    total_questions: int
    questions_and_answers: List[QuestionAnswer]
    chunk_failures: List[ChunkFailure] = field(default_factory=list)


@dataclass(frozen=True)
class QuestionnaireFile:
    data: bytes
    media_type: str
    file_name: str = ""
    vendor_name: str = ""


@dataclass(frozen=True)
class ExportFile:
    file_buffer: bytes
    mime_type: str
    filename: str
