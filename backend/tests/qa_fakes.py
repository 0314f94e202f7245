"""In-process stand-ins for the generation, retrieval and sync ports."""
from __future__ import annotations
import re
from typing import Callable, Dict, List, Optional

from questionnaire_ai.core.entities import SimilarContent, SourceType
from questionnaire_ai.core.ports.embeddings import IEmbeddingSync
from questionnaire_ai.core.ports.generator import IStructuredGenerator, ITextGenerator
from questionnaire_ai.core.ports.logger import IPipelineLogger
from questionnaire_ai.core.ports.retriever import IContentRetriever


def chunk_body(user_prompt: str) -> str:
    """Recover the chunk text embedded in a parse prompt."""
    match = re.search(r"(?:Chunk content|Content):\n(.*)\Z", user_prompt, re.S)
    return match.group(1) if match else ""


def first_line_pairs(user_prompt: str) -> Dict:
    """Treat the first chunk line as the question and the rest as its answer."""
    lines = chunk_body(user_prompt).split("\n")
    answer = "\n".join(lines[1:]).strip()
    return {"questionsAndAnswers": [{"question": lines[0], "answer": answer or None}]}


class FakeStructuredGenerator(IStructuredGenerator):
    def __init__(self, respond: Callable[[str], Dict] = first_line_pairs):
        self.respond = respond
        self.calls: List[Dict] = []

    async def generate_object(self, schema, system_prompt, user_prompt):
        self.calls.append({"schema": schema, "system": system_prompt, "user": user_prompt})
        return self.respond(user_prompt)


class FakeTextGenerator(ITextGenerator):
    def __init__(self, reply: str | Callable[[str], str] = "We encrypt all data at rest."):
        self.reply = reply
        self.calls: List[Dict] = []

    async def generate_text(self, prompt, system_prompt=None, attachments=()):
        self.calls.append({"prompt": prompt, "system": system_prompt, "attachments": list(attachments)})
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply


class FakeRetriever(IContentRetriever):
    def __init__(self, items: Optional[List[SimilarContent]] = None, fail_on: Optional[str] = None):
        self.items = items or []
        self.fail_on = fail_on
        self.queries: List[str] = []

    async def find_similar_content(self, query, organization_id, k):
        self.queries.append(query)
        if self.fail_on and self.fail_on in query:
            raise RuntimeError("vector store unavailable")
        return self.items[:k]


class FakeSync(IEmbeddingSync):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    async def sync_embeddings(self, organization_id):
        self.calls.append(organization_id)
        if self.fail:
            raise RuntimeError("embedding service down")
        return 0


class RecordingLogger(IPipelineLogger):
    def __init__(self):
        self.records: List[tuple] = []

    def info(self, message, meta=None):
        self.records.append(("info", message, dict(meta or {})))

    def warning(self, message, meta=None):
        self.records.append(("warning", message, dict(meta or {})))

    def error(self, message, meta=None):
        self.records.append(("error", message, dict(meta or {})))

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m, _ in self.records if lvl == level]


def policy_hit(source_id: str = "pol-1", score: float = 0.8, name: str = "Data Protection Policy",
               content: str = "All customer data is encrypted at rest using AES-256.") -> SimilarContent:
    return SimilarContent(
        id=f"{source_id}-chunk-{score}",
        score=score,
        content=content,
        source_type=SourceType.POLICY,
        source_id=source_id,
        policy_name=name,
    )
