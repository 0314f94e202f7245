from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from questionnaire_ai.core.entities import SimilarContent, Source, SourceType

NO_EVIDENCE_MARKERS = ("n/a", "no evidence", "not found in the context")

_GENERIC_NAMES = {
    SourceType.POLICY: "Policy",
    SourceType.QUESTIONNAIRE: "Questionnaire",
    SourceType.CONTEXT_QA: "Context Q&A",
    SourceType.MANUAL_ANSWER: "Manual Answer",
    SourceType.KNOWLEDGE_BASE_DOCUMENT: "Knowledge Base Document",
    SourceType.OTHER: "Other",
}


def is_no_evidence_answer(text: str | None) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in NO_EVIDENCE_MARKERS)


# ----------------------------------------------------------
# 🏷️ Labels
# ----------------------------------------------------------
def context_label(item: SimilarContent) -> str:
    """Header shown to the model above each retrieved passage."""
    if item.policy_name:
        return f'Policy "{item.policy_name}"'
    if item.vendor_name and item.questionnaire_question:
        return f'Questionnaire from "{item.vendor_name}"'
    if item.context_question:
        return "Context Q&A"
    if item.source_type is SourceType.MANUAL_ANSWER:
        return "Manual Answer"
    if item.source_type is SourceType.KNOWLEDGE_BASE_DOCUMENT:
        if item.document_name:
            return f'Knowledge Base Document "{item.document_name}"'
        return "Knowledge Base Document"
    return item.source_type.value


def source_name(item: SimilarContent) -> Optional[str]:
    """Pre-dedup display name; None means "resolve from the item's natural key"."""
    if item.policy_name:
        return f"Policy: {item.policy_name}"
    if item.vendor_name and item.questionnaire_question:
        return f"Questionnaire: {item.vendor_name}"
    if item.context_question:
        return "Context Q&A"
    return None


def build_context(items: Sequence[SimilarContent]) -> str:
    return "\n\n".join(
        f"[{n}] Source: {context_label(item)}\n{item.content}" for n, item in enumerate(items, 1)
    )


# ----------------------------------------------------------
# 🧹 Source dedup
# ----------------------------------------------------------
def _preview(text: str, limit: int = 50) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def _resolved_name(item: SimilarContent) -> Tuple[str, bool]:
    """(name, is_specific) for a retrieved item."""
    if (name := source_name(item)) is not None:
        return name, True
    if item.source_type is SourceType.MANUAL_ANSWER and item.manual_answer_question:
        return f"Manual Answer: {_preview(item.manual_answer_question)}", True
    if item.source_type is SourceType.KNOWLEDGE_BASE_DOCUMENT and item.document_name:
        return item.document_name, True
    return _GENERIC_NAMES[item.source_type], False


def _identity(item: SimilarContent) -> Tuple[str, str]:
    if item.source_id:
        return item.source_type.value, item.source_id
    natural = (
        item.policy_name
        or item.manual_answer_question
        or item.document_name
        or item.questionnaire_question
        or item.context_question
        or item.id
    )
    return item.source_type.value, natural


@dataclass
class _Slot:
    source_type: SourceType
    source_id: str
    score: float
    name: str
    specific: bool


def deduplicate_sources(items: Sequence[SimilarContent]) -> List[Source]:
    """
    Collapse hits from the same underlying record into one Source.
    Order follows first appearance; score is the best seen; a specific
    name replaces a generic one.
    """
    slots: Dict[Tuple[str, str], _Slot] = {}
    for item in items:
        key = _identity(item)
        name, specific = _resolved_name(item)
        slot = slots.get(key)
        if slot is None:
            slots[key] = _Slot(item.source_type, item.source_id or key[1], item.score, name, specific)
            continue
        slot.score = max(slot.score, item.score)
        if specific and not slot.specific:
            slot.name, slot.specific = name, True

    return [
        Source(source_type=s.source_type, source_id=s.source_id, score=s.score, source_name=s.name)
        for s in slots.values()
    ]
