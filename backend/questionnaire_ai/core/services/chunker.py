from __future__ import annotations
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

from questionnaire_ai.core.entities import Chunk, ChunkingOptions


# ==========================================================
# 🔎 Question-line rules (ordered, first match wins)
# ==========================================================
@dataclass(frozen=True)
class QuestionRule:
    label: str
    pattern: Pattern[str]

    def matches(self, line: str) -> bool:
        return self.pattern.search(line) is not None


def _rule(label: str, regex: str) -> QuestionRule:
    return QuestionRule(label, re.compile(regex, re.IGNORECASE))


DEFAULT_QUESTION_RULES: tuple[QuestionRule, ...] = (
    _rule("question_mark", r"[?？]\s*$"),
    _rule("question_prefix", r"^(?:\d+\s*[\).\]]\s*)?(?:question|q)\b"),
    _rule(
        "interrogative",
        r"^(?:what|why|how|when|where|is|are|does|do|can|will|should|list|describe|explain)\b",
    ),
)

# Form-style questionnaires: numbered fields, required markers, selection notes.
EXTENDED_QUESTION_RULES: tuple[QuestionRule, ...] = DEFAULT_QUESTION_RULES + (
    _rule(
        "numbered_interrogative",
        r"^(?:\d+\s*[\).\]:]\s*|q\d*\s*[\).\]:]\s*)"
        r"(?:what|why|how|when|where|is|are|does|do|can|will|should|have|has|list|describe|explain|if)\b",
    ),
    _rule("question_label", r"question\s*:"),
    _rule("form_field", r"^\d+\.\d+\s+\w+"),
    _rule("required_marker", r"\*\s*$"),
    _rule("selection_note", r"\((?:single|multiple)\s+selection|allows?\s+other|required\)"),
)

QUESTION_RULE_SETS = {
    "default": DEFAULT_QUESTION_RULES,
    "extended": EXTENDED_QUESTION_RULES,
}


def classify_line(line: str, rules: Sequence[QuestionRule] = DEFAULT_QUESTION_RULES) -> Optional[str]:
    """Label of the first rule the trimmed line satisfies, or None."""
    trimmed = line.strip()
    if not trimmed:
        return None
    for rule in rules:
        if rule.matches(trimmed):
            return rule.label
    return None


def looks_like_question(line: str, rules: Sequence[QuestionRule] = DEFAULT_QUESTION_RULES) -> bool:
    return classify_line(line, rules) is not None


def estimate_question_count(text: str, rules: Sequence[QuestionRule] = DEFAULT_QUESTION_RULES) -> int:
    marks = text.count("?") + text.count("？")
    if marks:
        return marks
    flagged = sum(1 for line in _split_lines(text) if looks_like_question(line, rules))
    if flagged:
        return flagged
    return max(1, len(text) // 1200)


def _split_lines(text: str) -> List[str]:
    return re.split(r"\r?\n", text)


# ==========================================================
# ✂️ Question-aware chunking
# ==========================================================
def build_question_aware_chunks(
    content: str,
    options: ChunkingOptions | None = None,
    rules: Sequence[QuestionRule] = DEFAULT_QUESTION_RULES,
) -> List[Chunk]:
    """
    Split ``content`` so every chunk starts at a question line and holds one
    question plus its trailing answer lines. Lines before the first question
    ride along with it. ``options`` bounds are accepted for alternate
    strategies; this one never splits a question from its answer.
    """
    options = options or ChunkingOptions()
    trimmed = content.strip()
    if not trimmed:
        return []

    chunks: List[Chunk] = []
    buffer: List[str] = []
    has_question = False
    seen_question = False

    def flush() -> None:
        nonlocal buffer, has_question
        text = "\n".join(buffer).strip()
        if text:
            chunks.append(Chunk(content=text, question_count=1))
        buffer = []
        has_question = False

    for raw in _split_lines(trimmed):
        line = raw.strip()
        is_question = bool(line) and looks_like_question(line, rules)

        if is_question and has_question and buffer:
            flush()

        if line or buffer:
            buffer.append(raw)

        if is_question:
            has_question = True
            seen_question = True

    flush()

    if not seen_question:
        return [Chunk(content=trimmed, question_count=estimate_question_count(trimmed, rules))]
    return chunks
