from __future__ import annotations

# ==========================================================
# 👁️ Vision extraction (PDF / image)
# ==========================================================
VISION_EXTRACTION_PROMPT = (
    'Extract all text and identify question-answer pairs. Look for columns/sections labeled '
    '"Question", "Q", "Answer", "A". Match questions (ending with "?" or starting with '
    "What/How/Why/When/Is/Can/Do) to nearby answers. Preserve order. "
    "Return only Question → Answer pairs."
)

# ==========================================================
# 🧾 Structured QA parsing
# ==========================================================
PARSE_SYSTEM_PROMPT = (
    "You parse vendor questionnaires. Return only genuine question text paired with its answer.\n"
    "- Ignore table headers, column labels, metadata rows, or placeholder words such as "
    '"Question", "Company Name", "Department", "Assessment Date", "Name of Assessor".\n'
    "- A valid question is a meaningful sentence (usually ends with '?' or starts with interrogatives "
    "like What/Why/How/When/Where/Is/Are/Do/Does/Can/Will/Should).\n"
    "- Do not fabricate answers; if no answer is provided, set answer to null.\n"
    "- Keep the original question wording but trim whitespace."
)

_HEADER_RULE = (
    "- Ignore rows or cells that contain only headers/labels (e.g. \"Company Name\", \"Department\", "
    "\"Assessment Date\", \"Question\", \"Answer\"{extra}) or other metadata.\n"
)


def chunk_user_prompt(chunk_text: str, chunk_index: int, total_chunks: int) -> str:
    if total_chunks > 1:
        return (
            f"Chunk {chunk_index + 1} of {total_chunks}.\n"
            "Instructions:\n"
            "- Extract only question → answer pairs that represent real questions.\n"
            + _HEADER_RULE.format(extra="")
            + "- If an answer is blank, set it to null.\n"
            "\n"
            "Chunk content:\n"
            f"{chunk_text}"
        )
    return (
        "Instructions:\n"
        "- Extract all meaningful question → answer pairs from the following content.\n"
        + _HEADER_RULE.format(extra=', "Name of Assessor"')
        + "- Keep only entries that are actual questions (end with '?' or start with interrogative words).\n"
        "- If an answer is blank, set it to null.\n"
        "\n"
        "Content:\n"
        f"{chunk_text}"
    )


QA_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "questionsAndAnswers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "answer": {"type": ["string", "null"]},
                },
                "required": ["question"],
            },
        },
    },
    "required": ["questionsAndAnswers"],
}

# ==========================================================
# 🧠 Grounded answering
# ==========================================================
NO_EVIDENCE_ANSWER = "N/A - no evidence found"

ANSWER_SYSTEM_PROMPT = f"""You are an expert at answering security and compliance questions for vendor questionnaires.

Your task is to answer questions based ONLY on the provided context from the organization's policies and documentation.

CRITICAL RULES:
1. Answer based ONLY on the provided context. Do not make up facts or use general knowledge.
2. If the context does not contain enough information to answer the question, respond with exactly: "{NO_EVIDENCE_ANSWER}"
3. BE CONCISE. Give SHORT, direct answers. Do NOT provide detailed explanations or elaborate unnecessarily.
4. Use enterprise-ready language appropriate for vendor questionnaires.
5. If multiple sources provide information, synthesize them into ONE concise answer.
6. Do not include disclaimers or notes about the source unless specifically relevant.
7. Format your answer as a clear, professional response suitable for a vendor questionnaire.
8. Always write in first person plural (we, our, us) as if speaking on behalf of the organization.
9. Keep answers to 1-3 sentences maximum unless the question explicitly requires more detail."""


def answer_user_prompt(question: str, context: str) -> str:
    return (
        "Based on the following context from our organization's policies and documentation, "
        "answer this question:\n"
        "\n"
        f"Question: {question}\n"
        "\n"
        "Context:\n"
        f"{context}\n"
        "\n"
        "Answer the question based ONLY on the provided context, using first person plural "
        "(we, our, us). If the context doesn't contain enough information, respond with exactly "
        f'"{NO_EVIDENCE_ANSWER}".'
    )
