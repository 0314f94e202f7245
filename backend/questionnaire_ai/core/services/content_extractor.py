from __future__ import annotations
import datetime as dt
from io import BytesIO
from typing import Any, Iterable, List

from openpyxl import load_workbook

from questionnaire_ai.core.entities import Attachment
from questionnaire_ai.core.errors import (
    ContentExtractionError,
    UnsupportedDocumentFormat,
    UnsupportedMediaType,
)
from questionnaire_ai.core.ports.generator import ITextGenerator
from questionnaire_ai.core.ports.logger import IPipelineLogger, NullPipelineLogger
from questionnaire_ai.core.services.prompts import VISION_EXTRACTION_PROMPT

SPREADSHEET_TYPES = frozenset({
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroEnabled.12",
})
CSV_TYPES = frozenset({"text/csv", "text/comma-separated-values"})
WORD_TYPES = frozenset({
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})


def _base_type(media_type: str) -> str:
    return (media_type or "").split(";", 1)[0].strip().lower()


def _cell_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dt.datetime):
        return value.isoformat(sep=" ") if value.time() != dt.time() else value.date().isoformat()
    return str(value)


def _row_text(row: Iterable[Any]) -> str:
    return " | ".join(_cell_text(c) for c in row if c is not None and c != "")


def spreadsheet_to_text(data: bytes) -> str:
    """Flatten every sheet of a workbook into ``Sheet: <name>`` prefixed pipe rows."""
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ContentExtractionError(f"Failed to parse Excel file: {e}") from e

    try:
        sheets: List[str] = []
        for ws in wb.worksheets:
            lines = [_row_text(row) for row in ws.iter_rows(values_only=True)]
            text = "\n".join(line for line in lines if line.strip())
            if text:
                sheets.append(f"Sheet: {ws.title}\n{text}")
        return "\n\n".join(sheets)
    finally:
        wb.close()


def csv_to_text(data: bytes) -> str:
    text = data.decode("utf-8", errors="replace")
    return "\n".join(line for line in text.split("\n") if line.strip())


class ContentExtractor:
    """Turns raw file bytes plus a declared media type into plain text."""

    def __init__(self, vision: ITextGenerator, logger: IPipelineLogger | None = None):
        self.vision = vision
        self.log = logger or NullPipelineLogger()

    async def extract(self, data: bytes, media_type: str) -> str:
        kind = _base_type(media_type)
        self.log.info("Extracting content", {"media_type": kind, "bytes": len(data)})

        if kind in SPREADSHEET_TYPES:
            return spreadsheet_to_text(data)
        if kind in CSV_TYPES:
            return csv_to_text(data)
        if kind.startswith("text/"):
            return data.decode("utf-8", errors="replace")
        if kind in WORD_TYPES:
            raise UnsupportedDocumentFormat(kind)
        if kind.startswith("image/") or kind == "application/pdf":
            return await self._extract_with_vision(data, kind)

        raise UnsupportedMediaType(media_type)

    async def _extract_with_vision(self, data: bytes, kind: str) -> str:
        try:
            return await self.vision.generate_text(
                VISION_EXTRACTION_PROMPT,
                attachments=[Attachment(media_type=kind, data=data)],
            )
        except Exception as e:
            self.log.error("Vision extraction failed", {"media_type": kind, "error": str(e)})
            raise ContentExtractionError(f"Failed to extract content: {e}") from e
