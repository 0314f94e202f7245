from __future__ import annotations
import base64
import binascii
import logging
import re
import urllib.parse

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response

from questionnaire_ai.core.entities import ExportFile, QuestionnaireFile
from questionnaire_ai.core.errors import (
    ExportFormatError,
    QuestionnaireError,
    UnsupportedDocumentFormat,
    UnsupportedMediaType,
)
from questionnaire_ai.models.schemas import (
    AnswerResultModel,
    AnswersRequest,
    AnswersResponse,
    AutoAnswerRequest,
    ExportRequest,
    FilePayload,
    ParseResponse,
    QuestionAnswerModel,
    SingleAnswerRequest,
)

router = APIRouter(prefix="/questionnaire", tags=["questionnaire"])
logger = logging.getLogger("qa.router")

# Set by main.py at startup
questionnaire_service = None


def _service():
    if questionnaire_service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Questionnaire service not ready")
    return questionnaire_service


def _to_http(e: QuestionnaireError) -> HTTPException:
    if isinstance(e, UnsupportedMediaType):
        return HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    if isinstance(e, (UnsupportedDocumentFormat, ExportFormatError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.error(f"❌ Questionnaire operation failed: {e}")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


def _decode(payload: FilePayload) -> QuestionnaireFile:
    try:
        data = base64.b64decode(payload.file_data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="file_data is not valid base64")
    return QuestionnaireFile(
        data=data,
        media_type=payload.file_type,
        file_name=payload.file_name,
        vendor_name=payload.vendor_name,
    )


_CONTROL = re.compile(r"[\x00-\x1f\x7f]")
_NON_ASCII = re.compile(r'[^\x20-\x7e]|["\\]')


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and an RFC 5987 UTF-8 name."""
    name = _CONTROL.sub("", filename)
    fallback = _NON_ASCII.sub("_", name)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{urllib.parse.quote(name, safe='')}"


def _file_response(f: ExportFile) -> Response:
    return Response(
        content=f.file_buffer,
        media_type=f.mime_type,
        headers={"Content-Disposition": content_disposition(f.filename)},
    )


@router.post("/parse", response_model=ParseResponse)
async def parse(payload: FilePayload):
    service = _service()
    try:
        result = await service.parse(_decode(payload))
    except QuestionnaireError as e:
        raise _to_http(e) from e
    return ParseResponse.from_entity(result)


@router.post("/answers", response_model=AnswersResponse)
async def answers(payload: AnswersRequest):
    service = _service()
    questions = [qa.to_entity() for qa in payload.questions_and_answers]
    filled = await service.generate_answers(questions, payload.organization_id)
    return AnswersResponse(questions_and_answers=[QuestionAnswerModel.from_entity(qa) for qa in filled])


@router.post("/answer", response_model=AnswerResultModel)
async def answer(payload: SingleAnswerRequest):
    if not payload.question.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question must not be empty.")
    service = _service()
    result = await service.answer_single_question(
        payload.question, payload.organization_id, payload.question_index, payload.skip_sync
    )
    return AnswerResultModel.from_entity(result)


@router.post("/export")
def export(payload: ExportRequest):
    service = _service()
    try:
        f = service.render([qa.to_entity() for qa in payload.questions_and_answers], payload.format, payload.vendor_name)
    except QuestionnaireError as e:
        raise _to_http(e) from e
    return _file_response(f)


@router.post("/auto-answer")
async def auto_answer(payload: AutoAnswerRequest):
    service = _service()
    try:
        result = await service.auto_answer_and_export(
            _decode(payload), payload.organization_id, payload.format, payload.export_all
        )
    except QuestionnaireError as e:
        raise _to_http(e) from e
    return _file_response(result.export)
