from __future__ import annotations


class QuestionnaireError(Exception):
    """Base class for every failure raised by the questionnaire pipeline."""


class UnsupportedMediaType(QuestionnaireError):
    def __init__(self, media_type: str):
        self.media_type = media_type
        super().__init__(
            f"Unsupported file type: {media_type}. Supported formats: PDF, images (PNG, JPG, etc.), "
            "Excel (.xlsx, .xls), CSV, text files (.txt), and Word documents "
            "(.docx - convert to PDF for best results)."
        )


class UnsupportedDocumentFormat(QuestionnaireError):
    def __init__(self, media_type: str):
        self.media_type = media_type
        super().__init__(
            "Word documents (.docx) are best converted to PDF or image format for parsing. "
            "Alternatively, use a URL to view the document."
        )


class ContentExtractionError(QuestionnaireError):
    pass


class GenerationFailure(QuestionnaireError):
    pass


class RetrievalOrGenerationFailure(QuestionnaireError):
    pass


class EmbeddingSyncFailure(QuestionnaireError):
    pass


class ExportFormatError(QuestionnaireError):
    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"Unsupported export format: {fmt}. Supported formats: xlsx, csv, pdf.")
