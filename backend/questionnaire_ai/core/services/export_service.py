from __future__ import annotations
import csv
import datetime as dt
import io
import re
import zipfile
from typing import Callable, Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from questionnaire_ai.core.entities import ExportFile, QuestionAnswer
from questionnaire_ai.core.errors import ExportFormatError
from questionnaire_ai.core.ports.logger import IPipelineLogger, NullPipelineLogger

HEADER = ("#", "Question", "Answer")
DEFAULT_BASENAME = "questionnaire"
DEFAULT_PDF_TITLE = "Security Questionnaire"
NO_ANSWER_TEXT = "No answer provided"

MIME_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
    "pdf": "application/pdf",
    "zip": "application/zip",
}

_EXTENSION = re.compile(r"\.[^/.]+$")
_UNSAFE = re.compile(r'[<>:"/\\|?*]')

# Built-in Adobe CID fonts; no font files needed on disk.
CJK_FONT = "HeiseiKakuGo-W5"
HANGUL_FONT = "HYGothic-Medium"
_HANGUL = re.compile(r"[\u1100-\u11ff\u3130-\u318f\uac00-\ud7af]")


def export_basename(vendor_name: str | None) -> str:
    base = _EXTENSION.sub("", (vendor_name or "").strip())
    base = _UNSAFE.sub("_", base)
    return base or DEFAULT_BASENAME


# ==========================================================
# Renderers
# ==========================================================
def render_xlsx(rows: Sequence[QuestionAnswer], vendor_name: str | None = None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Questionnaire"
    ws.append(list(HEADER))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for i, qa in enumerate(rows, 1):
        ws.append([i, qa.question, qa.answer or ""])

    ws.column_dimensions["A"].width = 6
    ws.column_dimensions["B"].width = 60
    ws.column_dimensions["C"].width = 80
    wrap = Alignment(wrap_text=True, vertical="top")
    for row in ws.iter_rows(min_row=2, min_col=2, max_col=3):
        for cell in row:
            cell.alignment = wrap

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def render_csv(rows: Sequence[QuestionAnswer], vendor_name: str | None = None) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADER)
    for i, qa in enumerate(rows, 1):
        writer.writerow([i, qa.question, qa.answer or ""])
    return buf.getvalue().encode("utf-8")


def _cid_font(name: str) -> str:
    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(UnicodeCIDFont(name))
    return name


def pdf_font(text: str, bold: bool = False) -> str:
    """Helvetica while the text fits WinAnsi, otherwise a Unicode CID font."""
    try:
        text.encode("cp1252")
    except UnicodeEncodeError:
        return _cid_font(HANGUL_FONT if _HANGUL.search(text) else CJK_FONT)
    return "Helvetica-Bold" if bold else "Helvetica"


def wrap_text(para: str, font: str, font_size: float, width: float) -> List[str]:
    out: List[str] = []
    for line in simpleSplit(para, font, font_size, width) or [""]:
        # Scripts without spaces come back as one overlong word.
        while len(line) > 1 and pdfmetrics.stringWidth(line, font, font_size) > width:
            cut = len(line) - 1
            while cut > 1 and pdfmetrics.stringWidth(line[:cut], font, font_size) > width:
                cut -= 1
            out.append(line[:cut])
            line = line[cut:]
        out.append(line)
    return out


def render_pdf(rows: Sequence[QuestionAnswer], vendor_name: str | None = None) -> bytes:
    page_w, page_h = A4
    margin = 20 * mm
    bottom = 20 * mm
    width = page_w - 2 * margin
    font_size, leading = 10, 13

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=A4)
    title = (vendor_name or "").strip() or DEFAULT_PDF_TITLE
    pdf.setTitle(title)

    y = page_h - margin
    pdf.setFont(pdf_font(title, bold=True), 16)
    pdf.drawString(margin, y, title)
    y -= 20
    pdf.setFont("Helvetica", 9)
    pdf.drawString(margin, y, f"Generated: {dt.date.today().isoformat()}")
    y -= 24

    def block(text: str, bold: bool, gap: float) -> None:
        nonlocal y
        font = pdf_font(text, bold)
        lines: List[str] = []
        for para in text.split("\n"):
            lines.extend(wrap_text(para, font, font_size, width))
        needed = len(lines) * leading
        if y - needed < bottom:
            pdf.showPage()
            y = page_h - margin
        pdf.setFont(font, font_size)
        for line in lines:
            # Blocks taller than a page continue on the next one.
            if y - leading < bottom:
                pdf.showPage()
                pdf.setFont(font, font_size)
                y = page_h - margin
            pdf.drawString(margin, y - font_size, line)
            y -= leading
        y -= gap

    for i, qa in enumerate(rows, 1):
        block(f"Q{i}: {qa.question}", True, 4)
        block(f"A{i}: {qa.answer or NO_ANSWER_TEXT}", False, 12)

    pdf.save()
    return buf.getvalue()


RENDERERS: Dict[str, Callable[[Sequence[QuestionAnswer], str | None], bytes]] = {
    "xlsx": render_xlsx,
    "csv": render_csv,
    "pdf": render_pdf,
}


class ExportService:
    def __init__(self, logger: IPipelineLogger | None = None):
        self.log = logger or NullPipelineLogger()

    def render(self, rows: Sequence[QuestionAnswer], fmt: str, vendor_name: str | None = None) -> ExportFile:
        fmt = (fmt or "").lower()
        renderer = RENDERERS.get(fmt)
        if renderer is None:
            raise ExportFormatError(fmt)
        data = renderer(rows, vendor_name)
        filename = f"{export_basename(vendor_name)}.{fmt}"
        self.log.info("Rendered export", {"format": fmt, "rows": len(rows), "filename": filename})
        return ExportFile(file_buffer=data, mime_type=MIME_TYPES[fmt], filename=filename)

    def render_all(self, rows: Sequence[QuestionAnswer], vendor_name: str | None = None) -> ExportFile:
        """pdf, csv and xlsx bundled into one zip archive."""
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for fmt in ("pdf", "csv", "xlsx"):
                part = self.render(rows, fmt, vendor_name)
                zf.writestr(part.filename, part.file_buffer)
        filename = f"{export_basename(vendor_name)}-all-formats.zip"
        return ExportFile(file_buffer=buf.getvalue(), mime_type=MIME_TYPES["zip"], filename=filename)
