import io
import unittest
import zipfile

from openpyxl import load_workbook
from pypdf import PdfReader

from questionnaire_ai.core.entities import QuestionAnswer
from questionnaire_ai.core.errors import ExportFormatError
from questionnaire_ai.core.services.export_service import (
    ExportService,
    export_basename,
    pdf_font,
    render_csv,
    wrap_text,
)

ROWS = [
    QuestionAnswer("Do you encrypt data at rest?", "Yes, AES-256."),
    QuestionAnswer("Do you have a DPO?", None),
]


class TestExportBasename(unittest.TestCase):
    def test_strips_extension(self):
        self.assertEqual(export_basename("Acme Corp.pdf"), "Acme Corp")

    def test_replaces_unsafe_characters(self):
        self.assertEqual(export_basename('Acme/Globex: "Q3" <draft>|v2?*'), "Acme_Globex_ _Q3_ _draft__v2__")

    def test_default_when_missing(self):
        self.assertEqual(export_basename(None), "questionnaire")
        self.assertEqual(export_basename(""), "questionnaire")


class TestExportService(unittest.TestCase):
    def setUp(self):
        self.exports = ExportService()

    def test_csv_quotes_every_field_and_doubles_quotes(self):
        data = render_csv([QuestionAnswer('He said "hi"', None)]).decode("utf-8")
        self.assertEqual(data, '"#","Question","Answer"\n"1","He said ""hi""",""\n')

    def test_csv_file_metadata(self):
        f = self.exports.render(ROWS, "csv", "Acme Corp.pdf")
        self.assertEqual(f.filename, "Acme Corp.csv")
        self.assertEqual(f.mime_type, "text/csv")
        self.assertIn('"2","Do you have a DPO?",""', f.file_buffer.decode("utf-8"))

    def test_xlsx_layout(self):
        f = self.exports.render(ROWS, "xlsx", "Acme")
        self.assertEqual(f.filename, "Acme.xlsx")
        wb = load_workbook(io.BytesIO(f.file_buffer))
        ws = wb["Questionnaire"]
        rows = list(ws.iter_rows(values_only=True))
        self.assertEqual(rows[0], ("#", "Question", "Answer"))
        self.assertEqual(rows[1], (1, "Do you encrypt data at rest?", "Yes, AES-256."))
        self.assertEqual(rows[2][:2], (2, "Do you have a DPO?"))
        self.assertLess(ws.column_dimensions["A"].width, ws.column_dimensions["B"].width)

    def test_pdf_contains_blocks_and_placeholder(self):
        f = self.exports.render(ROWS, "pdf", "Acme Corp")
        self.assertTrue(f.file_buffer.startswith(b"%PDF"))
        self.assertEqual(f.mime_type, "application/pdf")
        text = "\n".join(page.extract_text() for page in PdfReader(io.BytesIO(f.file_buffer)).pages)
        self.assertIn("Acme Corp", text)
        self.assertIn("Q1: Do you encrypt data at rest?", text)
        self.assertIn("A2: No answer provided", text)

    def test_pdf_breaks_pages(self):
        rows = [QuestionAnswer(f"Question number {i} about a long control description?", "We do. " * 40)
                for i in range(40)]
        f = self.exports.render(rows, "pdf", None)
        self.assertGreater(len(PdfReader(io.BytesIO(f.file_buffer)).pages), 1)

    def test_pdf_keeps_japanese_text(self):
        rows = [QuestionAnswer("データは暗号化されていますか？", "はい")]
        f = self.exports.render(rows, "pdf", "東京")
        text = "\n".join(page.extract_text() for page in PdfReader(io.BytesIO(f.file_buffer)).pages)
        self.assertIn("東京", text)
        self.assertIn("データは暗号化されていますか", text)
        self.assertIn("はい", text)
        self.assertNotIn("■", text)

    def test_pdf_font_selection(self):
        self.assertEqual(pdf_font("Q1: Do you log?", bold=True), "Helvetica-Bold")
        self.assertEqual(pdf_font("Café résumé"), "Helvetica")
        self.assertEqual(pdf_font("東京"), "HeiseiKakuGo-W5")
        self.assertEqual(pdf_font("암호화"), "HYGothic-Medium")

    def test_wrap_breaks_text_without_spaces(self):
        font = pdf_font("暗号化")
        lines = wrap_text("暗号化" * 80, font, 10, 200)
        self.assertGreater(len(lines), 1)
        self.assertEqual("".join(lines), "暗号化" * 80)

    def test_unknown_format(self):
        with self.assertRaises(ExportFormatError):
            self.exports.render(ROWS, "docx", "Acme")

    def test_all_formats_zip(self):
        f = self.exports.render_all(ROWS, "Acme Corp.xlsx")
        self.assertEqual(f.filename, "Acme Corp-all-formats.zip")
        self.assertEqual(f.mime_type, "application/zip")
        with zipfile.ZipFile(io.BytesIO(f.file_buffer)) as zf:
            self.assertEqual(sorted(zf.namelist()), ["Acme Corp.csv", "Acme Corp.pdf", "Acme Corp.xlsx"])


if __name__ == "__main__":
    unittest.main()
