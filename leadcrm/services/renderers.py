"""
Lead CRM - Report rendering

A report is described once as a ReportTable (title, summary cards, columns,
rows) and handed to a renderer that produces a named byte buffer. The
on-demand export and the monthly email share these renderers.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Tuple, Optional

from fpdf import FPDF
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

logger = logging.getLogger("reports")

CSV_CONTENT_TYPE = "text/csv"
PDF_CONTENT_TYPE = "application/pdf"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Palette
LIGHT_GREY = (245, 245, 245)
MEDIUM_GREY = (224, 224, 224)
DARK_GREY = (66, 66, 66)
ACCENT = (30, 136, 229)
WHITE = (255, 255, 255)


@dataclass
class Column:
    header: str
    key: str
    width: float = 90       # PDF points
    xlsx_width: int = 15    # spreadsheet characters


@dataclass
class ReportTable:
    title: str
    columns: List[Column]
    rows: List[Dict[str, Any]]
    subtitle: str = ""
    summary: List[Tuple[str, str]] = field(default_factory=list)
    sheet_name: str = "Report"


@dataclass
class RenderedReport:
    filename: str
    content_type: str
    content: bytes


class ReportRenderer:
    extension = ""
    content_type = ""

    def render(self, table: ReportTable, basename: str) -> RenderedReport:
        return RenderedReport(
            filename=f"{basename}.{self.extension}",
            content_type=self.content_type,
            content=self.render_bytes(table),
        )

    def render_bytes(self, table: ReportTable) -> bytes:
        raise NotImplementedError


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value)


# ==================== CSV ====================

class CsvRenderer(ReportRenderer):
    """Every field quoted, embedded quotes doubled."""
    extension = "csv"
    content_type = CSV_CONTENT_TYPE

    def render_bytes(self, table: ReportTable) -> bytes:
        buf = io.StringIO()
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([c.header for c in table.columns])
        for row in table.rows:
            writer.writerow([_cell_text(row.get(c.key)) for c in table.columns])
        return buf.getvalue().encode("utf-8")


# ==================== XLSX ====================

class XlsxRenderer(ReportRenderer):
    extension = "xlsx"
    content_type = XLSX_CONTENT_TYPE

    def build_workbook(self, table: ReportTable) -> Workbook:
        workbook = Workbook()
        sheet = workbook.active
        # Excel caps sheet titles at 31 characters
        sheet.title = table.sheet_name[:31]

        sheet.append([c.header for c in table.columns])
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = PatternFill("solid", fgColor="E0E0E0")

        for row in table.rows:
            sheet.append([row.get(c.key) for c in table.columns])

        for idx, column in enumerate(table.columns, start=1):
            sheet.column_dimensions[sheet.cell(row=1, column=idx).column_letter].width = column.xlsx_width
        return workbook

    def render_bytes(self, table: ReportTable) -> bytes:
        buf = io.BytesIO()
        self.build_workbook(table).save(buf)
        return buf.getvalue()


# ==================== PDF ====================

class PdfRenderer(ReportRenderer):
    """
    Header band, optional summary cards, then the table. A new page starts
    when the next row would cross the bottom margin, and the header row is
    drawn again at the top of it.
    """
    extension = "pdf"
    content_type = PDF_CONTENT_TYPE

    margin = 30
    row_height = 25
    header_band_height = 90
    card_width = 170
    card_height = 60
    card_gap = 20

    def __init__(self, orientation: str = "L"):
        self.orientation = orientation

    @staticmethod
    def _latin1(text: str) -> str:
        # Core PDF fonts only cover Latin-1
        return text.encode("latin-1", "replace").decode("latin-1")

    def _fit(self, pdf: FPDF, text: str, width: float) -> str:
        text = self._latin1(text)
        if pdf.get_string_width(text) <= width:
            return text
        while text and pdf.get_string_width(text + "...") > width:
            text = text[:-1]
        return text + "..."

    def _new_page(self, pdf: FPDF):
        pdf.add_page(orientation=self.orientation)

    def _draw_header_band(self, pdf: FPDF, table: ReportTable):
        pdf.set_fill_color(*ACCENT)
        pdf.rect(0, 0, pdf.w, self.header_band_height, style="F")
        pdf.set_text_color(*WHITE)
        pdf.set_font("Helvetica", "B", 24)
        pdf.set_xy(self.margin, 22)
        pdf.cell(pdf.w - 2 * self.margin, 28, self._latin1(table.title))
        if table.subtitle:
            pdf.set_font("Helvetica", "", 12)
            pdf.set_xy(self.margin, 56)
            pdf.cell(pdf.w - 2 * self.margin, 16, self._latin1(table.subtitle))

    def _draw_card(self, pdf: FPDF, x: float, y: float, title: str, value: str):
        pdf.set_fill_color(*LIGHT_GREY)
        pdf.set_draw_color(*MEDIUM_GREY)
        pdf.rect(x, y, self.card_width, self.card_height, style="DF")
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(*DARK_GREY)
        pdf.set_xy(x + 15, y + 8)
        pdf.cell(self.card_width - 30, 14, self._latin1(title))
        pdf.set_font("Helvetica", "B", 22)
        pdf.set_text_color(*ACCENT)
        pdf.set_xy(x + 15, y + 28)
        pdf.cell(self.card_width - 30, 24, self._latin1(value))

    def _draw_row(self, pdf: FPDF, y: float, columns: List[Column], values: List[str],
                  is_header: bool = False, shaded: bool = False):
        table_width = pdf.w - 2 * self.margin
        if is_header:
            pdf.set_fill_color(*MEDIUM_GREY)
            pdf.set_font("Helvetica", "B", 10)
        else:
            pdf.set_fill_color(*(LIGHT_GREY if shaded else WHITE))
            pdf.set_font("Helvetica", "", 10)
        pdf.rect(self.margin, y, table_width, self.row_height, style="F")
        pdf.set_text_color(*DARK_GREY)

        x = self.margin
        for column, value in zip(columns, values):
            pdf.set_xy(x + 5, y + 5)
            pdf.cell(column.width - 10, 15, self._fit(pdf, value, column.width - 10))
            x += column.width

    def build(self, table: ReportTable) -> FPDF:
        pdf = FPDF(orientation=self.orientation, unit="pt", format="A4")
        pdf.set_auto_page_break(False)
        pdf.set_margins(self.margin, self.margin)
        self._new_page(pdf)

        self._draw_header_band(pdf, table)
        y = self.header_band_height + 20

        if table.summary:
            x = self.margin
            for title, value in table.summary:
                self._draw_card(pdf, x, y, title, value)
                x += self.card_width + self.card_gap
            y += self.card_height + 30

        headers = [c.header for c in table.columns]
        self._draw_row(pdf, y, table.columns, headers, is_header=True)
        y += self.row_height

        for index, row in enumerate(table.rows):
            if y + self.row_height > pdf.h - self.margin:
                self._new_page(pdf)
                y = self.margin
                self._draw_row(pdf, y, table.columns, headers, is_header=True)
                y += self.row_height
            values = [_cell_text(row.get(c.key)) for c in table.columns]
            self._draw_row(pdf, y, table.columns, values, shaded=index % 2 == 1)
            y += self.row_height

        return pdf

    def render_bytes(self, table: ReportTable) -> bytes:
        return bytes(self.build(table).output())
