"""
Tabular export sinks.

A sink receives a title, headers and rows. The workbook sink builds XLSX
files in memory for HTTP downloads and the CLI.
"""

from io import BytesIO
from typing import Any, List, Protocol

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from wb_reports.core.models import ReportResult
from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)

COLUMN_WIDTH = 15
NUMBER_FORMAT = "# ##0.00"
HEADER_FILL = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
# Excel limit
MAX_SHEET_TITLE = 31


class TabularExportSink(Protocol):
    def write(self, title: str, headers: List[str], rows: List[List[Any]]) -> None:
        ...


def safe_sheet_title(title: str) -> str:
    """Worksheet title without characters Excel rejects."""
    cleaned = "".join(" " if ch in '[]:*?/\\' else ch for ch in (title or "Отчет"))
    return cleaned.strip()[:MAX_SHEET_TITLE] or "Отчет"


class WorkbookExportSink:
    """
    In-memory XLSX workbook, one worksheet per write.

    Header row is bold on a grey fill, columns have a fixed width and float
    cells get a thousands-separated two-decimal format.
    """

    def __init__(self):
        self.workbook = Workbook()
        self._has_sheets = False

    def write(self, title: str, headers: List[str], rows: List[List[Any]]) -> None:
        if self._has_sheets:
            sheet = self.workbook.create_sheet()
        else:
            sheet = self.workbook.active
            self._has_sheets = True
        sheet.title = safe_sheet_title(title)

        sheet.append(list(headers))
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = HEADER_FILL

        for row in rows:
            sheet.append(list(row))

        for row in sheet.iter_rows(min_row=2):
            for cell in row:
                if isinstance(cell.value, float):
                    cell.number_format = NUMBER_FORMAT

        for index in range(1, len(headers) + 1):
            sheet.column_dimensions[get_column_letter(index)].width = COLUMN_WIDTH

        logger.info(f"📦 Worksheet '{sheet.title}': {len(rows)} rows, {len(headers)} columns")

    def write_result(self, result: ReportResult) -> None:
        self.write(result.sheet_title, result.headers, result.rows)

    def to_bytes(self) -> bytes:
        """Serialized XLSX payload."""
        buffer = BytesIO()
        self.workbook.save(buffer)
        return buffer.getvalue()

    def save(self, path: str) -> None:
        self.workbook.save(path)
        logger.info(f"✅ Workbook saved to {path}")
