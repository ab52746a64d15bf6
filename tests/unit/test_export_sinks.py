"""
Unit tests for the XLSX and Google Sheets export sinks
"""
from io import BytesIO
from unittest.mock import MagicMock

import gspread
import pytest
from openpyxl import load_workbook

from wb_reports.core.models import ReportKind, ReportResult
from wb_reports.database.sheets import SheetsExportSink
from wb_reports.database.workbook import WorkbookExportSink, safe_sheet_title
from wb_reports.utils.exceptions import ConfigurationError, SheetsAPIError


@pytest.fixture
def result():
    return ReportResult(
        kind=ReportKind.PRODUCT_CATALOG,
        headers=["Артикул ВБ", "Цена", "Рентабельность (%)"],
        rows=[[1, 100.5, "40.00"], [2, 0, 0]],
        file_name="Список товаров - 2025-06-01–2025-06-30.xlsx",
    )


class TestWorkbookExportSink:

    def test_workbook_round_trip(self, result):
        sink = WorkbookExportSink()
        sink.write_result(result)

        workbook = load_workbook(BytesIO(sink.to_bytes()))
        sheet = workbook.active

        assert sheet.title == "Список товаров"
        assert [cell.value for cell in sheet[1]] == result.headers
        assert [cell.value for cell in sheet[2]] == [1, 100.5, "40.00"]
        assert sheet.max_row == 3

    def test_header_style_and_number_format(self, result):
        sink = WorkbookExportSink()
        sink.write_result(result)
        sheet = sink.workbook.active

        assert sheet["A1"].font.bold
        assert sheet["A1"].fill.start_color.rgb.endswith("E0E0E0")
        assert sheet["B2"].number_format == "# ##0.00"
        assert sheet["A2"].number_format == "General"
        assert sheet.column_dimensions["C"].width == 15

    def test_empty_report_has_headers_only(self):
        sink = WorkbookExportSink()
        sink.write("Платное хранение", ["Дата", "Склад"], [])

        sheet = sink.workbook.active
        assert sheet.max_row == 1
        assert sheet["A1"].value == "Дата"

    def test_each_write_adds_a_sheet(self):
        sink = WorkbookExportSink()
        sink.write("Первый", ["A"], [[1]])
        sink.write("Второй", ["B"], [[2]])

        assert sink.workbook.sheetnames == ["Первый", "Второй"]

    def test_save(self, result, tmp_path):
        path = tmp_path / result.file_name
        sink = WorkbookExportSink()
        sink.write_result(result)

        sink.save(str(path))

        assert load_workbook(path).active["A1"].value == "Артикул ВБ"

    def test_safe_sheet_title(self):
        assert safe_sheet_title("Отчет: 01/06") == "Отчет  01 06"
        assert len(safe_sheet_title("x" * 40)) == 31
        assert safe_sheet_title("") == "Отчет"


class TestSheetsExportSink:

    @pytest.fixture
    def spreadsheet(self):
        spreadsheet = MagicMock()
        spreadsheet.title = "Reports"
        return spreadsheet

    @pytest.fixture
    def gspread_client(self, spreadsheet):
        client = MagicMock()
        client.open_by_key.return_value = spreadsheet
        return client

    def test_requires_sheet_id(self, monkeypatch):
        monkeypatch.setattr("wb_reports.database.sheets.get_config", lambda: MagicMock(
            google_sheets=MagicMock(sheet_id=None, service_account_key_path=None)
        ))

        with pytest.raises(ConfigurationError):
            SheetsExportSink()

    def test_write_replaces_existing_worksheet(self, gspread_client, spreadsheet, result):
        worksheet = spreadsheet.worksheet.return_value
        sink = SheetsExportSink(sheet_id="sheet-1", client=gspread_client)

        sink.write_result(result)

        gspread_client.open_by_key.assert_called_once_with("sheet-1")
        spreadsheet.worksheet.assert_called_once_with("Список товаров")
        worksheet.clear.assert_called_once()
        worksheet.update.assert_called_once_with(
            values=[result.headers, [1, 100.5, "40.00"], [2, 0, 0]],
            range_name="A1",
        )

    def test_missing_worksheet_is_created(self, gspread_client, spreadsheet):
        spreadsheet.worksheet.side_effect = gspread.exceptions.WorksheetNotFound("Финансы РК")
        sink = SheetsExportSink(sheet_id="sheet-1", client=gspread_client)

        sink.write("Финансы РК", ["Дата", "Сумма"], [["2025-06-10", None]])

        spreadsheet.add_worksheet.assert_called_once_with(title="Финансы РК", rows=2, cols=2)
        new_sheet = spreadsheet.add_worksheet.return_value
        new_sheet.update.assert_called_once_with(
            values=[["Дата", "Сумма"], ["2025-06-10", ""]], range_name="A1"
        )

    def test_unknown_spreadsheet_is_sheets_error(self, gspread_client):
        gspread_client.open_by_key.side_effect = gspread.exceptions.SpreadsheetNotFound()
        sink = SheetsExportSink(sheet_id="missing", client=gspread_client)

        with pytest.raises(SheetsAPIError):
            sink.write("Отчет", ["A"], [])

    def test_missing_service_account_file(self, tmp_path):
        sink = SheetsExportSink(sheet_id="sheet-1", service_account_path=str(tmp_path / "missing.json"))

        with pytest.raises(SheetsAPIError):
            sink.write("Отчет", ["A"], [])
