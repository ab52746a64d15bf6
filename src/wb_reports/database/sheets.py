"""
Google Sheets export sink.

Writes report headers and rows into a worksheet of a Google spreadsheet
using service account credentials.
"""

import json
from pathlib import Path
from typing import Any, List, Optional

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from wb_reports.core.models import ReportResult
from wb_reports.utils.config import get_config
from wb_reports.utils.exceptions import ConfigurationError, SheetsAPIError
from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class SheetsExportSink:
    """
    Export sink backed by a Google spreadsheet.

    Each write targets the worksheet named after the title; it is created
    when missing and cleared before the new values are written.
    """

    def __init__(self, sheet_id: Optional[str] = None,
                 service_account_path: Optional[str] = None,
                 client: Optional[gspread.Client] = None):
        """
        Initialize the sink.

        Args:
            sheet_id: Google Sheet ID; defaults from configuration
            service_account_path: Path to service account JSON file
            client: Pre-authorized gspread client
        """
        settings = get_config().google_sheets
        self.sheet_id = sheet_id or settings.sheet_id
        self.service_account_path = service_account_path or settings.service_account_key_path
        self._client = client
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

        if not self.sheet_id:
            raise ConfigurationError("Google Sheet ID is not configured (GOOGLE_SHEET_ID)")

    def _authenticate(self) -> gspread.Client:
        """
        Authorize with the service account file.

        Raises:
            SheetsAPIError: If the file is missing or rejected
        """
        if not self.service_account_path or not Path(self.service_account_path).exists():
            raise SheetsAPIError(f"Service account file not found: {self.service_account_path}")

        try:
            credentials = Credentials.from_service_account_file(self.service_account_path, scopes=SCOPES)
        except (GoogleAuthError, json.JSONDecodeError, ValueError) as e:
            raise SheetsAPIError(f"Google authentication failed: {e}") from e

        logger.info("Authenticated with Google Sheets API")
        return gspread.authorize(credentials)

    def _get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            if self._client is None:
                self._client = self._authenticate()
            try:
                self._spreadsheet = self._client.open_by_key(self.sheet_id)
            except gspread.exceptions.SpreadsheetNotFound as e:
                raise SheetsAPIError(f"Spreadsheet not found: {self.sheet_id}") from e
            except gspread.exceptions.APIError as e:
                raise SheetsAPIError(f"Failed to open spreadsheet: {e}") from e
            logger.info(f"Opened spreadsheet: {self._spreadsheet.title}")
        return self._spreadsheet

    def _get_worksheet(self, title: str, rows: int, cols: int) -> gspread.Worksheet:
        spreadsheet = self._get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.exceptions.WorksheetNotFound:
            logger.info(f"Worksheet '{title}' not found, creating it...")
            return spreadsheet.add_worksheet(title=title, rows=max(rows, 1), cols=max(cols, 1))

    def write(self, title: str, headers: List[str], rows: List[List[Any]]) -> None:
        """
        Replace the worksheet contents with headers and rows.

        Raises:
            SheetsAPIError: If the Sheets API rejects the update
        """
        values = [list(headers)] + [["" if v is None else v for v in row] for row in rows]
        try:
            worksheet = self._get_worksheet(title, len(values), len(headers))
            worksheet.clear()
            worksheet.update(values=values, range_name="A1")
        except gspread.exceptions.APIError as e:
            raise SheetsAPIError(f"Failed to write worksheet '{title}': {e}") from e

        logger.info(f"✅ Wrote {len(rows)} rows to worksheet '{title}'")

    def write_result(self, result: ReportResult) -> None:
        self.write(result.sheet_title, result.headers, result.rows)
