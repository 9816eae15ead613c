"""
Google Sheets Record Source

DESIGN DECISION: Google Sheets is an external copy of the expenses,
not the store of record:
1. Import reads rows and creates new expenses through the store
2. Export overwrites the worksheet with the current expense list
3. Ids and timestamps are never written to the sheet - the store owns them

TRADEOFFS:
- No transactions between the store and the sheet (an export that fails
  halfway leaves the sheet partially written)
- Row order in the sheet follows the store's listing order

Missing configuration is the normal "disconnected" state. It is
reported through test_connection(), never by crashing at startup.
"""

from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import GoogleSheetsSettings
from expense_tracker.models.expense import (
    Deductibility,
    Expense,
    ExpenseCategory,
)
from expense_tracker.services.storage.interface import (
    RecordSourceError,
    RecordSourceInterface,
    RecordSourceNotConfiguredError,
)


logger = structlog.get_logger(__name__)

# Column layout of the expenses worksheet (A:F)
SHEET_COLUMNS = [
    "Date",
    "Vendor",
    "Amount",
    "Description",
    "Category",
    "Deductibility",
]

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
]

TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: GoogleSheetsSettings):
        self._settings = settings
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def _build_credentials(self) -> Credentials:
        """Service account credentials from inline values or a JSON file."""
        if self._settings.has_inline_credentials:
            return Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "client_email": self._settings.client_email,
                    "private_key": self._settings.private_key,
                    "token_uri": TOKEN_URI,
                },
                scopes=SCOPES,
            )
        return Credentials.from_service_account_file(
            self._settings.credentials_path,
            scopes=SCOPES,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(RecordSourceNotConfiguredError),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if not self._settings.is_configured:
            raise RecordSourceNotConfiguredError(
                "Google Sheets credentials not configured"
            )

        if self._client is None:
            try:
                self._client = gspread.authorize(self._build_credentials())
            except FileNotFoundError:
                raise RecordSourceError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RecordSourceError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise RecordSourceError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the expenses worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.worksheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.worksheet_name,
                rows=1000,
                cols=len(SHEET_COLUMNS),
            )
            sheet.append_row(SHEET_COLUMNS)
        return sheet


def _clean_amount(raw: str) -> str:
    """Spreadsheets often render amounts as '$1,234.50'."""
    return raw.replace("$", "").replace(",", "").strip()


def row_to_fields(row: list[str]) -> dict[str, Any]:
    """
    Convert a spreadsheet row to a candidate field set.

    Empty required cells become None so the importer can drop the row.
    Labels are normalized case-insensitively; unknown labels are kept
    as-is and left for validation to reject.
    """
    def safe_get(index: int) -> str:
        try:
            return (row[index] or "").strip()
        except IndexError:
            return ""

    category = safe_get(4)
    deductibility = safe_get(5)
    amount = _clean_amount(safe_get(2))

    return {
        "date": safe_get(0) or None,
        "vendor": safe_get(1) or None,
        "amount": amount or None,
        "description": safe_get(3),
        "category": (ExpenseCategory.parse(category) or category) if category else None,
        "deductibility": (Deductibility.parse(deductibility) or deductibility) if deductibility else None,
    }


class GoogleSheetsRecordSource(RecordSourceInterface):
    """
    Google Sheets implementation of the record source.

    One expense per row, with a header row in row 1.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    @classmethod
    def from_settings(cls, settings: GoogleSheetsSettings) -> "GoogleSheetsRecordSource":
        return cls(GoogleSheetsClient(settings))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(RecordSourceNotConfiguredError),
        reraise=True,
    )
    async def read_all(self) -> list[dict[str, Any]]:
        """Read every data row (header skipped) as a raw field set."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except RecordSourceError:
            raise
        except Exception as e:
            raise RecordSourceError(f"Failed to read expenses from Google Sheets: {e}")

        return [row_to_fields(row) for row in all_rows if any(cell.strip() for cell in row)]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(RecordSourceNotConfiguredError),
        reraise=True,
    )
    async def write_all(self, expenses: list[Expense]) -> None:
        """Overwrite the worksheet with a header plus one row per expense."""
        values = [SHEET_COLUMNS] + [expense.to_sheets_row() for expense in expenses]
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.clear()
            sheet.update(range_name="A1", values=values, value_input_option="RAW")
        except RecordSourceError:
            raise
        except Exception as e:
            raise RecordSourceError(f"Failed to write expenses to Google Sheets: {e}")

    async def test_connection(self) -> bool:
        if not self._client.settings.is_configured:
            return False
        try:
            self._client.get_spreadsheet()
            return True
        except Exception as e:
            logger.warning("google_sheets_connection_failed", error=str(e))
            return False
