"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can back the blob store so that a user can
look at (and back up) their data without any database. Each collection is
one row of a "Collections" worksheet:

    key | kind | payload (JSON) | updated_at

TRADEOFFS:
- Every save rewrites a whole collection cell (fine for personal use)
- No transactions (the store writes collections one by one)
- Cells are limited to ~50k characters, so very large histories should use
  the JSON file backend instead

The implementation follows the abstract interface, so it can be swapped
for the JSON file backend without changing bookkeeping logic.
"""

import json
from datetime import datetime
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from flourish.config import GoogleSheetsSettings, get_settings
from flourish.services.storage.interface import (
    BlobStorageInterface,
    ConnectionError,
    SerializationError,
    StorageError,
)


COLLECTION_COLUMNS = [
    "key",
    "kind",
    "payload",
    "updated_at",
]

KIND_COLLECTION = "collection"
KIND_VALUE = "value"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_collections_sheet(self) -> gspread.Worksheet:
        """Get or create the Collections worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.collections_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.collections_sheet_name,
                rows=100,
                cols=len(COLLECTION_COLUMNS),
            )
            sheet.append_row(COLLECTION_COLUMNS)
        return sheet


class GoogleSheetsBlobStorage(BlobStorageInterface):
    """
    Google Sheets implementation of the blob store.

    Collections and scalar values share one worksheet, told apart by the
    kind column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _fetch_rows(self) -> list[list[str]]:
        sheet = self._client.get_collections_sheet()
        # Skip header
        return sheet.get_all_values()[1:]

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, key: str, kind: str, payload: str) -> None:
        sheet = self._client.get_collections_sheet()
        all_rows = sheet.get_all_values()
        timestamp = datetime.now().isoformat()

        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if len(row) > 1 and row[0] == key and row[1] == kind:
                sheet.update_cell(idx, 3, payload)
                sheet.update_cell(idx, 4, timestamp)
                return

        sheet.append_row([key, kind, payload, timestamp], value_input_option="RAW")

    def _find_payload(self, key: str, kind: str) -> Optional[str]:
        try:
            rows = self._fetch_rows()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read '{key}' from Google Sheets: {e}")

        for row in rows:
            if len(row) > 2 and row[0] == key and row[1] == kind:
                return row[2]
        return None

    def load(self, key: str) -> Optional[list[dict]]:
        payload = self._find_payload(key, KIND_COLLECTION)
        if payload is None:
            return None
        if not payload:
            return []
        try:
            records = json.loads(payload)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Corrupt payload for '{key}': {e}")
        if not isinstance(records, list):
            raise SerializationError(f"Collection '{key}' is not a list")
        return records

    def save(self, key: str, records: list[dict]) -> None:
        try:
            payload = json.dumps(records)
        except TypeError as e:
            raise SerializationError(f"Collection '{key}' is not JSON serializable: {e}")
        try:
            self._write_row(key, KIND_COLLECTION, payload)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save '{key}' to Google Sheets: {e}")

    def load_value(self, key: str) -> Optional[str]:
        return self._find_payload(key, KIND_VALUE)

    def save_value(self, key: str, value: str) -> None:
        try:
            self._write_row(key, KIND_VALUE, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save '{key}' to Google Sheets: {e}")
