"""Spreadsheet access: Google Sheets API client and an in-memory stand-in.

Both clients expose the same positional operations on a named sheet. Row
numbers are 1-based sheet rows; row 1 holds the headers, data starts at row 2.
"""
import logging
import os
from typing import Protocol

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

import config

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
FIRST_DATA_ROW = 2
# Cells are stored as sent; USER_ENTERED would turn ids like "0042" or "1234e5" into numbers
VALUE_INPUT_OPTION = "RAW"


class SheetsError(Exception):
    """Raised when the spreadsheet backend rejects or fails an operation."""


class SpreadsheetClient(Protocol):
    def read_rows(self, sheet: str, width: int) -> list[list]: ...

    def write_row(self, sheet: str, row_index: int, values: list) -> None: ...

    def append_rows(self, sheet: str, rows: list[list]) -> None: ...

    def delete_rows(self, sheet: str, row_indices: list[int]) -> None: ...


def col_letter(n: int) -> str:
    """1 -> A, 13 -> M, 27 -> AA."""
    s = ""
    while n > 0:
        n, r = divmod(n - 1, 26)
        s = chr(65 + r) + s
    return s


class GoogleSheetsClient:
    """Sheets API v4 client authenticated with a service account."""

    def __init__(
        self,
        spreadsheet_id: str,
        service_account_email: str | None = None,
        private_key: str | None = None,
        service=None,
    ):
        if not spreadsheet_id:
            raise ValueError("Google Sheets spreadsheet id is missing")
        self.spreadsheet_id = spreadsheet_id
        if service is None:
            if not service_account_email or not private_key:
                raise ValueError(
                    "Google service account credentials are missing. "
                    "Set GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY."
                )
            logger.info(f"Using service account: {service_account_email[:20]}...")
            credentials = Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "client_email": service_account_email,
                    "private_key": private_key,
                    "token_uri": TOKEN_URI,
                },
                scopes=SCOPES,
            )
            service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self._service = service
        self._sheet_ids: dict[str, int] = {}

    def _execute(self, request, action: str):
        try:
            return request.execute()
        except HttpError as e:
            reason = getattr(e, "reason", None) or str(e)
            logger.error(f"Google Sheets API error while trying to {action}: {reason}")
            if "not supported for this document" in reason:
                raise SheetsError(
                    "Google Sheets access denied. Share the spreadsheet with the service account "
                    f"({os.getenv('GOOGLE_SERVICE_ACCOUNT_EMAIL', 'NOT SET')}) and check the sheet names."
                ) from e
            raise SheetsError(f"Failed to {action}: {reason}") from e

    def _sheet_id(self, sheet: str) -> int:
        if sheet not in self._sheet_ids:
            meta = self._execute(
                self._service.spreadsheets().get(
                    spreadsheetId=self.spreadsheet_id, fields="sheets.properties"
                ),
                "read spreadsheet metadata",
            )
            for entry in meta.get("sheets", []):
                props = entry["properties"]
                self._sheet_ids[props["title"]] = props["sheetId"]
        if sheet not in self._sheet_ids:
            raise SheetsError(f"Sheet '{sheet}' not found")
        return self._sheet_ids[sheet]

    def read_rows(self, sheet: str, width: int) -> list[list]:
        range_name = f"'{sheet}'!A{FIRST_DATA_ROW}:{col_letter(width)}"
        logger.debug(f"Reading range {range_name}")
        result = self._execute(
            self._service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id, range=range_name
            ),
            f"read {sheet}",
        )
        return result.get("values", [])

    def write_row(self, sheet: str, row_index: int, values: list) -> None:
        end = col_letter(len(values))
        self._execute(
            self._service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=f"'{sheet}'!A{row_index}:{end}{row_index}",
                valueInputOption=VALUE_INPUT_OPTION,
                body={"values": [values]},
            ),
            f"update row {row_index} in {sheet}",
        )

    def append_rows(self, sheet: str, rows: list[list]) -> None:
        if not rows:
            return
        end = col_letter(max(len(r) for r in rows))
        self._execute(
            self._service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"'{sheet}'!A:{end}",
                valueInputOption=VALUE_INPUT_OPTION,
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ),
            f"append rows to {sheet}",
        )

    def delete_rows(self, sheet: str, row_indices: list[int]) -> None:
        if not row_indices:
            return
        sheet_id = self._sheet_id(sheet)
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": row_index - 1,
                        "endIndex": row_index,
                    }
                }
            }
            for row_index in sorted(set(row_indices), reverse=True)
        ]
        self._execute(
            self._service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id, body={"requests": requests}
            ),
            f"delete rows from {sheet}",
        )


class InMemorySpreadsheet:
    """Spreadsheet kept in process memory, used for local development and tests.

    Deleting a row shifts every row below it up by one, as in Google Sheets.
    Every write is recorded in ``operations`` as a tuple.
    """

    def __init__(self, sheets: dict[str, list[list]] | None = None):
        # Each sheet is a list of rows; index 0 is the header row
        self.sheets: dict[str, list[list]] = {
            name: [list(row) for row in rows] for name, rows in (sheets or {}).items()
        }
        self.operations: list[tuple] = []

    def _rows(self, sheet: str) -> list[list]:
        return self.sheets.setdefault(sheet, [[]])

    def read_rows(self, sheet: str, width: int) -> list[list]:
        return [list(row[:width]) for row in self._rows(sheet)[FIRST_DATA_ROW - 1:]]

    def write_row(self, sheet: str, row_index: int, values: list) -> None:
        rows = self._rows(sheet)
        if row_index < FIRST_DATA_ROW:
            raise SheetsError(f"Cannot overwrite header row {row_index} in {sheet}")
        while len(rows) < row_index:
            rows.append([])
        rows[row_index - 1] = list(values)
        self.operations.append(("write", sheet, row_index))

    def append_rows(self, sheet: str, rows: list[list]) -> None:
        if not rows:
            return
        self._rows(sheet).extend(list(row) for row in rows)
        self.operations.append(("append", sheet, len(rows)))

    def delete_rows(self, sheet: str, row_indices: list[int]) -> None:
        rows = self._rows(sheet)
        for row_index in sorted(set(row_indices), reverse=True):
            if row_index < FIRST_DATA_ROW or row_index > len(rows):
                raise SheetsError(f"Row {row_index} does not exist in {sheet}")
            del rows[row_index - 1]
            self.operations.append(("delete", sheet, row_index))


_client: SpreadsheetClient | None = None


def create_sheets_client() -> SpreadsheetClient:
    spreadsheet_id = os.getenv("GOOGLE_SHEETS_SPREADSHEET_ID")
    if not spreadsheet_id:
        # Guard against the in-memory fallback in production
        if config.is_production():
            raise RuntimeError(
                "GOOGLE_SHEETS_SPREADSHEET_ID missing in production; refusing to use an in-memory sheet."
            )
        logger.warning("GOOGLE_SHEETS_SPREADSHEET_ID not set, using in-memory spreadsheet with sample data")
        from seed import build_dev_spreadsheet

        return build_dev_spreadsheet()
    return GoogleSheetsClient(
        spreadsheet_id,
        service_account_email=os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL"),
        private_key=config.service_account_private_key(),
    )


def get_sheets_client() -> SpreadsheetClient:
    """Process-wide spreadsheet client, created on first use."""
    global _client
    if _client is None:
        _client = create_sheets_client()
    return _client
