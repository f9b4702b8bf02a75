import logging

import gspread
from oauth2client.service_account import ServiceAccountCredentials

from billing_desk.reporting import CSV_HEADER, RevenueRow
from billing_desk.utils import rate_limit, retry_request

logger = logging.getLogger(__name__)

SHEET_HEADER = ["Period"] + CSV_HEADER
PERIOD_COLUMN = 1


class GoogleSheetsClient:
    """Revenue breakdowns in a worksheet, one block of rows per reporting period."""

    def __init__(self, sheet):
        self.sheet = sheet
        self._col_cache: dict[int, list[str]] = {}

    @classmethod
    def connect(cls, google_sheets_key: str, worksheet_name: str, token_path: str) -> "GoogleSheetsClient":
        scope = [
            "https://spreadsheets.google.com/feeds",
            "https://www.googleapis.com/auth/spreadsheets",
            "https://www.googleapis.com/auth/drive.file",
            "https://www.googleapis.com/auth/drive",
        ]
        credentials = ServiceAccountCredentials.from_json_keyfile_name(token_path, scope)
        client = gspread.authorize(credentials)
        return cls(client.open_by_key(google_sheets_key).worksheet(worksheet_name))

    @retry_request()
    @rate_limit(max_requests=60, per_seconds=60)
    def get_column_values(self, col: int) -> list[str]:
        if col not in self._col_cache:
            self._col_cache[col] = self.sheet.col_values(col)
        return self._col_cache[col]

    @retry_request()
    @rate_limit(max_requests=60, per_seconds=60)
    def insert_row(self, values: list, index: int):
        self.sheet.insert_row(values, index=index)
        self._col_cache.clear()

    @retry_request()
    @rate_limit(max_requests=60, per_seconds=60)
    def append_rows(self, rows: list[list]):
        self.sheet.append_rows(rows, value_input_option="USER_ENTERED")
        self._col_cache.clear()

    @retry_request()
    @rate_limit(max_requests=60, per_seconds=60)
    def delete_rows(self, start: int, end: int):
        self.sheet.delete_rows(start, end)
        self._col_cache.clear()

    def ensure_header(self):
        first_row = self.get_column_values(PERIOD_COLUMN)[:1]
        if first_row != [SHEET_HEADER[0]]:
            # existing rows shift down, nothing is overwritten
            self.insert_row(SHEET_HEADER, 1)

    def find_period_rows(self, period_label: str) -> list[int]:
        values = self.get_column_values(PERIOD_COLUMN)
        return [index for index, value in enumerate(values, start=1) if value == period_label]

    def write_revenue_breakdown(self, period_label: str, rows: list[RevenueRow]) -> int:
        """Replace the rows previously exported for ``period_label``."""
        self.ensure_header()

        # delete bottom-up so earlier row numbers stay valid
        for row_number in reversed(self.find_period_rows(period_label)):
            self.delete_rows(row_number, row_number)

        values = [
            [
                period_label,
                row.service,
                row.procedures,
                float(row.revenue),
                float(row.insurance),
                float(row.self_pay),
                float(row.total_amount),
                float(row.paid_amount),
                round(row.collection_rate, 1),
            ]
            for row in rows
        ]
        self.append_rows(values)

        logger.info("Exported %s revenue rows for %s", len(values), period_label)
        return len(values)
