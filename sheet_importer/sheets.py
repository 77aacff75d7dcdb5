"""Row source adapter for Google Sheets."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheet_importer.errors import SourceAccessError, SourceError, SourceNotFoundError
from sheet_importer.models import MappedRow, RawTable

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

# First data row sits below the header, which is sheet row 1
FIRST_DATA_ROW = 2

# Failures raised by the Sheets client or its transport
CLIENT_ERRORS = (SourceError, HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


def parse_with_headers(table: RawTable) -> list[MappedRow]:
    """Key every data row by the header row.

    Tables without at least one data row yield ``[]``. Empty header cells are
    skipped, and cells missing from short rows are left out of the row.
    """
    if not table or len(table) < 2:
        return []

    headers = [str(h).strip() if h is not None else "" for h in table[0]]
    rows: list[MappedRow] = []
    for offset, cells in enumerate(table[1:]):
        values: dict[str, str] = {}
        for col, header in enumerate(headers):
            if not header or col >= len(cells):
                continue
            cell = cells[col]
            values[header] = "" if cell is None else str(cell)
        rows.append(MappedRow(row_number=offset + FIRST_DATA_ROW, values=values))
    return rows


class SheetsSource:
    """Reads cell ranges through the Sheets v4 API.

    The googleapiclient resource is blocking, so every call runs in a worker
    thread. A prebuilt ``service`` can be passed in (tests do this).
    """

    def __init__(
        self,
        service_account_email: Optional[str] = None,
        private_key: Optional[str] = None,
        service: Any = None,
    ) -> None:
        self._service_account_email = service_account_email
        self._private_key = private_key
        self._service = service

    def _get_service(self) -> Any:
        if self._service is not None:
            return self._service
        if not self._service_account_email or not self._private_key:
            raise SourceAccessError("Google service account credentials are not configured")
        try:
            credentials = service_account.Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "client_email": self._service_account_email,
                    "private_key": self._private_key,
                    "token_uri": "https://oauth2.googleapis.com/token",
                },
                scopes=SCOPES,
            )
        except (ValueError, GoogleAuthError) as e:
            raise SourceAccessError(f"Invalid Google credentials: {e}") from e
        self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        logger.info("[SHEETS] Google Sheets client initialized")
        return self._service

    @staticmethod
    def _translate(error: Exception, source_id: str) -> SourceError:
        if isinstance(error, SourceError):
            return error
        if isinstance(error, HttpError):
            status = getattr(error.resp, "status", None)
            if status in (401, 403):
                return SourceAccessError(f"Access denied to sheet '{source_id}' ({status})")
            if status == 404:
                return SourceNotFoundError(f"Sheet '{source_id}' not found")
            if status == 400:
                return SourceNotFoundError(f"Sheet '{source_id}' or range could not be resolved")
            return SourceAccessError(f"Failed to read sheet '{source_id}': HTTP {status}")
        if isinstance(error, GoogleAuthError):
            return SourceAccessError(f"Google authentication failed: {error}")
        return SourceAccessError(f"Could not reach Google Sheets for '{source_id}': {error}")

    def _read_values(self, source_id: str, cell_range: str) -> RawTable:
        response = (
            self._get_service()
            .spreadsheets()
            .values()
            .get(spreadsheetId=source_id, range=cell_range)
            .execute()
        )
        return response.get("values") or []

    def _read_metadata(self, source_id: str) -> dict:
        response = self._get_service().spreadsheets().get(spreadsheetId=source_id).execute()
        properties = response.get("properties", {})
        sheets = []
        for sheet in response.get("sheets", []):
            sheet_props = sheet.get("properties", {})
            grid = sheet_props.get("gridProperties", {})
            sheets.append(
                {
                    "title": sheet_props.get("title"),
                    "sheet_id": sheet_props.get("sheetId"),
                    "row_count": grid.get("rowCount"),
                    "column_count": grid.get("columnCount"),
                }
            )
        return {"title": properties.get("title"), "sheets": sheets}

    async def fetch_table(self, source_id: str, cell_range: str) -> RawTable:
        """Fetch the cells of ``cell_range``; row 0 is the header row."""
        logger.info("[SHEETS] Reading %s!%s", source_id, cell_range)
        try:
            rows = await asyncio.to_thread(self._read_values, source_id, cell_range)
        except CLIENT_ERRORS as e:
            error = self._translate(e, source_id)
            logger.error("[SHEETS] Read failed for %s: %s", source_id, error)
            raise error from e

        if not rows:
            logger.warning("[SHEETS] No data found in %s!%s", source_id, cell_range)
            return []
        logger.info("[SHEETS] Read %d rows from %s", len(rows), source_id)
        return rows

    async def get_metadata(self, source_id: str) -> dict:
        try:
            metadata = await asyncio.to_thread(self._read_metadata, source_id)
        except CLIENT_ERRORS as e:
            raise self._translate(e, source_id) from e
        logger.info("[SHEETS] Metadata for %s: title=%s", source_id, metadata["title"])
        return metadata

    async def probe_access(self, source_id: str) -> bool:
        """True when the sheet is readable. Never raises."""
        try:
            await self.get_metadata(source_id)
            return True
        except Exception as e:
            logger.warning("[SHEETS] Access probe failed for %s: %s", source_id, e)
            return False

    parse_with_headers = staticmethod(parse_with_headers)
