"""Tests for sheet_importer.sheets — parsing and error mapping."""

from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from sheet_importer.errors import SourceAccessError, SourceNotFoundError
from sheet_importer.sheets import SheetsSource, parse_with_headers


def _service_returning(values=None, metadata=None, error=None):
    """MagicMock shaped like the googleapiclient Sheets resource."""
    service = MagicMock()
    values_get = service.spreadsheets.return_value.values.return_value.get.return_value
    meta_get = service.spreadsheets.return_value.get.return_value
    if error is not None:
        values_get.execute.side_effect = error
        meta_get.execute.side_effect = error
    else:
        values_get.execute.return_value = {"values": values} if values is not None else {}
        meta_get.execute.return_value = metadata or {}
    return service


def _http_error(status: int) -> HttpError:
    return HttpError(resp=httplib2.Response({"status": status}), content=b"{}")


class TestParseWithHeaders:
    def test_row_numbers_start_at_two(self):
        table = [["name", "email"], ["Ann", "a@x.io"], ["Bob", "b@x.io"], ["Cy", "c@x.io"]]
        rows = parse_with_headers(table)
        assert len(rows) == 3
        assert [r.row_number for r in rows] == [2, 3, 4]
        assert rows[0].values == {"name": "Ann", "email": "a@x.io"}

    @pytest.mark.parametrize("table", [[], [["name", "email"]]])
    def test_no_data_rows(self, table):
        assert parse_with_headers(table) == []

    def test_headers_trimmed(self):
        rows = parse_with_headers([["  name ", "email"], ["Ann", "a@x.io"]])
        assert rows[0].values["name"] == "Ann"

    def test_empty_header_skipped(self):
        rows = parse_with_headers([["name", "", "phone"], ["Ann", "ignored", "555"]])
        assert rows[0].values == {"name": "Ann", "phone": "555"}

    def test_short_row_leaves_fields_absent(self):
        rows = parse_with_headers([["name", "email", "phone"], ["Ann"]])
        assert rows[0].values == {"name": "Ann"}
        assert rows[0].get("phone") is None

    def test_empty_cell_is_present(self):
        rows = parse_with_headers([["name", "phone"], ["Ann", ""]])
        assert rows[0].values == {"name": "Ann", "phone": ""}


class TestFetchTable:
    @pytest.mark.asyncio
    async def test_returns_values(self):
        table = [["name"], ["Ann"]]
        source = SheetsSource(service=_service_returning(values=table))
        assert await source.fetch_table("sheet1", "A:C") == table

    @pytest.mark.asyncio
    async def test_no_values_is_empty(self):
        source = SheetsSource(service=_service_returning())
        assert await source.fetch_table("sheet1", "A:C") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_access_denied(self, status):
        source = SheetsSource(service=_service_returning(error=_http_error(status)))
        with pytest.raises(SourceAccessError):
            await source.fetch_table("sheet1", "A:C")

    @pytest.mark.asyncio
    async def test_not_found(self):
        source = SheetsSource(service=_service_returning(error=_http_error(404)))
        with pytest.raises(SourceNotFoundError):
            await source.fetch_table("missing", "A:C")

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        source = SheetsSource()
        with pytest.raises(SourceAccessError, match="not configured"):
            await source.fetch_table("sheet1", "A:C")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [httplib2.ServerNotFoundError("Unable to find the server"), ConnectionResetError("reset")]
    )
    async def test_transport_error_is_access_error(self, error):
        source = SheetsSource(service=_service_returning(error=error))
        with pytest.raises(SourceAccessError, match="Could not reach"):
            await source.fetch_table("sheet1", "A:C")

    @pytest.mark.asyncio
    async def test_programming_error_propagates(self):
        source = SheetsSource(service=_service_returning(error=KeyError("values")))
        with pytest.raises(KeyError):
            await source.fetch_table("sheet1", "A:C")

    @pytest.mark.asyncio
    async def test_metadata_programming_error_propagates(self):
        source = SheetsSource(service=_service_returning(error=TypeError("bad argument")))
        with pytest.raises(TypeError):
            await source.get_metadata("sheet1")


class TestMetadataAndProbe:
    @pytest.mark.asyncio
    async def test_metadata(self):
        metadata = {
            "properties": {"title": "Customers"},
            "sheets": [{"properties": {"title": "Sheet1", "sheetId": 0, "gridProperties": {"rowCount": 10, "columnCount": 3}}}],
        }
        source = SheetsSource(service=_service_returning(metadata=metadata))
        result = await source.get_metadata("sheet1")
        assert result["title"] == "Customers"
        assert result["sheets"] == [{"title": "Sheet1", "sheet_id": 0, "row_count": 10, "column_count": 3}]

    @pytest.mark.asyncio
    async def test_probe_true(self):
        source = SheetsSource(service=_service_returning(metadata={"properties": {"title": "T"}}))
        assert await source.probe_access("sheet1") is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [_http_error(403), _http_error(404), RuntimeError("boom")])
    async def test_probe_false_never_raises(self, error):
        source = SheetsSource(service=_service_returning(error=error))
        assert await source.probe_access("sheet1") is False
