"""Shared pytest fixtures for all test layers."""

import os

# Pin configuration before sheet_importer.services is imported, otherwise
# load_dotenv() may pull real credentials from a local .env.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("HMAC_SECRET", "test-secret")
os.environ.setdefault("CALLBACK_BASE_URL", "http://controller.test")
os.environ.setdefault("TARGET_BASE_URL", "https://target.test")

import pytest  # noqa: E402

from sheet_importer.models import MappedRow  # noqa: E402


class RecordingReporter:
    """StatusReporter stand-in that records every call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def of(self, kind: str) -> list[tuple]:
        return [c[1:] for c in self.calls if c[0] == kind]

    async def report_status(self, job_id, status, progress=None):
        self.calls.append(("status", job_id, status, progress))
        return True

    async def report_progress(self, job_id, current_row, total_rows, success_count, error_count):
        self.calls.append(("progress", current_row, total_rows, success_count, error_count))
        return True

    async def report_log(self, job_id, row_number, status, message):
        self.calls.append(("log", row_number, status, message))
        return True

    async def report_completion(self, job_id, results):
        self.calls.append(("completion", job_id, results))
        return True

    async def report_failure(self, job_id, error, failed_rows=None):
        self.calls.append(("failure", job_id, error, failed_rows))
        return True


class FakeSource:
    """SheetsSource stand-in returning a fixed table."""

    def __init__(self, table=None, error=None) -> None:
        self.table = table or []
        self.error = error
        self.requests: list[tuple[str, str]] = []

    async def fetch_table(self, source_id, cell_range):
        self.requests.append((source_id, cell_range))
        if self.error is not None:
            raise self.error
        return self.table


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def make_row():
    def _make(row_number: int, **values: str) -> MappedRow:
        return MappedRow(row_number=row_number, values=values)

    return _make
