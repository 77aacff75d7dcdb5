"""Shared data models for the import pipeline."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from sheet_importer.errors import JobStateError

JobStatus = Literal["pending", "processing", "completed", "failed"]

RowStatus = Literal["success", "error"]

RawTable = list[list[str]]

# Allowed forward moves of JobState.status
_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "failed"},
    "processing": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}


class JobDescriptor(BaseModel):
    """An accepted import job. Wire names are camelCase."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    job_id: str = Field(alias="jobId", min_length=1)
    source_id: str = Field(alias="sourceId", min_length=1)
    range: str = Field(min_length=1)
    mapping_id: str = Field(alias="mappingId", min_length=1)
    dry_run: bool = Field(default=False, alias="isDryRun")


class MappedRow(BaseModel):
    """One data row keyed by header name.

    ``row_number`` is the 1-based position in the source sheet, so the first
    data row (below the header) is row 2.
    """

    row_number: int
    values: dict[str, str] = {}

    def get(self, field: str) -> Optional[str]:
        return self.values.get(field)


class MappingRule(BaseModel):
    """Field rules and form locators for one mapping id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: str = ""
    required_fields: list[str] = []
    optional_fields: list[str] = []
    locator_table: dict[str, list[str]] = {}
    form_path: str = "/customers/add"


class ValidationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None


class SubmitResult(BaseModel):
    """Non-throwing outcome of a single form submission."""

    success: bool
    reason: Optional[str] = None


class RowOutcome(BaseModel):
    row_number: int
    status: RowStatus
    message: str


class JobState(BaseModel):
    """Progress of one job. Status only moves forward; current_row only grows."""

    status: JobStatus = "pending"
    current_row: int = 0
    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    error: Optional[str] = None

    def advance(self, status: JobStatus) -> None:
        """Move to ``status``. Raises JobStateError on a backward or illegal move."""
        if status not in _TRANSITIONS[self.status]:
            raise JobStateError(f"Illegal job transition {self.status} -> {status}")
        self.status = status

    def record(self, outcome: RowOutcome) -> None:
        """Tally a processed row and move the cursor forward by one."""
        if self.status != "processing":
            raise JobStateError(f"Cannot record rows while {self.status}")
        self.current_row += 1
        if outcome.status == "success":
            self.success_count += 1
        else:
            self.error_count += 1

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
