"""Pydantic request/response models for the worker API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sheet_importer.models import JobState


class JobAcceptedResponse(BaseModel):
    """Response from POST /api/jobs/process."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    job_id: str = Field(alias="jobId")
    status: str = "queued"
    message: str = "Job queued for processing"


class ValidateSheetRequest(BaseModel):
    """Request body for POST /api/jobs/validate."""

    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(alias="sourceId", min_length=1)
    range: str = Field(min_length=1)


class DataPreview(BaseModel):
    headers: list[str]
    sample_rows: list[list[str]]
    total_rows: int


class ValidateSheetResponse(BaseModel):
    success: bool = True
    message: str = "Sheet validation successful"
    title: Optional[str] = None
    total_sheets: int = 0
    data_preview: DataPreview


class JobStatusResponse(BaseModel):
    """Response from GET /api/jobs/status/{job_id}."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    dry_run: bool = Field(alias="isDryRun")
    cancel_requested: bool = False
    state: JobState


class CancelResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    job_id: str = Field(alias="jobId")
    message: str


class MappingInfo(BaseModel):
    id: str
    name: str
    description: str
    required_fields: list[str]
    optional_fields: list[str]


class MappingsResponse(BaseModel):
    success: bool = True
    mappings: list[MappingInfo]
