"""Tests for sheet_importer.api_models — Pydantic request/response models."""

import pytest
from pydantic import ValidationError

from sheet_importer.api_models import (
    CancelResponse,
    DataPreview,
    JobAcceptedResponse,
    JobStatusResponse,
    ValidateSheetRequest,
    ValidateSheetResponse,
)
from sheet_importer.models import JobState


class TestJobAcceptedResponse:
    def test_defaults(self):
        r = JobAcceptedResponse(job_id="j1")
        assert r.success is True
        assert r.status == "queued"

    def test_wire_names(self):
        dumped = JobAcceptedResponse(job_id="j1").model_dump(by_alias=True)
        assert dumped["jobId"] == "j1"

    def test_missing_job_id(self):
        with pytest.raises(ValidationError):
            JobAcceptedResponse()


class TestValidateSheetRequest:
    def test_valid(self):
        r = ValidateSheetRequest.model_validate({"sourceId": "sheet1", "range": "A:C"})
        assert r.source_id == "sheet1"

    def test_missing_range(self):
        with pytest.raises(ValidationError):
            ValidateSheetRequest.model_validate({"sourceId": "sheet1"})


class TestValidateSheetResponse:
    def test_valid(self):
        r = ValidateSheetResponse(
            title="Customers",
            total_sheets=1,
            data_preview=DataPreview(headers=["name"], sample_rows=[["Ann"]], total_rows=1),
        )
        assert r.success is True
        assert r.data_preview.total_rows == 1

    def test_missing_preview(self):
        with pytest.raises(ValidationError):
            ValidateSheetResponse(title="Customers")


class TestJobStatusResponse:
    def test_wire_names(self):
        r = JobStatusResponse(job_id="j1", dry_run=True, state=JobState(status="processing", total_rows=3))
        dumped = r.model_dump(by_alias=True)
        assert dumped["jobId"] == "j1"
        assert dumped["isDryRun"] is True
        assert dumped["state"]["total_rows"] == 3


class TestCancelResponse:
    def test_valid(self):
        r = CancelResponse(success=False, job_id="j1", message="Job is already completed")
        assert r.model_dump(by_alias=True)["jobId"] == "j1"
