"""Tests for sheet_importer.models — descriptors and job state."""

import pytest
from pydantic import ValidationError

from sheet_importer.errors import JobStateError
from sheet_importer.models import JobDescriptor, JobState, RowOutcome


class TestJobDescriptor:
    def test_from_wire_names(self):
        d = JobDescriptor.model_validate(
            {"jobId": "j1", "sourceId": "sheet1", "range": "A:C", "mappingId": "Customers.Basic", "isDryRun": True}
        )
        assert d.job_id == "j1"
        assert d.source_id == "sheet1"
        assert d.mapping_id == "Customers.Basic"
        assert d.dry_run is True

    def test_dry_run_defaults_false(self):
        d = JobDescriptor(job_id="j1", source_id="s", range="A:C", mapping_id="Customers.Basic")
        assert d.dry_run is False

    def test_numeric_job_id(self):
        d = JobDescriptor.model_validate({"jobId": 42, "sourceId": "s", "range": "A:C", "mappingId": "A.B"})
        assert d.job_id == "42"

    def test_immutable(self):
        d = JobDescriptor(job_id="j1", source_id="s", range="A:C", mapping_id="A.B")
        with pytest.raises(ValidationError):
            d.job_id = "j2"

    def test_missing_field(self):
        with pytest.raises(ValidationError):
            JobDescriptor.model_validate({"jobId": "j1", "range": "A:C", "mappingId": "A.B"})

    def test_empty_field(self):
        with pytest.raises(ValidationError):
            JobDescriptor.model_validate({"jobId": "", "sourceId": "s", "range": "A:C", "mappingId": "A.B"})


class TestJobState:
    def test_defaults(self):
        state = JobState()
        assert state.status == "pending"
        assert state.current_row == 0
        assert not state.is_terminal

    def test_forward_transitions(self):
        state = JobState()
        state.advance("processing")
        state.advance("completed")
        assert state.is_terminal

    def test_fail_from_pending(self):
        state = JobState()
        state.advance("failed")
        assert state.status == "failed"

    @pytest.mark.parametrize(
        "path",
        [
            ["processing", "pending"],
            ["processing", "completed", "processing"],
            ["processing", "failed", "completed"],
            ["completed"],
        ],
    )
    def test_illegal_transitions(self, path):
        state = JobState()
        with pytest.raises(JobStateError):
            for status in path:
                state.advance(status)

    def test_record_counts(self):
        state = JobState(total_rows=3)
        state.advance("processing")
        state.record(RowOutcome(row_number=2, status="success", message="ok"))
        state.record(RowOutcome(row_number=3, status="error", message="bad"))
        assert state.current_row == 2
        assert state.success_count == 1
        assert state.error_count == 1

    def test_record_requires_processing(self):
        state = JobState()
        with pytest.raises(JobStateError):
            state.record(RowOutcome(row_number=2, status="success", message="ok"))
