"""JobProcessor — runs one import job at a time and reports its progress."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sheet_importer.automation import AutomationSession
from sheet_importer.errors import (
    ConcurrentJobError,
    EmptySourceError,
    ImporterError,
    JobCancelledError,
)
from sheet_importer.mappings import form_url, resolve_mapping, validate_row
from sheet_importer.models import JobDescriptor, JobState, MappedRow, MappingRule, RowOutcome
from sheet_importer.reporter import StatusReporter
from sheet_importer.sheets import SheetsSource, parse_with_headers

logger = logging.getLogger(__name__)

JOB_HISTORY_SIZE = 50

SessionFactory = Callable[[], AutomationSession]


@dataclass
class JobContext:
    """Tracks a single job from acceptance to its terminal report."""

    descriptor: JobDescriptor
    state: JobState = field(default_factory=JobState)
    task: Optional[asyncio.Task] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    created_at: float = field(default_factory=time.time)
    failed_rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def job_id(self) -> str:
        return self.descriptor.job_id


class JobGate:
    """Single-slot admission gate. At most one job holds the slot."""

    def __init__(self, history_size: int = JOB_HISTORY_SIZE) -> None:
        self._active: Optional[JobContext] = None
        self._jobs: OrderedDict[str, JobContext] = OrderedDict()
        self._history_size = history_size

    @property
    def active(self) -> Optional[JobContext]:
        return self._active

    @property
    def busy(self) -> bool:
        return self._active is not None

    def acquire(self, descriptor: JobDescriptor) -> JobContext:
        """Take the slot for ``descriptor``. Raises ConcurrentJobError if held."""
        if self._active is not None:
            raise ConcurrentJobError(f"Job '{self._active.job_id}' is already processing")
        ctx = JobContext(descriptor=descriptor)
        self._active = ctx

        self._jobs.pop(ctx.job_id, None)
        self._jobs[ctx.job_id] = ctx
        while len(self._jobs) > self._history_size:
            self._jobs.popitem(last=False)
        return ctx

    def release(self, ctx: JobContext) -> None:
        if self._active is ctx:
            self._active = None

    def get(self, job_id: str) -> Optional[JobContext]:
        return self._jobs.get(job_id)


class JobProcessor:
    """Sequences read -> map -> per-row validate/submit -> report for one job."""

    def __init__(
        self,
        source: SheetsSource,
        reporter: StatusReporter,
        session_factory: SessionFactory,
        target_base_url: str,
        gate: Optional[JobGate] = None,
    ) -> None:
        self.source = source
        self.reporter = reporter
        self.session_factory = session_factory
        self.target_base_url = target_base_url
        self.gate = gate or JobGate()

    @property
    def busy(self) -> bool:
        return self.gate.busy

    def submit(self, descriptor: JobDescriptor) -> JobContext:
        """Admit a job and process it in a background task."""
        ctx = self.gate.acquire(descriptor)
        ctx.task = asyncio.create_task(self._run(ctx))
        logger.info("[JOB] Accepted job %s (mapping=%s, dry_run=%s)", ctx.job_id, descriptor.mapping_id, descriptor.dry_run)
        return ctx

    async def process_job(self, descriptor: JobDescriptor) -> JobState:
        """Admit a job and process it to its terminal state."""
        ctx = self.gate.acquire(descriptor)
        await self._run(ctx)
        return ctx.state

    def get_job(self, job_id: str) -> Optional[JobContext]:
        return self.gate.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Ask a running job to stop before its next row."""
        ctx = self.gate.get(job_id)
        if ctx is None or ctx.state.is_terminal:
            return False
        ctx.cancel_event.set()
        logger.info("[JOB] Cancellation requested for job %s", job_id)
        return True

    # -- Pipeline --------------------------------------------------------------
    async def _run(self, ctx: JobContext) -> None:
        descriptor = ctx.descriptor
        job_id = ctx.job_id
        session: Optional[AutomationSession] = None
        logger.info("[JOB] Starting job %s on %s!%s", job_id, descriptor.source_id, descriptor.range)

        try:
            try:
                ctx.state.advance("processing")
                await self.reporter.report_status(job_id, "processing", progress=0)

                table = await self.source.fetch_table(descriptor.source_id, descriptor.range)
                rows = parse_with_headers(table)
                if not rows:
                    raise EmptySourceError("No data found in sheet or insufficient rows")
                ctx.state.total_rows = len(rows)
                logger.info("[JOB] Job %s: %d rows to process", job_id, len(rows))

                rule = resolve_mapping(descriptor.mapping_id)

                if descriptor.dry_run:
                    results = await self._dry_run(ctx, rows, rule)
                else:
                    session = self.session_factory()
                    await session.authenticate()
                    results = await self._import(ctx, rows, rule, session)
            except Exception as e:
                if isinstance(e, ImporterError):
                    logger.error("[JOB] Job %s failed: %s", job_id, e)
                else:
                    logger.exception("[JOB] Unexpected error in job %s", job_id)
                ctx.state.error = str(e)
                ctx.state.advance("failed")
                await self.reporter.report_failure(job_id, e, ctx.failed_rows)
            else:
                ctx.state.advance("completed")
                await self.reporter.report_completion(job_id, results)
                logger.info(
                    "[JOB] Job %s completed: %d succeeded, %d failed",
                    job_id,
                    ctx.state.success_count,
                    ctx.state.error_count,
                )
        finally:
            if session is not None:
                try:
                    await session.close()
                except Exception:
                    logger.warning("[JOB] Browser cleanup failed for job %s", job_id, exc_info=True)
            self.gate.release(ctx)

    def _check_cancelled(self, ctx: JobContext) -> None:
        if ctx.cancel_event.is_set():
            raise JobCancelledError("Job cancelled")

    async def _finish_row(self, ctx: JobContext, outcome: RowOutcome) -> None:
        """Tally the row, then send its log entry and a progress update."""
        state = ctx.state
        state.record(outcome)
        await self.reporter.report_log(ctx.job_id, outcome.row_number, outcome.status, outcome.message)
        await self.reporter.report_progress(
            ctx.job_id,
            state.current_row,
            state.total_rows,
            state.success_count,
            state.error_count,
        )

    async def _dry_run(self, ctx: JobContext, rows: list[MappedRow], rule: MappingRule) -> dict[str, Any]:
        logger.info("[JOB] Dry run for job %s", ctx.job_id)
        for row in rows:
            self._check_cancelled(ctx)
            try:
                result = validate_row(row, rule)
                if result.valid:
                    outcome = RowOutcome(row_number=row.row_number, status="success", message="Row validated successfully")
                else:
                    outcome = RowOutcome(row_number=row.row_number, status="error", message=result.reason or "Invalid row")
            except Exception as e:
                outcome = RowOutcome(row_number=row.row_number, status="error", message=f"Validation error: {e}")
            await self._finish_row(ctx, outcome)

        return {
            "total_rows": ctx.state.total_rows,
            "success_count": ctx.state.success_count,
            "error_count": ctx.state.error_count,
            "type": "dry_run",
        }

    async def _import(
        self,
        ctx: JobContext,
        rows: list[MappedRow],
        rule: MappingRule,
        session: AutomationSession,
    ) -> dict[str, Any]:
        url = form_url(rule, self.target_base_url)
        logger.info("[JOB] Importing job %s into %s", ctx.job_id, url)

        for row in rows:
            self._check_cancelled(ctx)
            try:
                await session.navigate_to(url)
                result = await session.submit_row(row, rule.locator_table)
                if result.success:
                    outcome = RowOutcome(row_number=row.row_number, status="success", message="Row imported successfully")
                else:
                    logger.warning("[JOB] Row %d soft failure: %s", row.row_number, result.reason)
                    outcome = RowOutcome(row_number=row.row_number, status="error", message=result.reason or "no success indicator")
            except Exception as e:
                logger.error("[JOB] Row %d hard failure: %s", row.row_number, e)
                outcome = RowOutcome(row_number=row.row_number, status="error", message=f"Import error: {e}")

            if outcome.status == "error":
                ctx.failed_rows.append({"row_number": row.row_number, "error": outcome.message})
                await session.take_screenshot(f"{ctx.job_id}-row-{row.row_number}")
            await self._finish_row(ctx, outcome)

        return {
            "total_rows": ctx.state.total_rows,
            "success_count": ctx.state.success_count,
            "error_count": ctx.state.error_count,
            "failed_rows": list(ctx.failed_rows),
            "type": "import",
        }
