"""Run reporter coordinating a test run with the tracking API."""

import logging
from collections.abc import AsyncGenerator, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import aiohttp
from pydantic import ValidationError

from run_reporter.client import TrackingApiError, TrackingClient
from run_reporter.config import ReporterConfig
from run_reporter.models.api import PipelineRunCreated, TestCaseCreated
from run_reporter.models.records import RunSummary, TestCaseRecord, TestStatus
from run_reporter.stores import (
    RUN_ID_KEY,
    STARTED_AT_KEY,
    EnvironRunStateStore,
    JsonFileTestCaseLog,
    RunStateStore,
    TestCaseLog,
)

log = logging.getLogger(__name__)

type ApiResult = Mapping[str, Any] | None

REMOTE_ERRORS = (aiohttp.ClientError, TimeoutError, TrackingApiError, ValueError)
LOCAL_ERRORS = (OSError, ValueError)

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "skipped": "⏭️",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime the way the tracking API stores it."""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def log_run_summary(summary: RunSummary, duration: int) -> None:
    """Log a formatted summary of the run aggregate."""
    log.info("=" * 80)
    log.info("Run Summary: %s (%ds)", summary.status.upper(), duration)
    log.info("=" * 80)
    log.info("Total tests: %d", summary.total)
    log.info("%s Passed: %d", STATUS_SYMBOLS["passed"], summary.passed)
    log.info("%s Failed: %d", STATUS_SYMBOLS["failed"], summary.failed)
    log.info("%s Skipped: %d", STATUS_SYMBOLS["skipped"], summary.skipped)


@dataclass(kw_only=True)
class RunReporter:
    """Reports one test run to the tracking API.

    The harness calls ``start()`` before the first test, ``mark_test_start()``
    and ``record_test()`` around every test, and ``finish()`` after the last
    one. None of these raise: every failure is logged and the call returns
    None, so reporting never changes the outcome of the run.

    Per-test records go to ``test_cases`` and the run id to ``run_state``,
    which lets the calls happen in separate processes sharing only those
    stores.
    """

    config: ReporterConfig
    client: TrackingClient
    run_state: RunStateStore
    test_cases: TestCaseLog
    clock: Callable[[], datetime] = utcnow

    _run_id: str | None = field(default=None, init=False)
    _started_at: datetime | None = field(default=None, init=False)
    _test_started_at: datetime | None = field(default=None, init=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls,
        config: ReporterConfig,
        *,
        run_state: RunStateStore | None = None,
        test_cases: TestCaseLog | None = None,
    ) -> AsyncGenerator["RunReporter", None]:
        """Create reporter with a managed tracking client."""
        async with TrackingClient.from_config(config) as client:
            yield cls(
                config=config,
                client=client,
                run_state=EnvironRunStateStore() if run_state is None else run_state,
                test_cases=(
                    JsonFileTestCaseLog(config.test_cases_file)
                    if test_cases is None
                    else test_cases
                ),
            )

    @property
    def run_id(self) -> str | None:
        """Run id from this process, or the one shared by the process that started."""
        if self._run_id is None:
            self._run_id = self._local("read run id", self.run_state.get, RUN_ID_KEY)
        return self._run_id

    async def start(self) -> ApiResult:
        """Clear the previous run and create a new pipeline run."""
        if not self.config.enabled:
            log.info("Reporting disabled, skipping pipeline run creation")
            return None

        self._started_at = self.clock()
        self._run_id = None
        self._local("clear test cases", self.test_cases.reset)
        self._local("clear run id", self.run_state.set, RUN_ID_KEY, "")
        self._local(
            "store start time",
            self.run_state.set,
            STARTED_AT_KEY,
            self._started_at.isoformat(),
        )

        payload = self._pipeline_run_payload(self._started_at)
        log.info(
            "Creating pipeline run: job=%s, build=%s, branch=%s",
            payload["job_name"],
            payload["build_number"],
            payload["branch"],
        )

        try:
            data = await self.client.create_pipeline_run(payload)
            created = PipelineRunCreated.model_validate(data)
        except REMOTE_ERRORS as e:
            log.error("Pipeline run creation failed: %s", e)
            return None

        self._run_id = created.run_id
        self._local("store run id", self.run_state.set, RUN_ID_KEY, created.run_id)
        log.info(
            "Pipeline run %s created (triggered by %s)",
            created.run_id,
            payload["triggered_by"],
        )
        return data

    def mark_test_start(self) -> None:
        """Remember when the next test begins."""
        self._test_started_at = self.clock()

    async def record_test(
        self,
        title: str,
        status: TestStatus,
        error_message: str | None = None,
    ) -> ApiResult:
        """Report one finished test and append it to the test-case log."""
        if not self.config.enabled:
            return None

        ended_at = self.clock()
        started_at = self._test_started_at or ended_at
        duration_ms = max(0, (ended_at - started_at) // timedelta(milliseconds=1))

        try:
            record = TestCaseRecord(
                name=title,
                status=status,
                duration_ms=duration_ms,
                started_at=started_at,
                ended_at=ended_at,
            )
        except ValidationError as e:
            log.error("Invalid test case %r: %s", title, e)
            return None

        log.info(
            "%s %s: %s (%.2fs)",
            STATUS_SYMBOLS[record.status],
            record.name,
            record.status,
            record.duration,
        )

        data: ApiResult = None
        if (run_id := self.run_id) is None:
            log.error("Test case %r not sent: no pipeline run id available", title)
        else:
            try:
                data = await self.client.create_test_case(
                    self._test_case_payload(record, run_id, error_message)
                )
                created = TestCaseCreated.model_validate(data)
            except REMOTE_ERRORS as e:
                log.error("Test case creation failed for %r: %s", title, e)
                data = None
            else:
                record = record.model_copy(update={"test_id": created.test_id})
                log.info("Test case %s created", created.test_id or "N/A")

        self._local("save test case", self.test_cases.append, record)
        return data

    async def finish(self) -> ApiResult:
        """Aggregate the recorded tests and close the pipeline run."""
        if not self.config.enabled:
            log.info("Reporting disabled, skipping pipeline run update")
            return None

        records = self._local("read test cases", self.test_cases.read_all) or []
        summary = RunSummary.from_records(records)
        ended_at = self.clock()
        duration = self._run_duration(ended_at)
        log_run_summary(summary, duration)

        if (run_id := self.run_id) is None:
            log.error("Pipeline run update skipped: no pipeline run id available")
            return None

        payload = {
            "status": summary.status,
            "end_time": format_timestamp(ended_at),
            "duration": duration,
            "total_tests": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
            "aborted": summary.skipped,
        }

        try:
            data = await self.client.update_pipeline_run(run_id, payload)
        except REMOTE_ERRORS as e:
            log.error("Pipeline run update failed for %s: %s", run_id, e)
            return None

        log.info("Pipeline run %s updated with status=%s", run_id, summary.status)
        return data

    def _run_duration(self, ended_at: datetime) -> int:
        started_at = self._started_at
        if started_at is None:
            stored = self._local("read start time", self.run_state.get, STARTED_AT_KEY)
            if stored:
                started_at = self._local(
                    "parse start time", datetime.fromisoformat, stored
                )
        if started_at is None:
            return 0
        return max(0, (ended_at - started_at) // timedelta(seconds=1))

    def _pipeline_run_payload(self, started_at: datetime) -> dict[str, Any]:
        build = self.config.build
        browser = self.config.browser
        return {
            "job_name": build.job_name,
            "build_number": build.build_number,
            "branch": build.branch,
            "commit_hash": build.commit,
            "triggered_by": build.triggered_by,
            "start_time": format_timestamp(started_at),
            "status": "running",
            "environment": self.config.environment,
            "browser": browser.name,
            "browser_version": browser.version,
            "platform": browser.platform,
            "framework": browser.framework,
            "organization": self.config.org_id,
            "created_by": self.config.created_by,
        }

    def _test_case_payload(
        self, record: TestCaseRecord, run_id: str, error_message: str | None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": record.name,
            "status": record.status,
            "run": run_id,
            "duration": record.duration,
            "created_at": format_timestamp(record.ended_at),
            "start_time": format_timestamp(record.started_at),
        }
        if error_message and record.status == "failed":
            payload["error_message"] = error_message[: self.config.error_message_limit]
        return payload

    def _local[**P, R](
        self, action: str, func: Callable[P, R], *args: P.args, **kwargs: P.kwargs
    ) -> R | None:
        """Run a local store operation, logging instead of raising on failure."""
        try:
            return func(*args, **kwargs)
        except LOCAL_ERRORS as e:
            log.error("Could not %s: %s", action, e)
            return None
