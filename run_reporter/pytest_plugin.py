"""pytest plugin reporting a test session as a pipeline run.

Enable it with ``--run-reporter`` or ``run_reporter = true`` in the ini file.
The reporter itself stays a no-op outside CI, see ``ReporterConfig.from_env``.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from typing import Any

import aiohttp
import pytest
from pydantic import ValidationError

from run_reporter.config import ReporterConfig
from run_reporter.models.records import TestStatus
from run_reporter.reporter import RunReporter

log = logging.getLogger(__name__)

PLUGIN_NAME = "run-reporter-session"

# Later phases only replace the outcome of a test when they are worse
OUTCOME_SEVERITY: dict[TestStatus, int] = {"passed": 0, "skipped": 1, "failed": 2}

type ReporterFactory = Callable[
    [ReporterConfig], AbstractAsyncContextManager[RunReporter]
]
type Outcome = tuple[TestStatus, str | None]


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("run-reporter")
    group.addoption(
        "--run-reporter",
        action="store_true",
        default=False,
        help="Report the session to the test tracking API",
    )
    parser.addini(
        "run_reporter",
        type="bool",
        default=False,
        help="Report the session to the test tracking API",
    )


def pytest_configure(config: pytest.Config) -> None:
    # xdist workers forward their reports to the controller, which reports
    if hasattr(config, "workerinput"):
        return
    if not (config.getoption("run_reporter") or config.getini("run_reporter")):
        return
    try:
        reporter_config = ReporterConfig.from_env()
    except ValidationError as e:
        log.error("Run reporting disabled, invalid configuration: %s", e)
        return
    config.pluginmanager.register(RunReporterPlugin(reporter_config), PLUGIN_NAME)


def report_status(report: pytest.TestReport) -> TestStatus | None:
    """Map a phase report to the status it contributes to its test.

    A passing setup or teardown contributes nothing; a failing or skipping one
    counts like the call phase would.
    """
    if report.passed:
        return "passed" if report.when == "call" else None
    if report.failed:
        return "failed"
    return "skipped"


def is_worse(status: TestStatus, than: TestStatus) -> bool:
    return OUTCOME_SEVERITY[status] > OUTCOME_SEVERITY[than]


class RunReporterPlugin:
    """Drives a ``RunReporter`` from the pytest session lifecycle.

    pytest hooks are synchronous, so the reporter lives on a dedicated
    event loop that stays open for the whole session. Each test is recorded
    once, on its teardown report, with the worst outcome of its phases.
    """

    def __init__(
        self,
        reporter_config: ReporterConfig,
        reporter_factory: ReporterFactory = RunReporter.from_config,
    ) -> None:
        self.reporter_config = reporter_config
        self.reporter_factory = reporter_factory
        self._runner = asyncio.Runner()
        self._stack = AsyncExitStack()
        self._outcomes: dict[str, Outcome] = {}
        self.reporter: RunReporter | None = None

    def _run[T](self, coro: Coroutine[Any, Any, T]) -> T:
        return self._runner.run(coro)

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        if not self.reporter_config.enabled:
            log.info("Reporting disabled, the session runs locally")
            return
        try:
            self.reporter = self._run(
                self._stack.enter_async_context(
                    self.reporter_factory(self.reporter_config)
                )
            )
        except (aiohttp.ClientError, OSError, ValueError) as e:
            log.error("Could not open the run reporter: %s", e)
            return
        self._run(self.reporter.start())

    def pytest_runtest_logstart(
        self, nodeid: str, location: tuple[str, int | None, str]
    ) -> None:
        if self.reporter is not None:
            self.reporter.mark_test_start()

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if self.reporter is None:
            return
        if (status := report_status(report)) is not None:
            current = self._outcomes.get(report.nodeid)
            if current is None or is_worse(status, current[0]):
                error_message = report.longreprtext if report.failed else None
                self._outcomes[report.nodeid] = (status, error_message)
        if report.when != "teardown":
            return
        if (outcome := self._outcomes.pop(report.nodeid, None)) is not None:
            status, error_message = outcome
            self._run(self.reporter.record_test(report.nodeid, status, error_message))

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        try:
            if self.reporter is not None:
                self._run(self.reporter.finish())
            self._run(self._stack.aclose())
        finally:
            self.reporter = None
            self._runner.close()
