"""Models for test-case records and the run aggregate computed from them."""

from collections.abc import Iterable
from datetime import datetime
from typing import Literal

from pydantic import Field, computed_field

from run_reporter.models.base import Model

type TestStatus = Literal["passed", "failed", "skipped"]
type RunStatus = Literal["running", "passed", "failed"]


class TestCaseRecord(Model):
    """One finished test as kept in the test-case log."""

    __test__ = False

    name: str = Field(..., description="Test title, not necessarily unique")
    status: TestStatus = Field(..., description="Outcome of the test")
    duration_ms: int = Field(..., ge=0, description="Time since the start marker")
    started_at: datetime = Field(..., description="Start marker of the test")
    ended_at: datetime = Field(..., description="Time the test was recorded")
    test_id: str | None = Field(
        default=None, description="Remote test-case id, None if not created"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> float:
        """Duration in seconds, rounded the way the tracking API expects."""
        return round(self.duration_ms / 1000.0, 2)


class RunSummary(Model):
    """Aggregate outcome of a run."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> RunStatus:
        """Terminal run status: failed if any test failed."""
        return "failed" if self.failed else "passed"

    @classmethod
    def from_records(cls, records: Iterable[TestCaseRecord]) -> "RunSummary":
        """Count the statuses of the given records."""
        counts = {"passed": 0, "failed": 0, "skipped": 0}
        for record in records:
            counts[record.status] += 1
        return cls(total=sum(counts.values()), **counts)
