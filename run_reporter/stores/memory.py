"""In-memory stores for single-process harnesses."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from run_reporter.models.records import TestCaseRecord
from run_reporter.stores.base import RunStateStore, TestCaseLog


@dataclass
class InMemoryRunStateStore(RunStateStore):
    """Run state kept in a dictionary."""

    values: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.values.get(key) or None

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


@dataclass
class InMemoryTestCaseLog(TestCaseLog):
    """Test-case log kept in a list."""

    records: list[TestCaseRecord] = field(default_factory=list)

    def reset(self) -> None:
        self.records.clear()

    def append(self, record: TestCaseRecord) -> None:
        self.records.append(record)

    def read_all(self) -> Sequence[TestCaseRecord]:
        return list(self.records)
