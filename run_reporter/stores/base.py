"""Abstract stores shared between reporter invocations."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from run_reporter.models.records import TestCaseRecord

RUN_ID_KEY = "PIPELINE_RUN_ID"
STARTED_AT_KEY = "PIPELINE_RUN_STARTED_AT"


class RunStateStore(ABC):
    """Key-value handle that lets separate processes agree on one run.

    The reporter keeps the remote run identifier and the run start time here,
    so a process that did not call ``start()`` can still record tests and
    finish the run.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is unset."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value under the given key."""


class TestCaseLog(ABC):
    """Append-only log of finished tests for the current run."""

    __test__ = False

    @abstractmethod
    def reset(self) -> None:
        """Drop every record, starting a fresh run."""

    @abstractmethod
    def append(self, record: TestCaseRecord) -> None:
        """Append one record at the end of the log."""

    @abstractmethod
    def read_all(self) -> Sequence[TestCaseRecord]:
        """Return every record in append order."""
