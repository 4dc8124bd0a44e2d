"""Stores backed by JSON files on the executing host."""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from run_reporter.models.records import TestCaseRecord
from run_reporter.stores.base import RunStateStore, TestCaseLog

log = logging.getLogger(__name__)

RECORDS_ADAPTER = TypeAdapter(list[TestCaseRecord])


@dataclass(frozen=True)
class JsonFileTestCaseLog(TestCaseLog):
    """Test-case log persisted as a JSON array.

    Appends read the whole file and write it back, so two processes appending
    to the same path at the same time can lose a record. An append to an
    unreadable file replaces it with a new array holding only that record.
    """

    path: Path

    def reset(self) -> None:
        self._write([])
        log.info("Test cases file cleared: %s", self.path)

    def append(self, record: TestCaseRecord) -> None:
        try:
            records = list(self.read_all())
        except ValidationError as e:
            log.warning(
                "Test cases file %s is unreadable, starting a new one: %s",
                self.path,
                e,
            )
            records = []
        records.append(record)
        self._write(records)
        log.info("Test case saved: %s", record.name)

    def read_all(self) -> Sequence[TestCaseRecord]:
        if not self.path.exists():
            return []
        return RECORDS_ADAPTER.validate_json(self.path.read_bytes())

    def _write(self, records: Sequence[TestCaseRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(RECORDS_ADAPTER.dump_json(list(records), indent=2))


@dataclass(frozen=True)
class JsonFileRunStateStore(RunStateStore):
    """Run state persisted as a flat JSON object."""

    path: Path

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return str(value) if value else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))

    def _load(self) -> dict[str, object]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Run state file {self.path} does not hold an object")
        return data
