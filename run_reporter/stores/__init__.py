"""Stores the reporter uses to share state across process invocations."""

from run_reporter.stores.base import (
    RUN_ID_KEY,
    STARTED_AT_KEY,
    RunStateStore,
    TestCaseLog,
)
from run_reporter.stores.environment import EnvironRunStateStore
from run_reporter.stores.json_file import JsonFileRunStateStore, JsonFileTestCaseLog
from run_reporter.stores.memory import InMemoryRunStateStore, InMemoryTestCaseLog

__all__ = [
    "RUN_ID_KEY",
    "STARTED_AT_KEY",
    "EnvironRunStateStore",
    "InMemoryRunStateStore",
    "InMemoryTestCaseLog",
    "JsonFileRunStateStore",
    "JsonFileTestCaseLog",
    "RunStateStore",
    "TestCaseLog",
]
