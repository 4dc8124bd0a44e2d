"""Run state shared through environment variables."""

import os
from collections.abc import MutableMapping
from dataclasses import dataclass, field

from run_reporter.stores.base import RunStateStore


@dataclass
class EnvironRunStateStore(RunStateStore):
    """Run state stored in environment variables.

    Values written here are inherited by worker processes spawned after
    ``start()``, which is how the run id reaches them.
    """

    environ: MutableMapping[str, str] = field(default_factory=lambda: os.environ)

    def get(self, key: str) -> str | None:
        return self.environ.get(key) or None

    def set(self, key: str, value: str) -> None:
        self.environ[key] = value
