"""HTTP client for the test tracking API."""

import json
import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from run_reporter.config import ReporterConfig

log = logging.getLogger(__name__)

PIPELINE_RUNS_PATH = "api/pipeline-runs/"
TEST_CASES_PATH = "api/test-cases/"


class TrackingApiError(RuntimeError):
    """Raised when the tracking API answers with a non-2xx status."""

    def __init__(self, action: str, status: int, body: str) -> None:
        super().__init__(f"Failed to {action}: {status} {body}")
        self.status = status
        self.body = body


@dataclass(frozen=True, kw_only=True)
class TrackingClient:
    """Client for the pipeline-run and test-case endpoints.

    Performs exactly one request per call, without retries. Transport errors
    and timeouts surface as ``aiohttp.ClientError`` and ``TimeoutError``.
    """

    config: ReporterConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: ReporterConfig
    ) -> AsyncGenerator["TrackingClient", None]:
        """Create client with managed session lifecycle."""
        async with aiohttp.ClientSession(
            base_url=config.api_base_url,
            timeout=aiohttp.ClientTimeout(total=config.timeout),
        ) as session:
            yield cls(config=config, session=session)

    @property
    def headers(self) -> Mapping[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.token.get_secret_value()}",
        }

    async def create_pipeline_run(
        self, payload: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        """Create the run resource."""
        return await self._send(
            "POST", PIPELINE_RUNS_PATH, payload, action="create pipeline run"
        )

    async def create_test_case(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        """Create one test-case resource attached to a run."""
        return await self._send(
            "POST", TEST_CASES_PATH, payload, action="create test case"
        )

    async def update_pipeline_run(
        self, run_id: str, payload: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        """Patch the run resource with its final results."""
        return await self._send(
            "PATCH",
            f"{PIPELINE_RUNS_PATH}{run_id}/",
            payload,
            action="update pipeline run",
        )

    async def _send(
        self, method: str, url: str, payload: Mapping[str, Any], *, action: str
    ) -> Mapping[str, Any]:
        log.debug("%s %s%s", method, self.config.api_base_url, url)

        async with self.session.request(
            method, url, json=payload, headers=self.headers
        ) as response:
            text = await response.text()
            if not 200 <= response.status < 300:
                raise TrackingApiError(action, response.status, text)

        if not text:
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected response body for {action}: {text}")
        return data
