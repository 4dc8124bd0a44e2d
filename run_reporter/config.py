"""Configuration for the run reporter."""

import os
import sys
from collections.abc import Mapping
from pathlib import Path

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)

TRUTHY = frozenset(["1", "true", "yes", "on"])

HTTP_URL = TypeAdapter(AnyHttpUrl)


def _flag(value: str) -> bool:
    return value.strip().lower() in TRUTHY


class BuildMetadata(BaseModel):
    """CI build information sent when a run is created."""

    job_name: str = "puppeteer-pom-framework"
    build_number: str = "local"
    build_url: str = ""
    branch: str = "main"
    commit: str = ""
    triggered_by: str = "jenkins"
    workspace: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BuildMetadata":
        """Read Jenkins build variables, falling back to defaults when unset."""
        env = os.environ if environ is None else environ
        values = {
            "job_name": env.get("JOB_NAME"),
            "build_number": env.get("BUILD_NUMBER"),
            "build_url": env.get("BUILD_URL"),
            "branch": env.get("GIT_BRANCH") or env.get("BRANCH_NAME"),
            "commit": env.get("GIT_COMMIT"),
            "triggered_by": env.get("BUILD_USER") or env.get("BUILD_USER_ID"),
            "workspace": env.get("WORKSPACE"),
        }
        return cls(**{key: value for key, value in values.items() if value})


class BrowserInfo(BaseModel):
    """Browser the suite drives, reported alongside the run."""

    name: str = "chrome"
    version: str = "latest"
    platform: str = Field(default_factory=lambda: sys.platform)
    framework: str = "puppeteer"


class ReporterConfig(BaseModel):
    """Configuration for reporting runs to the tracking API.

    The reporter is a no-op unless ``enabled`` is set, which by default only
    happens inside a Jenkins build.
    """

    enabled: bool = False
    api_base_url: str = "http://localhost:8000/"
    token: SecretStr = SecretStr("")
    org_id: str = ""
    created_by: str = ""
    timeout: float = Field(default=10.0, gt=0)
    environment: str = "test"
    results_dir: Path = Path("test-results")
    error_message_limit: int = Field(default=500, gt=0)
    build: BuildMetadata = Field(default_factory=BuildMetadata)
    browser: BrowserInfo = Field(default_factory=BrowserInfo)

    @field_validator("api_base_url")
    @classmethod
    def _http_base_url(cls, value: str) -> str:
        try:
            url = str(HTTP_URL.validate_python(value))
        except ValidationError as e:
            raise ValueError(f"{value!r} is not an absolute http(s) URL") from e
        # Relative endpoint paths are joined onto the base URL
        return url if url.endswith("/") else f"{url}/"

    @property
    def test_cases_file(self) -> Path:
        """Location of the shared test-case log."""
        return self.results_dir / ".test-cases.json"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ReporterConfig":
        """Build the configuration from environment variables."""
        env = os.environ if environ is None else environ

        if "RUN_REPORTER_ENABLED" in env:
            enabled = _flag(env["RUN_REPORTER_ENABLED"])
        else:
            enabled = "JENKINS_URL" in env or "BUILD_NUMBER" in env

        values: dict[str, object] = {
            "enabled": enabled,
            "build": BuildMetadata.from_env(env),
        }
        for key, var in (
            ("api_base_url", "API_BASE_URL"),
            ("token", "API_TOKEN"),
            ("org_id", "ORG_ID"),
            ("created_by", "CREATED_BY"),
            ("timeout", "API_TIMEOUT"),
            ("environment", "TEST_ENV"),
            ("results_dir", "RESULTS_DIR"),
        ):
            if env.get(var):
                values[key] = env[var]

        browser = {
            key: env[var]
            for key, var in (("name", "BROWSER"), ("version", "BROWSER_VERSION"))
            if env.get(var)
        }
        values["browser"] = BrowserInfo(**browser)

        return cls.model_validate(values)
