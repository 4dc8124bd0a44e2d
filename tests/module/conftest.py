"""Fixtures for module tests using WireMock testcontainers."""

from collections.abc import Generator

import docker
import pytest
from docker.errors import DockerException
from testcontainers.core import testcontainers_config
from wiremock.constants import Config
from wiremock.testing.testcontainer import WireMockContainer


@pytest.fixture(scope="session", autouse=True)
def _require_docker() -> None:
    """Skip module tests on hosts without a Docker daemon."""
    try:
        docker.from_env().ping()
    except DockerException as e:
        pytest.skip(f"Docker is not available: {e}")


@pytest.fixture(scope="session", autouse=True)
def _disable_ryuk(_require_docker: None) -> None:
    """Disable the extra cleanup instance, we use contexts to clean containers."""
    testcontainers_config.ryuk_disabled = True


@pytest.fixture(scope="session")
def wiremock_server() -> Generator[WireMockContainer, None, None]:
    """Start WireMock container using wiremock's testcontainer support."""
    with WireMockContainer(secure=False) as wm:
        Config.base_url = wm.get_url("__admin")
        yield wm
        print(wm.get_logs())


@pytest.fixture(scope="session")
def wiremock_url(wiremock_server: WireMockContainer) -> str:
    """URL for WireMock from the host running the tests."""
    return wiremock_server.get_base_url()
