"""Shared pytest configuration and fixtures for the uplink test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from telemetry_uplink.paths.monitor import PathMonitor  # noqa: E402
from telemetry_uplink.paths.types import PathConfig  # noqa: E402
from telemetry_uplink.uplink.backoff import BackoffConfig, ExponentialBackoff  # noqa: E402
from telemetry_uplink.uplink.retry_buffer import RetryBuffer  # noqa: E402
from telemetry_uplink.uplink.session import UplinkSession  # noqa: E402
from tests.infrastructure.mocks import FakeTransport, ScriptedProbe  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "network: mark test as opening real loopback sockets"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def probe() -> ScriptedProbe:
    return ScriptedProbe()


@pytest.fixture
def path_configs():
    return [PathConfig("lte", "wwan0"), PathConfig("wifi", "wlan0")]


@pytest.fixture
def monitor(path_configs, probe) -> PathMonitor:
    """Two-path monitor that is driven by hand via record_success/record_failure."""
    return PathMonitor(path_configs, probe=probe, interval=60.0, down_after=3)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fast_backoff() -> ExponentialBackoff:
    return ExponentialBackoff(BackoffConfig(base_delay=0.01, max_delay=0.05, jitter=0.0))


@pytest.fixture
def make_session(transport, monitor, fast_backoff):
    """Factory building an UplinkSession over the fake transport and monitor."""

    def _make(capacity: int = 100, send_timeout: float = 2.0, **kwargs) -> UplinkSession:
        return UplinkSession(
            kwargs.pop("transport", transport),
            kwargs.pop("monitor", monitor),
            RetryBuffer(capacity),
            backoff=kwargs.pop("backoff", fast_backoff),
            send_timeout=send_timeout,
            **kwargs,
        )

    return _make
