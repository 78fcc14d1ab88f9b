import os

import httpx
import pytest

pytest_plugins = ["pytest_asyncio"]

# Keep developer credentials and .env overrides out of the test run
os.environ["GOOGLE_API_KEY"] = ""
os.environ["GOOGLE_CSE_ID"] = ""
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_http():
    """Factory for an httpx.AsyncClient whose requests go to ``handler``."""

    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
