import json
import sys
from pathlib import Path

import pytest

# Ensure the src layout is importable as top-level `cloudsdk`
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_ROOT = PROJECT_ROOT / "src"
if SRC_ROOT.exists() and str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from cloudsdk import Context, RetryPolicy, Settings  # noqa: E402

TOKEN = "secret-token-value"


class StubResponse:
    def __init__(self, status=200, payload=None, headers=None, body=None):
        self.status_code = status
        self.headers = headers or {}
        if body is None:
            body = json.dumps(payload).encode() if payload is not None else b""
        self.content = body


class StubSession:
    """Stands in for requests.Session; replays responses or raises exceptions."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self._responses.pop(0)
        if callable(item) and not isinstance(item, StubResponse):
            item = item()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CLOUDSDK_BASE_URL", "CLOUDSDK_TOKEN", "CLOUDSDK_TIMEOUT", "CLOUDSDK_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        retry = overrides.pop("retry", None) or RetryPolicy(base_delay=0.0, max_delay=0.0)
        return Settings(base_url="https://api.test", token=TOKEN, retry=retry, **overrides)

    return _make


@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Replace context sleeps with instant, recorded ones."""
    delays = []

    def _sleep(self, delay):
        delays.append(delay)
        return True

    async def _async_sleep(self, delay):
        delays.append(delay)
        return True

    monkeypatch.setattr(Context, "sleep", _sleep)
    monkeypatch.setattr(Context, "async_sleep", _async_sleep)
    return delays
