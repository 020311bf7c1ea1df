import sys
import os

import pytest

# Ensure repo root on sys.path for imports like `lms_bridge...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Stable settings for every test; get_settings() is cached on first use
os.environ.setdefault("MOODLE_URL", "https://moodle.example.test")
os.environ.setdefault("MOODLE_TOKEN", "test-moodle-token")
os.environ.setdefault("CANVAS_API_BASE", "https://canvas.example.test/api/v1")
os.environ.setdefault("CANVAS_API_TOKEN", "test-canvas-token")
os.environ.setdefault("GOOGLE_CLIENT_ID", "client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "client-secret")
os.environ.setdefault("GOOGLE_REDIRECT_URI", "http://testserver/classroom/google/callback")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("COOKIE_SECURE", "false")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeMoodle:
    """Stands in for MoodleClient: answers ``call`` from a dict of wsfunction -> result.

    A result may be a callable taking the call's params, or an exception to raise.
    """

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def call(self, wsfunction, **params):
        self.calls.append((wsfunction, params))
        result = self.responses[wsfunction]
        if callable(result) and not isinstance(result, type):
            result = result(**params)
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self):
        pass


@pytest.fixture
def fake_moodle():
    return FakeMoodle
