"""Shared fixtures for commclimb tests."""

import shutil
import tempfile
import threading
from pathlib import Path

import pytest

from commclimb.controller import ViewController
from commclimb.errors import TranscriptionFailure
from commclimb.models import TranscriptSegment
from commclimb.store import Storage
from commclimb.tasks import TranscriptionScheduler
from commclimb.transcription import TranscriptionGateway


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    dirpath = tempfile.mkdtemp()
    yield Path(dirpath)
    shutil.rmtree(dirpath)


@pytest.fixture
def storage(temp_dir):
    return Storage.open(temp_dir / "test.db")


class StubGateway(TranscriptionGateway):
    """Gateway returning canned segments, or failing, optionally after a release signal."""

    def __init__(self, segments=None, error=None, block=False):
        self.segments = segments or []
        self.error = error
        self.release = threading.Event()
        if not block:
            self.release.set()
        self.calls = []

    def transcribe(self, data, mime_type):
        self.calls.append((data, mime_type))
        self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return list(self.segments)


@pytest.fixture
def hello_segments():
    return [TranscriptSegment(start_time=0.0, end_time=2.5, text="Hello")]


@pytest.fixture
def gateway(hello_segments):
    return StubGateway(segments=hello_segments)


@pytest.fixture
def failing_gateway():
    return StubGateway(error=TranscriptionFailure("quota exceeded"))


@pytest.fixture
def make_controller(storage, temp_dir):
    """Build a controller around a given gateway."""
    controllers = []

    def factory(gw):
        controller = ViewController(
            storage,
            TranscriptionScheduler(gw),
            media_dir=temp_dir / "media",
        )
        controllers.append(controller)
        return controller

    yield factory

    for controller in controllers:
        controller.scheduler.shutdown()


@pytest.fixture
def controller(make_controller, gateway):
    return make_controller(gateway)


@pytest.fixture
def signed_in(controller):
    """Controller with a registered user on the dashboard."""
    controller.start()
    controller.register("ada@example.com", "secret")
    return controller


def finish_transcriptions(controller):
    """Wait for background tasks and apply their results."""
    controller.scheduler.wait(timeout=5)
    return controller.pump_events()


@pytest.fixture
def mock_gemini_client():
    """Mock Gemini client for testing without API calls."""
    class MockResponse:
        def __init__(self, text):
            self._text = text

        @property
        def text(self):
            return self._text

    class MockModels:
        def __init__(self, response_text, error=None):
            self.response_text = response_text
            self.error = error
            self.calls = []

        def generate_content(self, model, contents, config=None):
            self.calls.append({"model": model, "contents": contents, "config": config})
            if self.error is not None:
                raise self.error
            return MockResponse(self.response_text)

    class MockClient:
        def __init__(self, response_text="", error=None):
            self.models = MockModels(response_text, error)

    return MockClient


@pytest.fixture
def finish():
    return finish_transcriptions


@pytest.fixture
def stub_gateway():
    return StubGateway
