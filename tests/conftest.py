"""
Pytest fixtures: a fake fal client, a temporary asset store and log capture.
"""

import io
import json
import logging
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from falgraph import assets as assets_module  # noqa: E402
from falgraph import client as client_module  # noqa: E402
from falgraph.assets import LocalAssetStore  # noqa: E402
from falgraph import mcp_utils  # noqa: E402
from falgraph.mcp_utils import JSONFormatter, clear_correlation_id, set_correlation_id  # noqa: E402
from falgraph.progress import QueueEvent  # noqa: E402


def make_png(size=(4, 4), color=0, mode="L") -> bytes:
    out = io.BytesIO()
    Image.new(mode, size, color).save(out, format="PNG")
    return out.getvalue()


class FakeFalClient:
    """
    Stands in for FalClient.

    ``subscribe`` replays ``events`` through the callback, then raises
    ``fail_with`` or returns ``result``. ``download`` serves ``files`` by URL.
    """

    def __init__(self, result=None, events=None, files=None, fail_with=None):
        self.result = result if result is not None else {}
        if events is None:
            events = [
                QueueEvent.queued(2),
                QueueEvent.in_progress(["Loading model weights"]),
                QueueEvent.in_progress([]),
            ]
        self.events = events
        self.files = files or {}
        self.fail_with = fail_with
        self.uploads = []
        self.submitted = []
        self.downloads = []

    def upload(self, data, content_type, file_name=None):
        self.uploads.append({"size": len(data), "content_type": content_type, "file_name": file_name})
        return f"https://fal.media/files/u{len(self.uploads)}/{file_name}"

    def subscribe(self, endpoint, arguments, on_event=None):
        self.submitted.append((endpoint, dict(arguments)))
        for event in self.events:
            if on_event is not None:
                on_event(event)
        if self.fail_with is not None:
            raise self.fail_with
        return self.result

    def download(self, url, timeout=None):
        self.downloads.append(url)
        return self.files.get(url, (make_png(), "image/png"))

    @property
    def endpoint(self):
        return self.submitted[-1][0]

    @property
    def payload(self):
        return self.submitted[-1][1]


@pytest.fixture
def png_bytes():
    return make_png


@pytest.fixture
def fake_client():
    """Factory for FakeFalClient instances."""
    return FakeFalClient


@pytest.fixture
def store(tmp_path):
    return LocalAssetStore(tmp_path / "assets")


@pytest.fixture
def global_store(store, monkeypatch):
    """Install a temporary store as the process-wide default."""
    monkeypatch.setattr(assets_module, "_store", store)
    return store


@pytest.fixture
def global_client(monkeypatch):
    """Install a FakeFalClient as the process-wide default; returns a setter."""

    def _install(client):
        monkeypatch.setattr(client_module, "_client", client)
        return client

    return _install


@pytest.fixture
def statuses():
    """A list that doubles as a status callback target."""
    return []


# =============================================================================
# Structured Logging Fixtures
# =============================================================================


class CapturingLogHandler(logging.Handler):
    """Handler that captures log records for testing."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)

    def get_json_logs(self):
        """Return list of parsed JSON log entries."""
        formatter = JSONFormatter()
        return [json.loads(formatter.format(record)) for record in self.records]

    def messages(self):
        return [record.getMessage() for record in self.records]

    def clear(self):
        self.records = []


@pytest.fixture
def capturing_logger():
    """Fixture providing a capturing log handler."""
    logger = logging.getLogger("falgraph")

    handler = CapturingLogHandler()
    handler.setLevel(logging.DEBUG)
    logger.addHandler(handler)

    original_level = logger.level
    logger.setLevel(logging.DEBUG)

    yield handler

    logger.removeHandler(handler)
    logger.setLevel(original_level)
    handler.clear()


@pytest.fixture
def correlation_context():
    """Fixture providing correlation ID context management."""

    def _set_cid(cid):
        set_correlation_id(cid)
        return cid

    yield _set_cid

    clear_correlation_id()


@pytest.fixture(autouse=True)
def fresh_rate_limiter(monkeypatch):
    """Each test starts with empty rate-limit windows."""
    monkeypatch.setattr(mcp_utils, "_rate_limiter", mcp_utils.build_rate_limiter())
