"""Tests for the fal client wrapper: retry, key lookup and queue translation."""

from unittest.mock import MagicMock, patch

import fal_client
import pytest

from falgraph.client import FalClient, get_fal_key, is_retryable, retry, to_queue_event
from falgraph.progress import Lifecycle


class TestRetry:
    def test_is_retryable(self):
        assert is_retryable(Exception("503 Service Unavailable"))
        assert is_retryable(Exception("Connection reset by peer"))
        assert not is_retryable(Exception("422 Unprocessable Entity"))

    @patch("falgraph.client.time.sleep")
    def test_retries_transient_then_succeeds(self, mock_sleep):
        calls = MagicMock(side_effect=[Exception("timeout"), Exception("502 Bad Gateway"), "ok"])

        @retry(max_attempts=3, backoff=1.0, multiplier=2.0)
        def op():
            return calls()

        assert op() == "ok"
        assert calls.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("falgraph.client.time.sleep")
    def test_permanent_error_not_retried(self, mock_sleep):
        calls = MagicMock(side_effect=ValueError("bad request"))

        @retry(max_attempts=3)
        def op():
            return calls()

        with pytest.raises(ValueError):
            op()
        assert calls.call_count == 1
        mock_sleep.assert_not_called()

    @patch("falgraph.client.time.sleep")
    def test_last_transient_error_reraised(self, mock_sleep):
        calls = MagicMock(side_effect=Exception("429 Too Many Requests"))

        @retry(max_attempts=2)
        def op():
            return calls()

        with pytest.raises(Exception, match="429"):
            op()
        assert calls.call_count == 2


class TestFalKey:
    def test_fal_key(self, monkeypatch):
        monkeypatch.setenv("FAL_KEY", "abc")
        assert get_fal_key() == "abc"

    def test_key_id_and_secret(self, monkeypatch):
        monkeypatch.delenv("FAL_KEY", raising=False)
        monkeypatch.setenv("FAL_KEY_ID", "id")
        monkeypatch.setenv("FAL_KEY_SECRET", "secret")
        assert get_fal_key() == "id:secret"

    def test_missing(self, monkeypatch):
        for name in ("FAL_KEY", "FAL_KEY_ID", "FAL_KEY_SECRET"):
            monkeypatch.delenv(name, raising=False)
        assert get_fal_key() is None


class TestQueueTranslation:
    def test_queued(self):
        event = to_queue_event(fal_client.Queued(position=4))
        assert event.phase is Lifecycle.QUEUED
        assert event.position == 4

    def test_in_progress_logs(self):
        status = fal_client.InProgress(logs=[{"message": "Loading model"}, {"message": ""}, {"level": "INFO"}])
        event = to_queue_event(status)
        assert event.phase is Lifecycle.IN_PROGRESS
        assert event.logs == ["Loading model"]

    def test_completed(self):
        event = to_queue_event(fal_client.Completed(logs=None, metrics={}))
        assert event.phase is Lifecycle.COMPLETED
        assert event.logs == []

    def test_unknown_status(self):
        assert to_queue_event(object()) is None


class TestFalClient:
    @patch("falgraph.client.fal_client.SyncClient")
    def test_upload_delegates(self, mock_sync_cls):
        mock_sync_cls.return_value.upload.return_value = "https://fal.media/files/x.png"
        client = FalClient(key="k")
        assert client.upload(b"abc", "image/png", "x.png") == "https://fal.media/files/x.png"
        mock_sync_cls.return_value.upload.assert_called_once_with(b"abc", "image/png", file_name="x.png")
        mock_sync_cls.assert_called_once_with(key="k")

    @patch("falgraph.client.fal_client.SyncClient")
    def test_subscribe_forwards_events(self, mock_sync_cls):
        def fake_subscribe(endpoint, arguments, with_logs, on_enqueue, on_queue_update):
            on_enqueue("req-1")
            on_queue_update(fal_client.Queued(position=1))
            on_queue_update(fal_client.InProgress(logs=[]))
            return {"images": []}

        mock_sync_cls.return_value.subscribe.side_effect = fake_subscribe
        events = []
        result = FalClient(key="k").subscribe("fal-ai/x", {"prompt": "p"}, events.append)

        assert result == {"images": []}
        assert [e.phase for e in events] == [Lifecycle.QUEUED, Lifecycle.IN_PROGRESS]

    @patch("falgraph.client.urllib.request.urlopen")
    @patch("falgraph.client.fal_client.SyncClient")
    def test_download(self, mock_sync_cls, mock_urlopen):
        response = MagicMock()
        response.read.return_value = b"bytes"
        response.headers.get.return_value = "video/mp4"
        mock_urlopen.return_value.__enter__.return_value = response

        data, content_type = FalClient(key="k").download("https://fal.media/v.mp4")

        assert data == b"bytes"
        assert content_type == "video/mp4"

    @patch("falgraph.client.fal_client.SyncClient")
    def test_configured(self, mock_sync_cls, monkeypatch):
        for name in ("FAL_KEY", "FAL_KEY_ID", "FAL_KEY_SECRET"):
            monkeypatch.delenv(name, raising=False)
        assert not FalClient().configured
        assert FalClient(key="k").configured
