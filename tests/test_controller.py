"""
Tests for RecordingController start/stop semantics
"""

import os
import threading
import time
from unittest.mock import Mock

import pytest

from recrelay.config import Config
from recrelay.controller import RecordingController
from recrelay.exceptions import ConfigurationError, ConflictError, VendorCallError
from recrelay.session_store import SessionRegistry, SessionStore


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def registry(tmp_path):
    return SessionRegistry(tmp_path / "sessions.json")


@pytest.fixture
def controller(config, mock_client, store, registry):
    return RecordingController(
        config, mock_client, store, registry, minter=lambda channel: f"token-for-{channel}"
    )


class TestStart:
    def test_start_happy_path(self, controller, mock_client, store, registry):
        result = controller.start()

        assert result.status == "started"
        assert result.message == "Recording started."
        assert result.session.resource_handle == "H1"
        assert result.session.session_id == "S1"
        assert result.session.channel_id == "the-main-event-stream"
        assert store.get() == result.session
        assert registry.resource_handle_for("S1") == "H1"

        mock_client.acquire.assert_called_once_with("the-main-event-stream", "999999")
        args = mock_client.start.call_args.args
        assert args[:3] == ("H1", "the-main-event-stream", "999999")
        assert args[3] == "token-for-the-main-event-stream"
        assert args[4] == {
            "vendor": 1,
            "region": 0,
            "bucket": "agora-landing",
            "accessKey": "test_access_key",
            "secretKey": "test_secret_key",
        }

    def test_second_start_is_already_in_progress(self, controller, mock_client):
        first = controller.start()
        second = controller.start()

        assert second.status == "already_in_progress"
        assert second.message == "Recording is already in progress."
        assert second.session == first.session
        assert mock_client.acquire.call_count == 1
        assert mock_client.start.call_count == 1

    def test_start_for_another_channel_conflicts(self, controller, mock_client):
        controller.start()
        with pytest.raises(ConflictError):
            controller.start("other-channel")
        assert mock_client.acquire.call_count == 1

    def test_missing_config_makes_no_vendor_call(self, mock_client, store):
        config = Config(env_file=os.devnull)
        controller = RecordingController(config, mock_client, store, minter=lambda c: "t")

        with pytest.raises(ConfigurationError) as exc_info:
            controller.start()

        assert "Missing required environment variables" in exc_info.value.details
        mock_client.acquire.assert_not_called()
        assert store.get() is None

    def test_acquire_failure_leaves_store_empty(self, controller, mock_client, store):
        mock_client.acquire.side_effect = VendorCallError(
            "Agora Acquire Error: HTTP 401", operation="acquire", status_code=401
        )
        with pytest.raises(VendorCallError):
            controller.start()
        assert store.get() is None
        mock_client.start.assert_not_called()

    def test_start_failure_leaves_store_empty(self, controller, mock_client, store, registry):
        mock_client.start.side_effect = VendorCallError(
            "Agora Start Error: HTTP 400", operation="start", status_code=400, body={"code": 2}
        )
        with pytest.raises(VendorCallError) as exc_info:
            controller.start()
        assert exc_info.value.body == {"code": 2}
        assert store.get() is None
        assert registry.resource_handle_for("S1") is None

    def test_registry_write_failure_does_not_undo_start(self, config, mock_client, store):
        registry = Mock(spec=SessionRegistry)
        registry.remember.side_effect = OSError("read-only")
        controller = RecordingController(config, mock_client, store, registry, minter=lambda c: "t")

        result = controller.start()

        assert result.status == "started"
        assert store.get() is not None

    def test_concurrent_starts_make_one_vendor_session(self, config, store):
        client = Mock()
        barrier = threading.Barrier(8)

        def slow_acquire(channel, uid):
            time.sleep(0.05)
            return "H1"

        client.acquire.side_effect = slow_acquire
        client.start.return_value = {"sid": "S1"}
        controller = RecordingController(config, client, store, minter=lambda c: "t")
        results = []

        def worker():
            barrier.wait(timeout=5)
            results.append(controller.start())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert client.acquire.call_count == 1
        assert client.start.call_count == 1
        statuses = sorted(r.status for r in results)
        assert statuses == ["already_in_progress"] * 7 + ["started"]
        assert {r.session.session_id for r in results} == {"S1"}


class TestStop:
    def test_stop_happy_path(self, controller, mock_client, store):
        controller.start()
        result = controller.stop()

        assert result.message == "Recording stopped."
        assert result.session.session_id == "S1"
        mock_client.stop.assert_called_once()
        args = mock_client.stop.call_args.args
        assert args == ("H1", "S1", "the-main-event-stream", "999999")
        assert store.get() is None

    def test_stop_without_session(self, controller, mock_client):
        with pytest.raises(ConflictError, match="No active recording found to stop."):
            controller.stop()
        mock_client.stop.assert_not_called()

    def test_stop_for_other_channel(self, controller, mock_client, store):
        controller.start()
        with pytest.raises(ConflictError):
            controller.stop("other-channel")
        mock_client.stop.assert_not_called()
        assert store.get() is not None

    def test_vendor_stop_failure_still_clears(self, controller, mock_client, store):
        controller.start()
        mock_client.stop.side_effect = VendorCallError(
            "Agora Stop Error: HTTP 404", operation="stop", status_code=404
        )
        with pytest.raises(VendorCallError):
            controller.stop()
        assert store.get() is None

        # A fresh start is possible afterwards
        mock_client.start.return_value = {"sid": "S2"}
        assert controller.start().session.session_id == "S2"

    def test_start_stop_start_cycle(self, controller, mock_client, registry):
        controller.start()
        controller.stop()
        mock_client.acquire.return_value = "H2"
        mock_client.start.return_value = {"sid": "S2"}
        result = controller.start()

        assert result.status == "started"
        assert controller.status().session_id == "S2"
        assert registry.resource_handle_for("S1") == "H1"
        assert registry.resource_handle_for("S2") == "H2"
